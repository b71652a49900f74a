import json
import logging
from typing import Optional

import requests
from pywebpush import webpush, WebPushException
from starlette.concurrency import run_in_threadpool

from app.core.exceptions import ConfigurationError, PermanentInvalidityError, TransientDeliveryError
from app.services.messages import PushMessage, SendOutcome
from app.services.targets import WebPushEndpoint

logger = logging.getLogger(__name__)

WEB_PUSH_TTL = 86400  # 24h
DELIVERED_STATUSES = {200, 201, 202}
# Só esses códigos significam que a inscrição morreu de vez
GONE_STATUSES = {404, 410}


class WebPushAdapter:

    def __init__(self, vapid_private_key: Optional[str], vapid_claims_email: str, timeout: float = 10.0):
        self.vapid_private_key = vapid_private_key
        self.vapid_claims_email = vapid_claims_email
        self.timeout = timeout

    def ensure_configured(self) -> None:
        if not self.vapid_private_key:
            raise ConfigurationError("VAPID não configurado (VAPID_PRIVATE_KEY)")

    async def send(self, endpoint: WebPushEndpoint, message: PushMessage) -> SendOutcome:
        try:
            # pywebpush é síncrono (requests), então roda no threadpool
            await run_in_threadpool(self._post, endpoint, json.dumps(message.to_payload()))
        except PermanentInvalidityError as e:
            logger.info(f"🗑️ Inscrição web expirada: {e}")
            return SendOutcome.PERMANENTLY_INVALID
        except TransientDeliveryError as e:
            logger.warning(f"⚠️ Falha web push: {e}")
            return SendOutcome.TEMPORARILY_FAILED
        return SendOutcome.DELIVERED

    def _post(self, endpoint: WebPushEndpoint, data: str) -> None:
        try:
            response = webpush(
                subscription_info=endpoint.subscription_info(),
                data=data,
                vapid_private_key=self.vapid_private_key,
                vapid_claims={"sub": self.vapid_claims_email},
                ttl=WEB_PUSH_TTL,
                timeout=self.timeout,
            )
        except WebPushException as ex:
            status = ex.response.status_code if ex.response is not None else None
            if status in GONE_STATUSES:
                raise PermanentInvalidityError(f"{status} {ex.message}", status_code=status) from ex
            body = ex.response.text if ex.response is not None else ""
            raise TransientDeliveryError(f"{status} {ex.message} {body}".strip(), status_code=status) from ex
        except requests.RequestException as ex:
            raise TransientDeliveryError(f"erro de transporte: {ex}") from ex

        status = getattr(response, "status_code", 201)
        if status not in DELIVERED_STATUSES:
            raise TransientDeliveryError(f"status inesperado {status}", status_code=status)
