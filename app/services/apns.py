import logging
from urllib.parse import quote

import httpx

from app.core.exceptions import PermanentInvalidityError, TransientDeliveryError
from app.services.messages import PushMessage, SendOutcome

logger = logging.getLogger(__name__)

APNS_PRODUCTION_URL = "https://api.push.apple.com"
APNS_SANDBOX_URL = "https://api.sandbox.push.apple.com"


def build_payload(message: PushMessage) -> dict:
    aps = {
        "alert": {"title": message.title, "body": message.body},
        "sound": "default",
        "badge": 1,
        "mutable-content": 1,
    }
    if message.tag:
        aps["thread-id"] = message.tag

    payload = {"aps": aps}
    # Campos extras lidos pelo app ao abrir a notificação
    for key, value in (("url", message.url), ("articleId", message.article_id), ("image", message.image)):
        if value:
            payload[key] = value
    return payload


class ApnsAdapter:
    """Envio para iOS via APNs (HTTP/2, autenticação por token)."""

    def __init__(self, client: httpx.AsyncClient, topic: str, use_sandbox: bool = False):
        self.client = client
        self.topic = topic
        self.base_url = APNS_SANDBOX_URL if use_sandbox else APNS_PRODUCTION_URL

    async def send(self, device_token: str, message: PushMessage, auth_token: str) -> SendOutcome:
        try:
            await self._post(device_token, message, auth_token)
        except PermanentInvalidityError as e:
            logger.info(f"🗑️ Token APNs {device_token[:8]}... inválido: {e}")
            return SendOutcome.PERMANENTLY_INVALID
        except TransientDeliveryError as e:
            logger.warning(f"⚠️ Falha APNs {device_token[:8]}...: {e}")
            return SendOutcome.TEMPORARILY_FAILED
        return SendOutcome.DELIVERED

    async def _post(self, device_token: str, message: PushMessage, auth_token: str) -> None:
        headers = {
            "authorization": f"bearer {auth_token}",
            "apns-topic": self.topic,
            "apns-push-type": "alert",
            "apns-priority": "10",
            # 0 = entrega agora ou descarta
            "apns-expiration": "0",
        }
        try:
            response = await self.client.post(
                f"{self.base_url}/3/device/{quote(device_token, safe='')}",
                json=build_payload(message),
                headers=headers,
            )
        except httpx.TimeoutException as e:
            raise TransientDeliveryError(f"timeout: {e}") from e
        except httpx.HTTPError as e:
            raise TransientDeliveryError(f"erro de transporte: {e}") from e

        if response.status_code == 200:
            return
        if response.status_code == 410:
            raise PermanentInvalidityError("410 Unregistered", status_code=410)
        raise TransientDeliveryError(
            f"{response.status_code} {response.text}", status_code=response.status_code
        )
