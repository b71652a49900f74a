import asyncio
import logging
from typing import Awaitable, Callable, List, Optional, Set

from starlette.concurrency import run_in_threadpool

from app.core.exceptions import ConfigurationError, CryptoError, StoreError
from app.services.apns import ApnsAdapter
from app.services.credentials import CredentialManager
from app.services.messages import DispatchResult, PushMessage, SendOutcome
from app.services.notifications import InAppNotificationStore
from app.services.targets import MalformedEndpoint, NativeEndpoint, PushTarget, PushTargetStore
from app.services.webpush import WebPushAdapter

logger = logging.getLogger(__name__)

SUPPORTED_NATIVE_PLATFORMS = {"ios"}


class PushService:
    """
    Disparo de uma campanha: uma mensagem para todas as inscrições do tópico.

    Cada destino é independente; falha de entrega vira contagem, não exceção.
    Remoção de inscrições mortas e notificações in-app rodam depois das
    entregas, cada uma isolada para não afetar o resultado já calculado.
    """

    def __init__(
        self,
        store: PushTargetStore,
        credentials: CredentialManager,
        apns: ApnsAdapter,
        webpush: WebPushAdapter,
        notifications: Optional[InAppNotificationStore] = None,
        max_concurrency: int = 20,
    ):
        self.store = store
        self.credentials = credentials
        self.apns = apns
        self.webpush = webpush
        self.notifications = notifications
        self.max_concurrency = max_concurrency

    async def send_batch(self, message: PushMessage, topic: Optional[str] = None) -> DispatchResult:
        """Envia ``message`` para todos os destinos do ``topic`` (ou todos, se None)."""
        # Sessão SQLAlchemy é síncrona: banco roda no threadpool
        targets = await run_in_threadpool(self.store.list_targets, topic)
        result = DispatchResult()
        if not targets:
            return result

        logger.info(f"📢 Iniciando disparo para {len(targets)} dispositivos (tópico: {topic or 'all'})...")

        to_delete: Set[str] = set()
        to_notify: Set[str] = {t.owner_id for t in targets if t.owner_id}
        ios_targets: List[PushTarget] = []
        web_targets: List[PushTarget] = []

        for target in targets:
            endpoint = target.endpoint
            if isinstance(endpoint, MalformedEndpoint):
                logger.warning(f"❌ Inscrição {target.id} inválida ({endpoint.reason}), será removida")
                result.failed += 1
                to_delete.add(target.id)
            elif isinstance(endpoint, NativeEndpoint):
                if endpoint.platform in SUPPORTED_NATIVE_PLATFORMS:
                    ios_targets.append(target)
                else:
                    # TODO: entrega Android via FCM; por enquanto só registramos o pulo
                    logger.warning(f"⏭️ Plataforma nativa '{endpoint.platform}' sem suporte, pulando {target.id}")
                    result.skipped += 1
            else:
                web_targets.append(target)

        # Preparação dos canais: um token APNs por lote, uma checagem VAPID por lote
        channel_errors = []
        auth_token = None
        if ios_targets:
            try:
                auth_token = self.credentials.get_token()
            except (ConfigurationError, CryptoError) as e:
                logger.error(f"❌ Canal nativo desativado neste lote: {e}")
                channel_errors.append(e)
                result.failed += len(ios_targets)
                ios_targets = []

        if web_targets:
            try:
                self.webpush.ensure_configured()
            except ConfigurationError as e:
                logger.error(f"❌ Canal web desativado neste lote: {e}")
                channel_errors.append(e)
                result.failed += len(web_targets)
                web_targets = []

        semaphore = asyncio.Semaphore(self.max_concurrency)

        async def deliver(target: PushTarget, channel: str, send: Callable[[], Awaitable[SendOutcome]]):
            async with semaphore:
                try:
                    outcome = await send()
                except Exception:
                    logger.exception(f"Erro inesperado enviando para {target.id}")
                    outcome = SendOutcome.TEMPORARILY_FAILED
            return target, channel, outcome

        jobs = [
            deliver(t, "native", lambda t=t: self.apns.send(t.endpoint.token, message, auth_token))
            for t in ios_targets
        ] + [
            deliver(t, "web", lambda t=t: self.webpush.send(t.endpoint, message))
            for t in web_targets
        ]

        for target, channel, outcome in await asyncio.gather(*jobs):
            if outcome is SendOutcome.DELIVERED:
                if channel == "native":
                    result.native += 1
                else:
                    result.web += 1
            else:
                result.failed += 1
                if outcome is SendOutcome.PERMANENTLY_INVALID:
                    to_delete.add(target.id)

        await self._purge(to_delete, result)

        if channel_errors and not jobs:
            # Nada pôde ser entregue: erro fatal para quem chamou
            raise channel_errors[0]

        await self._notify(to_notify, message)

        logger.info(
            f"✅ Push enviado: nativo={result.native}, web={result.web}, "
            f"falhas={result.failed}, pulados={result.skipped}"
        )
        return result

    async def _purge(self, to_delete: Set[str], result: DispatchResult) -> None:
        if not to_delete:
            return
        result.deleted = sorted(to_delete)
        try:
            await run_in_threadpool(self.store.delete_targets, result.deleted)
        except StoreError as e:
            logger.error(f"❌ Erro ao remover inscrições inválidas: {e}")

    async def _notify(self, user_ids: Set[str], message: PushMessage) -> None:
        if not user_ids or self.notifications is None:
            return
        try:
            await run_in_threadpool(self.notifications.create_for_users, user_ids, message)
        except StoreError as e:
            logger.error(f"❌ Erro ao gravar notificações in-app: {e}")
