import logging
import re
from dataclasses import dataclass, field
from typing import Iterable, List, Optional, Union

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.exceptions import StoreError
from app.models.subscription import PushSubscription

logger = logging.getLogger(__name__)

NATIVE_SCHEME = "native://"
_NATIVE_RE = re.compile(r"^native://([a-z0-9_-]+)/(.+)$")
# APNs entrega tokens em hex; FCM usa base64url com ':' separando o id do app
_TOKEN_RES = {
    "ios": re.compile(r"^[0-9a-fA-F]+$"),
}
_DEFAULT_TOKEN_RE = re.compile(r"^[A-Za-z0-9_:-]+$")


def valid_native_token(platform: str, token: str) -> bool:
    return bool(_TOKEN_RES.get(platform, _DEFAULT_TOKEN_RE).match(token or ""))


# --- Destinos (união discriminada) ---

@dataclass(frozen=True)
class NativeEndpoint:
    platform: str
    token: str

@dataclass(frozen=True)
class WebPushEndpoint:
    url: str
    p256dh: str
    auth: str

    def subscription_info(self) -> dict:
        return {"endpoint": self.url, "keys": {"p256dh": self.p256dh, "auth": self.auth}}

@dataclass(frozen=True)
class MalformedEndpoint:
    raw: str
    reason: str

Endpoint = Union[NativeEndpoint, WebPushEndpoint, MalformedEndpoint]

@dataclass(frozen=True)
class PushTarget:
    id: str
    endpoint: Endpoint
    topics: frozenset = field(default_factory=frozenset)
    owner_id: Optional[str] = None

    def matches(self, topic: Optional[str]) -> bool:
        # Sem tópicos cadastrados = inscrito em tudo
        return topic is None or not self.topics or topic in self.topics


def native_endpoint(platform: str, token: str) -> str:
    """Formato de persistência dos tokens nativos (compatível com a coluna endpoint)."""
    return f"{NATIVE_SCHEME}{platform}/{token}"

def parse_endpoint(endpoint: Optional[str], p256dh: Optional[str] = None, auth: Optional[str] = None) -> Endpoint:
    raw = endpoint or ""
    if raw.startswith(NATIVE_SCHEME):
        match = _NATIVE_RE.match(raw)
        if not match:
            return MalformedEndpoint(raw, "endpoint nativo fora do formato native://<plataforma>/<token>")
        platform, token = match.groups()
        if not valid_native_token(platform, token):
            return MalformedEndpoint(raw, f"token {platform} com caracteres inválidos")
        return NativeEndpoint(platform=platform, token=token)

    if raw.startswith("https://") or raw.startswith("http://"):
        if not p256dh or not auth:
            return MalformedEndpoint(raw, "inscrição web sem chaves p256dh/auth")
        return WebPushEndpoint(url=raw, p256dh=p256dh, auth=auth)

    return MalformedEndpoint(raw, "endpoint desconhecido")

def to_target(row: PushSubscription) -> PushTarget:
    return PushTarget(
        id=row.id,
        endpoint=parse_endpoint(row.endpoint, row.p256dh, row.auth),
        topics=frozenset(row.topics or []),
        owner_id=row.user_id,
    )


class PushTargetStore:
    """Leitura e manutenção da tabela push_subscriptions."""

    def __init__(self, db: Session):
        self.db = db

    def list_targets(self, topic: Optional[str] = None) -> List[PushTarget]:
        try:
            rows = self.db.query(PushSubscription).all()
        except SQLAlchemyError as e:
            raise StoreError(f"Falha ao listar inscrições: {e}") from e

        # Filtro de tópico feito aqui: a coluna é JSON e a regra "vazio = tudo"
        # não tem equivalente portátil em SQL
        targets = [t for t in (to_target(row) for row in rows) if t.matches(topic)]
        logger.info(f"🔎 {len(targets)} inscrições para o tópico: {topic or 'all'}")
        return targets

    def delete_targets(self, ids: Iterable[str]) -> int:
        ids = list(ids)
        if not ids:
            return 0
        try:
            deleted = self.db.query(PushSubscription).filter(
                PushSubscription.id.in_(ids)
            ).delete(synchronize_session=False)
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            raise StoreError(f"Falha ao remover inscrições: {e}") from e
        logger.info(f"🧹 {deleted} inscrições inválidas removidas")
        return deleted

    def save_subscription(self, user_id: str, endpoint: str, topics: List[str], p256dh: str = "", auth: str = "") -> PushSubscription:
        """Upsert pelo endpoint: se o aparelho já existe, troca o dono e atualiza as chaves."""
        try:
            sub = self.db.query(PushSubscription).filter(
                PushSubscription.endpoint == endpoint
            ).first()

            if sub:
                sub.user_id = user_id
                sub.p256dh = p256dh
                sub.auth = auth
                sub.topics = list(topics)
            else:
                sub = PushSubscription(
                    user_id=user_id,
                    endpoint=endpoint,
                    p256dh=p256dh,
                    auth=auth,
                    topics=list(topics),
                )
                self.db.add(sub)
            self.db.commit()
            self.db.refresh(sub)
        except SQLAlchemyError as e:
            self.db.rollback()
            raise StoreError(f"Falha ao salvar inscrição: {e}") from e
        return sub

    def remove_subscription(self, user_id: str, endpoint: str) -> bool:
        try:
            deleted = self.db.query(PushSubscription).filter(
                PushSubscription.user_id == user_id,
                PushSubscription.endpoint == endpoint,
            ).delete(synchronize_session=False)
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            raise StoreError(f"Falha ao remover inscrição: {e}") from e
        return deleted > 0

    def topic_stats(self) -> dict:
        try:
            rows = self.db.query(PushSubscription.topics).all()
        except SQLAlchemyError as e:
            raise StoreError(f"Falha ao contar inscrições: {e}") from e

        counts = {}
        for (topics,) in rows:
            for topic in topics or []:
                counts[topic] = counts.get(topic, 0) + 1
        return {"total_subscriptions": len(rows), "topic_counts": counts}
