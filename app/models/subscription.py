import uuid

from sqlalchemy import Column, String, DateTime, Text, JSON
from sqlalchemy.sql import func
from app.db.base import Base

class PushSubscription(Base):
    """
    Destino de push persistido.
    Web push: endpoint é a URL do navegador + chaves p256dh/auth.
    Nativo: endpoint no formato native://<plataforma>/<token>, chaves vazias.
    """
    __tablename__ = "push_subscriptions"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    # Usuários vivem no serviço de auth externo, guardamos só o id
    user_id = Column(String(64), nullable=True, index=True)

    endpoint = Column(Text, nullable=False, unique=True)
    p256dh = Column(String(255), nullable=False, default="")
    auth = Column(String(255), nullable=False, default="")

    # Lista de tópicos ("launches", "news"). Vazia = recebe tudo.
    topics = Column(JSON, nullable=False, default=list)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
