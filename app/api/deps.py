import secrets
from typing import Generator

import httpx
from fastapi import Depends, HTTPException, status, Request
from jose import JWTError
from sqlalchemy.orm import Session

from app.db.session import SessionLocal
from app.core.config import settings
from app.core import security
from app.services.apns import ApnsAdapter
from app.services.credentials import CredentialManager
from app.services.notifications import InAppNotificationStore
from app.services.push import PushService
from app.services.targets import PushTargetStore
from app.services.webpush import WebPushAdapter

def get_db() -> Generator:
    try:
        db = SessionLocal()
        yield db
    finally:
        db.close()

def _bearer(request: Request) -> str:
    # App nativo manda no header; o PWA ainda usa o cookie 'access_token'
    raw = request.headers.get("Authorization") or request.cookies.get("access_token")
    if not raw:
        return ""
    try:
        scheme, token = raw.split()
    except ValueError:
        return ""
    return token if scheme.lower() == "bearer" else ""

def get_current_user_id(request: Request) -> str:
    """
    Decodifica o token do usuário e devolve o id (claim 'sub').
    """
    token = _bearer(request)
    if not token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Não autenticado",
        )

    try:
        payload = security.decode_access_token(token)
    except JWTError:
        raise HTTPException(status_code=401, detail="Token expirado ou inválido")

    user_id = payload.get("sub")
    if user_id is None:
        raise HTTPException(status_code=401, detail="Token inválido (sem ID)")
    return str(user_id)

def require_service_key(request: Request) -> None:
    """
    Protege as rotas de disparo. Sem PUSH_API_KEY configurada, fica aberto
    (ambiente local / chamadas internas).
    """
    if not settings.PUSH_API_KEY:
        return
    token = _bearer(request)
    if not token or not secrets.compare_digest(token, settings.PUSH_API_KEY):
        raise HTTPException(status_code=401, detail="Chave de serviço inválida")

def get_http_client(request: Request) -> httpx.AsyncClient:
    return request.app.state.http_client

def get_credential_manager(request: Request) -> CredentialManager:
    return request.app.state.credentials

def get_push_service(
    db: Session = Depends(get_db),
    client: httpx.AsyncClient = Depends(get_http_client),
    credentials: CredentialManager = Depends(get_credential_manager),
) -> PushService:
    return PushService(
        store=PushTargetStore(db),
        credentials=credentials,
        apns=ApnsAdapter(client, topic=settings.APNS_TOPIC, use_sandbox=settings.APNS_USE_SANDBOX),
        webpush=WebPushAdapter(
            settings.VAPID_PRIVATE_KEY,
            settings.VAPID_CLAIMS_EMAIL,
            timeout=settings.PUSH_REQUEST_TIMEOUT,
        ),
        notifications=InAppNotificationStore(db),
        max_concurrency=settings.PUSH_MAX_CONCURRENCY,
    )
