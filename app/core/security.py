from datetime import datetime, timedelta, timezone
from typing import Optional

from jose import jwt

from app.core.config import settings

ALGORITHM = "HS256"

def create_access_token(user_id: str, expires_delta: Optional[timedelta] = None) -> str:
    """Gera o token de sessão do usuário (emitido pelo serviço de auth; aqui só os testes chamam)."""
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(minutes=30))
    to_encode = {"sub": str(user_id), "exp": expire}
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=ALGORITHM)

def decode_access_token(token: str) -> dict:
    return jwt.decode(token, settings.SECRET_KEY, algorithms=[ALGORITHM])
