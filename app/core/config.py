from pydantic_settings import BaseSettings
from typing import Optional

class Settings(BaseSettings):
    # --- GERAIS ---
    API_V1_STR: str = "/api/v1"
    PROJECT_NAME: str = "Paddock Push"
    SECRET_KEY: str

    # --- BANCO DE DADOS ---
    SQLALCHEMY_DATABASE_URI: str

    # --- URLs ---
    FRONTEND_URL: str = "http://localhost:8080"

    # --- APNS (iOS nativo) ---
    # Sem as três credenciais o canal nativo fica desligado, mas o web push continua.
    APNS_KEY_ID: Optional[str] = None
    APNS_TEAM_ID: Optional[str] = None
    APNS_PRIVATE_KEY: Optional[str] = None
    APNS_TOPIC: str = "app.paddock.collector"
    APNS_USE_SANDBOX: bool = False

    # --- WEB PUSH (VAPID) ---
    VAPID_PRIVATE_KEY: Optional[str] = None
    VAPID_PUBLIC_KEY: Optional[str] = None
    VAPID_CLAIMS_EMAIL: str = "mailto:contato@paddock.app"

    # --- DISPARO ---
    PUSH_API_KEY: Optional[str] = None
    PUSH_REQUEST_TIMEOUT: float = 10.0
    PUSH_MAX_CONCURRENCY: int = 20
    # 50 minutos: a Apple recusa tokens com mais de 1 hora
    PUSH_TOKEN_TTL_SECONDS: int = 3000

    class Config:
        env_file = ".env"
        case_sensitive = True

settings = Settings()
