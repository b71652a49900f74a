import logging
from contextlib import asynccontextmanager

import httpx
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.core.config import settings
from app.api.v1.router import api_router
from app.api.v1.endpoints import push
from app.services.credentials import CredentialManager

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)

@asynccontextmanager
async def lifespan(app: FastAPI):
    # Um cliente HTTP/2 compartilhado (APNs exige HTTP/2) e um gerenciador de credenciais por processo
    app.state.http_client = httpx.AsyncClient(http2=True, timeout=settings.PUSH_REQUEST_TIMEOUT)
    app.state.credentials = CredentialManager(
        settings.APNS_KEY_ID,
        settings.APNS_TEAM_ID,
        settings.APNS_PRIVATE_KEY,
        ttl=settings.PUSH_TOKEN_TTL_SECONDS,
    )

    if not app.state.credentials.configured:
        logger.warning("⚠️ APNs não configurado: só web push será entregue")
    if not settings.VAPID_PRIVATE_KEY:
        logger.warning("⚠️ VAPID não configurado: só push nativo será entregue")

    logger.info("--- 🚀 Paddock Push no ar ---")
    yield
    await app.state.http_client.aclose()

app = FastAPI(
    title=settings.PROJECT_NAME,
    lifespan=lifespan
)

origins = [
    "http://localhost:8080",
    "capacitor://localhost",
    settings.FRONTEND_URL,
]
origins = list(set(origins))

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Mesmo caminho da antiga função /send-push, usado pelo cron de notícias e pelo admin
app.include_router(push.router, tags=["push"])
app.include_router(api_router, prefix=settings.API_V1_STR)

@app.get("/")
def root():
    return {"message": "Paddock Push está rodando!"}
