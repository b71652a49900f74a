import asyncio
import os

# Settings() é instanciado no import de app.core.config
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("SQLALCHEMY_DATABASE_URI", "sqlite://")
os.environ.setdefault("VAPID_PRIVATE_KEY", "test-vapid-private-key")
os.environ.setdefault("VAPID_PUBLIC_KEY", "test-vapid-public-key")

import httpx
import pytest
import requests
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ec
from pywebpush import WebPushException
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.db.base import Base
from app.models.subscription import PushSubscription
from app.models.notification import InAppNotification  # noqa: F401 (registra a tabela)
from app.services.apns import ApnsAdapter
from app.services.credentials import CredentialManager
from app.services.notifications import InAppNotificationStore
from app.services.push import PushService
from app.services.targets import PushTargetStore
from app.services.webpush import WebPushAdapter


def _pem(private_key):
    private_pem = private_key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    ).decode()
    public_pem = private_key.public_key().public_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PublicFormat.SubjectPublicKeyInfo,
    ).decode()
    return private_pem, public_pem


@pytest.fixture(scope="session")
def ec_keypair():
    """Par de chaves P-256 efêmero (private_pem, public_pem)."""
    return _pem(ec.generate_private_key(ec.SECP256R1()))


class FakeClock:
    def __init__(self, now=1_700_000_000.0):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def credentials(ec_keypair, clock):
    return CredentialManager("KEY123", "TEAM123", ec_keypair[0], clock=clock)


# --- Banco ---

@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def db(engine):
    session = sessionmaker(autocommit=False, autoflush=False, bind=engine)()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def add_subscription(db):
    def _add(endpoint, user_id=None, topics=None, p256dh="BPUBKEY", auth="AUTHKEY"):
        sub = PushSubscription(
            user_id=user_id,
            endpoint=endpoint,
            p256dh=p256dh,
            auth=auth,
            topics=topics if topics is not None else [],
        )
        db.add(sub)
        db.commit()
        return sub.id
    return _add


# --- APNs falso (httpx.MockTransport) ---

class FakeApns:
    def __init__(self):
        self.statuses = {}
        self.requests = []

    def handler(self, request):
        self.requests.append(request)
        token = request.url.path.rsplit("/", 1)[-1]
        status = self.statuses.get(token, 200)
        if isinstance(status, Exception):
            raise status
        if status == 200:
            return httpx.Response(200)
        return httpx.Response(status, text='{"reason":"Unregistered"}')


@pytest.fixture
def fake_apns():
    return FakeApns()


def _open_apns_client(handler):
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    yield client
    # Loop próprio: o cliente serve tanto os testes síncronos (TestClient) quanto os async
    loop = asyncio.new_event_loop()
    try:
        loop.run_until_complete(client.aclose())
    finally:
        loop.close()


@pytest.fixture
def open_apns_client():
    return _open_apns_client


@pytest.fixture
def apns_client(fake_apns, open_apns_client):
    yield from open_apns_client(fake_apns.handler)


# --- Web push falso (substitui pywebpush.webpush) ---

class FakeWebPush:
    def __init__(self):
        self.statuses = {}
        self.calls = []

    def __call__(self, subscription_info, data, **kwargs):
        self.calls.append({"subscription_info": subscription_info, "data": data, **kwargs})
        status = self.statuses.get(subscription_info["endpoint"], 201)
        if isinstance(status, Exception):
            raise status
        response = requests.Response()
        response.status_code = status
        response._content = b""
        if status > 202:
            raise WebPushException(f"Push failed: {status}", response=response)
        return response


@pytest.fixture
def fake_webpush(monkeypatch):
    fake = FakeWebPush()
    monkeypatch.setattr("app.services.webpush.webpush", fake)
    return fake


@pytest.fixture
def push_service(db, credentials, apns_client, fake_webpush):
    return PushService(
        store=PushTargetStore(db),
        credentials=credentials,
        apns=ApnsAdapter(apns_client, topic="app.paddock.collector"),
        webpush=WebPushAdapter("test-vapid-private-key", "mailto:test@paddock.app"),
        notifications=InAppNotificationStore(db),
    )
