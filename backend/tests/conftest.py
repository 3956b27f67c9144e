"""Pytest configuration for tests directory."""
import json
import sys
from pathlib import Path

# Add the backend directory to Python path
backend_dir = Path(__file__).parent.parent
if str(backend_dir) not in sys.path:
    sys.path.insert(0, str(backend_dir))

import httpx
import pytest
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from app.infra.db.base import Base
from app.infra.db.models import DeviceTokenModel, UserTaskModel  # noqa: F401
from app.infra.push.fcm import FcmProvider
from app.infra.push.service_account import ServiceAccount

pytest_plugins = ("pytest_asyncio",)


def pytest_configure(config):
    """Register markers and force asyncio_mode=auto."""
    config.addinivalue_line(
        "markers", "asyncio: mark test as async (requires pytest-asyncio)"
    )
    config.addinivalue_line(
        "markers", "integration: marks tests that need a real DB (deselect with '-m \"not integration\"')"
    )
    # Async tests/fixtures run without @pytest.mark.asyncio on each
    config.option.asyncio_mode = getattr(config.option, "asyncio_mode", None) or "auto"


@pytest.fixture
async def db_session():
    """In-memory SQLite session with the ORM tables created."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    async with session_factory() as session:
        yield session

    await engine.dispose()


@pytest.fixture(scope="session")
def rsa_private_key_pem() -> str:
    """Throwaway RSA key for signing service-account assertions."""
    key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    return key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    ).decode("utf-8")


@pytest.fixture
def service_account_info(rsa_private_key_pem) -> dict:
    return {
        "type": "service_account",
        "project_id": "household-test",
        "private_key_id": "key-1",
        "private_key": rsa_private_key_pem,
        "client_email": "push@household-test.iam.gserviceaccount.com",
        "client_id": "1234567890",
        "token_uri": "https://oauth2.googleapis.com/token",
    }


@pytest.fixture
def service_account_json(service_account_info) -> str:
    return json.dumps(service_account_info)


NOT_FOUND_BODY = {
    "error": {
        "code": 404,
        "message": "Requested entity was not found.",
        "status": "NOT_FOUND",
        "details": [
            {"@type": "type.googleapis.com/google.firebase.fcm.v1.FcmError", "errorCode": "UNREGISTERED"}
        ],
    }
}

UNAVAILABLE_BODY = {
    "error": {"code": 503, "message": "The service is currently unavailable.", "status": "UNAVAILABLE"}
}


class FakeFcm:
    """MockTransport handler for the OAuth token endpoint and the FCM send endpoint."""

    def __init__(self):
        # token -> (status, json body); tokens not listed succeed
        self.responses: dict[str, tuple[int, dict]] = {}
        self.token_status = 200
        self.token_requests = 0
        self.messages: list[dict] = []
        self.send_urls: list[str] = []
        self.auth_headers: list[str] = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        if request.url.host == "oauth2.googleapis.com":
            self.token_requests += 1
            if self.token_status != 200:
                return httpx.Response(self.token_status, json={"error": "invalid_grant"})
            return httpx.Response(200, json={"access_token": "ya29.fake", "expires_in": 3599})
        message = json.loads(request.content)["message"]
        self.messages.append(message)
        self.send_urls.append(str(request.url))
        self.auth_headers.append(request.headers.get("authorization", ""))
        status, body = self.responses.get(message["token"], (200, {"name": "projects/household-test/messages/1"}))
        return httpx.Response(status, json=body)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    @property
    def sent_tokens(self) -> list[str]:
        return [m["token"] for m in self.messages]


@pytest.fixture
def fake_fcm() -> FakeFcm:
    return FakeFcm()


@pytest.fixture
def fcm_provider(fake_fcm, service_account_info) -> FcmProvider:
    return FcmProvider(lambda: ServiceAccount(**service_account_info), transport=fake_fcm.transport)
