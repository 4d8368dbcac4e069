"""
Shared fixtures: in-memory database, app wired to a fake Google endpoint.
"""
from typing import Any, Dict
from urllib.parse import parse_qs

import httpx
import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from wakeup.base_microservice import init_models
from wakeup.config import Settings
from wakeup.main import create_app
from wakeup.auth.jwt import TokenCodec
from wakeup.auth.passwords import PasswordHasher
from wakeup.auth.sessions import SessionManager
from wakeup.auth.store import UserStore

TEST_SECRET = "test_jwt_secret_" + "0123456789abcdef" * 3
TOKENINFO_URL = "https://google.test/oauth2/v1/tokeninfo"


@pytest.fixture
def settings() -> Settings:
    return Settings(
        jwt_secret=TEST_SECRET,
        # lowest cost bcrypt accepts, keeps the suite fast
        bcrypt_rounds=4,
        database_url="sqlite+aiosqlite:///:memory:",
        google_tokeninfo_url=TOKENINFO_URL,
    )


@pytest_asyncio.fixture
async def engine():
    # In-memory SQLite shared across connections through StaticPool.
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    await init_models(engine)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def db(engine):
    async with async_sessionmaker(engine, expire_on_commit=False)() as session:
        yield session


@pytest.fixture
def codec(settings) -> TokenCodec:
    return TokenCodec(settings)


@pytest.fixture
def hasher(settings) -> PasswordHasher:
    return PasswordHasher(rounds=settings.bcrypt_rounds)


@pytest.fixture
def sessions(db, hasher, codec) -> SessionManager:
    return SessionManager(UserStore(db), hasher, codec)


@pytest.fixture
def google_accounts() -> Dict[str, Dict[str, Any]]:
    """Google access token -> tokeninfo body. Unknown tokens get a 400."""
    return {}


@pytest.fixture
def google_transport(google_accounts):
    def handler(request: httpx.Request) -> httpx.Response:
        form = parse_qs(request.content.decode("utf-8"))
        token = form.get("access_token", [None])[0]
        if token == "unreachable":
            raise httpx.ConnectError("connection refused", request=request)
        if token == "server-error":
            return httpx.Response(503, text="unavailable")
        if token not in google_accounts:
            return httpx.Response(400, json={"error": "invalid_token"})
        return httpx.Response(200, json=google_accounts[token])

    return httpx.MockTransport(handler)


@pytest_asyncio.fixture
async def google_client(google_transport):
    async with httpx.AsyncClient(transport=google_transport) as client:
        yield client


@pytest.fixture
def app(settings, engine, google_client):
    return create_app(settings, engine=engine, http_client=google_client)


@pytest_asyncio.fixture
async def client(app):
    transport = ASGITransport(app=app)
    async with AsyncClient(base_url="http://test", transport=transport) as ac:
        yield ac
