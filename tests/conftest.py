"""
Pytest configuration and fixtures for lessonguard tests.

No test needs a running database: db_service methods are replaced with an
in-memory FakeDatabase and route tests override get_db/get_current_user.
"""
import os
from typing import AsyncGenerator
from unittest.mock import AsyncMock

import pytest
from httpx import AsyncClient, ASGITransport

# Set required environment variables before importing Settings to avoid validation error
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key-for-testing-only-not-for-production")
os.environ.setdefault("DATABASE_PASSWORD", "password")
os.environ.setdefault("CONTENT_MASTER_KEY", "test-content-master-key-0123456789")
os.environ.setdefault("MEDIA_BASE_URL", "http://media.test")

from lessonguard.database import get_db
from lessonguard.main import app
from lessonguard.middleware.jwt import get_current_user
from lessonguard.models.user import SubscriptionStatus, User
from lessonguard.services.database import db_service
from lessonguard.services.encryption_providers.local_key import LocalKeyProvider
from lessonguard.services.envelope_encryption import EnvelopeEncryptionService
from lessonguard.services.playback_token import PlaybackTokenService
from lessonguard.services.token_store import InMemoryTokenStore
from tests.fakes import FakeDatabase, FakeViewerHost, MutableClock, make_user

TEST_MASTER_KEY = "test-master-key-12345678"


@pytest.fixture
def fake_db(monkeypatch) -> FakeDatabase:
    """Route every db_service call to an in-memory FakeDatabase."""
    fake = FakeDatabase()
    for name in FakeDatabase.METHODS:
        monkeypatch.setattr(db_service, name, getattr(fake, name))
    return fake


@pytest.fixture
def db_session() -> AsyncMock:
    """Stand-in session; FakeDatabase ignores it."""
    return AsyncMock()


@pytest.fixture
def key_provider() -> LocalKeyProvider:
    provider = LocalKeyProvider.init({"v1": TEST_MASTER_KEY}, current_version="v1")
    yield provider
    provider.teardown()


@pytest.fixture
def encryption_service(key_provider) -> EnvelopeEncryptionService:
    return EnvelopeEncryptionService(key_provider)


@pytest.fixture
def clock() -> MutableClock:
    return MutableClock()


@pytest.fixture
def token_service(clock) -> PlaybackTokenService:
    return PlaybackTokenService(
        store=InMemoryTokenStore(),
        media_base_url="http://media.test",
        ttl_minutes=15,
        bind_device=True,
        clock=clock,
    )

@pytest.fixture
def active_user(fake_db) -> User:
    return fake_db.add_user(make_user(SubscriptionStatus.ACTIVE))


@pytest.fixture
def free_user(fake_db) -> User:
    return fake_db.add_user(make_user(SubscriptionStatus.FREE, email="free@example.com"))


@pytest.fixture
def viewer_host() -> FakeViewerHost:
    return FakeViewerHost()


@pytest.fixture
def current_user(active_user):
    """User returned by the overridden session dependency; tests may swap it."""
    return {"user": active_user}


@pytest.fixture
async def client(
    fake_db,
    db_session,
    current_user,
    encryption_service,
    token_service,
    tmp_path,
    monkeypatch,
) -> AsyncGenerator[AsyncClient, None]:
    """
    Async test client for the FastAPI application.

    Lifespan does not run under ASGITransport, so services are placed on
    app.state directly.
    """
    from lessonguard.config import settings

    monkeypatch.setattr(settings, "MEDIA_STORAGE_PATH", str(tmp_path))

    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_current_user] = lambda: current_user["user"]

    app.state.encryption_service = encryption_service
    app.state.token_service = token_service

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test"
    ) as ac:
        yield ac

    app.dependency_overrides.clear()
    app.state.encryption_service = None
    app.state.token_service = None
