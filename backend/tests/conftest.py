"""Pytest configuration and fixtures for sellerboard tests.

Provides an in-memory SQLite database, in-memory stand-ins for the Redis
token store and the upload store, a StepController wired to them, and
an HTTP client with the same collaborators injected via dependency
overrides.
"""

import os

# Settings are read at import time; keep tests off Postgres/Redis
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")
os.environ.setdefault("DEBUG", "false")

import secrets
from typing import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from sellerboard.database import Base, get_db
from sellerboard.main import app
from sellerboard.middleware.exceptions import UploadError
from sellerboard.models.seller_onboarding import SellerOnboarding
from sellerboard.routers.onboarding import get_session_identity, get_upload_store
from sellerboard.services.onboarding import StepController
from sellerboard.services.record_store import RecordStore


SHOP_INFO = {
    "shop_name": "Acme Goods",
    "country": "US",
    "state": "CA",
    "postal": "94000",
    "address1": "1 Main St",
    "city": "Metropolis",
    "phone": "555-0100",
}


# ── Collaborator fakes ───────────────────────────────────────────

class InMemorySessionIdentity:
    """Token → record id map with the SessionIdentityHolder interface."""

    def __init__(self):
        self.tokens: dict[str, str] = {}

    async def get(self, token: str | None) -> str | None:
        if not token:
            return None
        return self.tokens.get(token)

    async def set(self, record_id: str) -> str:
        token = secrets.token_urlsafe(16)
        self.tokens[token] = record_id
        return token

    async def clear(self, token: str | None) -> None:
        if token:
            self.tokens.pop(token, None)


class InMemoryUploadStore:
    """Keeps uploaded bytes in a dict; `fail=True` simulates a broken disk."""

    def __init__(self):
        self.files: dict[str, bytes] = {}
        self.fail = False

    async def store(self, category: str, filename: str, data: bytes) -> str:
        if self.fail:
            raise UploadError(f"disk full while writing {filename}")
        reference = f"{category}/{len(self.files) + 1:04d}-{filename}"
        self.files[reference] = data
        return reference


# ── Database ─────────────────────────────────────────────────────

@pytest_asyncio.fixture
async def test_engine():
    """In-memory SQLite shared by every session of one test."""
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(test_engine):
    return async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest.fixture
def load_record(session_factory):
    """Read a record through a fresh session (what another request would see)."""

    async def _load(record_id: str) -> SellerOnboarding | None:
        async with session_factory() as session:
            return await session.get(SellerOnboarding, record_id)

    return _load


@pytest.fixture
def count_records(session_factory):
    from sqlalchemy import func, select

    async def _count() -> int:
        async with session_factory() as session:
            result = await session.execute(select(func.count(SellerOnboarding.id)))
            return result.scalar_one()

    return _count


# ── Onboarding collaborators ─────────────────────────────────────

@pytest.fixture
def sessions() -> InMemorySessionIdentity:
    return InMemorySessionIdentity()


@pytest.fixture
def uploads() -> InMemoryUploadStore:
    return InMemoryUploadStore()


@pytest.fixture
def controller(db_session, sessions, uploads) -> StepController:
    return StepController(RecordStore(db_session), sessions, uploads)


@pytest.fixture
def shop_info() -> dict:
    return dict(SHOP_INFO)


# ── HTTP client ──────────────────────────────────────────────────

@pytest_asyncio.fixture
async def client(session_factory, sessions, uploads) -> AsyncGenerator[AsyncClient, None]:
    """Test client with database, token store and upload store overridden."""

    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_session_identity] = lambda: sessions
    app.dependency_overrides[get_upload_store] = lambda: uploads

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()


# ── Test Markers ─────────────────────────────────────────────────

def pytest_configure(config):
    """Configure custom markers."""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "api: HTTP endpoint tests")
    config.addinivalue_line("markers", "integration: Integration tests")
