"""Shared test fixtures for FLAIM auth."""

from collections.abc import AsyncIterator
from datetime import UTC, datetime

import pytest
from cryptography.fernet import Fernet
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient
from sqlalchemy import event
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from flaim.core.app import create_app
from flaim.core.settings import AuthSettings
from flaim.db.base import BaseEntity
from flaim.db.engine import get_session
from flaim.tokens.rotation import KeyRotationManager

FERNET_KEY = Fernet.generate_key().decode()
WEBHOOK_SECRET = "whsec_test_secret"
INTERNAL_TOKEN = "test-internal-token"
EPOCH = datetime(2026, 1, 1, tzinfo=UTC)


@pytest.fixture(autouse=True)
def _set_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Set environment variables for test settings."""
    monkeypatch.setenv("AUTH_SIGNING_KEY_ENCRYPTION_KEY", FERNET_KEY)
    monkeypatch.setenv("AUTH_INTERNAL_TOKEN", INTERNAL_TOKEN)
    monkeypatch.setenv("AUTH_BOOTSTRAP_SECRET", "")
    monkeypatch.setenv("AUTH_ROTATION_CHECK_INTERVAL", "0")
    monkeypatch.setenv("STRIPE_WEBHOOK_SECRET", WEBHOOK_SECRET)
    monkeypatch.setenv("STRIPE_API_KEY", "sk_test_unused")


@pytest.fixture
def settings() -> AuthSettings:
    return AuthSettings()


@pytest.fixture
async def db_session() -> AsyncIterator[AsyncSession]:
    """Create an in-memory SQLite async session for tests."""
    engine = create_async_engine("sqlite+aiosqlite://", echo=False)

    @event.listens_for(engine.sync_engine, "connect")
    def _set_sqlite_pragma(dbapi_conn, _rec) -> None:
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA journal_mode=WAL")
        cursor.close()

    async with engine.begin() as conn:
        await conn.run_sync(BaseEntity.metadata.create_all)

    factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    async with factory() as session:
        yield session

    await engine.dispose()


@pytest.fixture
def key_manager(db_session: AsyncSession, settings: AuthSettings) -> KeyRotationManager:
    return KeyRotationManager(db_session, settings)


@pytest.fixture
def app(db_session: AsyncSession) -> FastAPI:
    """Application with the request session bound to the test database."""
    application = create_app()

    async def _override_session() -> AsyncIterator[AsyncSession]:
        try:
            yield db_session
            await db_session.commit()
        except Exception:
            await db_session.rollback()
            raise

    application.dependency_overrides[get_session] = _override_session
    return application


@pytest.fixture
async def client(app: FastAPI) -> AsyncIterator[AsyncClient]:
    """Create an httpx test client against the app."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="https://test") as ac:
        yield ac
