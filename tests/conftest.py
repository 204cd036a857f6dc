"""Pytest configuration and fixtures for TWX tests.

Provides common fixtures for testing.
"""

from __future__ import annotations

import os

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker

# Modules that read the config at import time need a database URL
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")

from twx.config import AppConfig, DBConfig, reset_config  # noqa: E402
from twx.db.models import Base  # noqa: E402
from twx.models import Actor  # noqa: E402


@pytest.fixture(autouse=True)
def _isolated_config(monkeypatch):
    """Every test starts from a known environment."""
    monkeypatch.setenv("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
    for name in (
        "TWX_AUTH_DISABLED",
        "TWX_DIRECT_LINK_TRANSFERS",
        "TWX_SCAN_CODE_PREFIX",
        "TWX_ASSET_NUMBER_WIDTH",
        "ENVIRONMENT",
    ):
        monkeypatch.delenv(name, raising=False)
    reset_config()
    yield
    reset_config()


@pytest.fixture
def app_config() -> AppConfig:
    """Default configuration against an in-memory database."""
    return AppConfig(db=DBConfig(url="sqlite+aiosqlite:///:memory:"))


@pytest.fixture
def strict_config() -> AppConfig:
    """Configuration with the link shortcut disabled."""
    config = AppConfig(db=DBConfig(url="sqlite+aiosqlite:///:memory:"))
    config.workflow.direct_link_transfers = False
    return config


@pytest_asyncio.fixture()
async def db_session() -> AsyncSession:
    """Create in-memory database for testing."""
    engine = create_async_engine("sqlite+aiosqlite:///:memory:")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    SessionLocal = sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    session = SessionLocal()
    try:
        yield session
    finally:
        await session.close()
        await engine.dispose()


@pytest.fixture
def alice() -> Actor:
    """Field engineer registering and linking assets."""
    return Actor(id="user-alice", email="alice@example.com", display_name="Alice")


@pytest.fixture
def bob() -> Actor:
    """Source project manager."""
    return Actor(id="user-bob", display_name="Bob")


@pytest.fixture
def carol() -> Actor:
    """Destination project manager."""
    return Actor(id="user-carol", display_name="Carol")
