"""Engine and transaction scope for the TWX store.

One engine per process, created on first use from ``DATABASE_URL``. Every
service call runs inside ``get_session()``: a single transaction that
commits when the block exits and rolls back when it raises, so a workflow
step never leaves half of its rows behind.
"""

from __future__ import annotations

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Any

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker

from twx.config import DBConfig, get_config
from twx.db.models import Base

_engine: AsyncEngine | None = None
_session_factory: sessionmaker | None = None


def _engine_options(db_config: DBConfig) -> dict[str, Any]:
    options: dict[str, Any] = {"echo": db_config.echo}
    if db_config.url.lower().startswith("sqlite"):
        return options
    options.update(
        pool_size=db_config.pool_size,
        max_overflow=db_config.pool_max_overflow,
        pool_timeout=db_config.pool_timeout,
        pool_pre_ping=True,
        pool_recycle=3600,
    )
    return options


def get_engine() -> AsyncEngine:
    """Process-wide async engine.

    Raises:
        KeyError: If DATABASE_URL is not configured
    """
    global _engine

    if _engine is None:
        db_config = get_config().db
        _engine = create_async_engine(db_config.url, **_engine_options(db_config))
    return _engine


def get_session_factory() -> sessionmaker:
    global _session_factory

    if _session_factory is None:
        # Rows stay readable after commit; responses are built from them
        _session_factory = sessionmaker(
            get_engine(), class_=AsyncSession, expire_on_commit=False
        )
    return _session_factory


@asynccontextmanager
async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """Transaction scope for one API request or CLI command.

    Usage:
        async with get_session() as session:
            element = await AssetRegistry(session).register(...)
    """
    session = get_session_factory()()
    try:
        yield session
        await session.commit()
    except Exception:
        await session.rollback()
        raise
    finally:
        await session.close()


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency form of ``get_session``."""
    async with get_session() as session:
        yield session


async def init_db(drop: bool = False) -> None:
    """Create the TWX tables, optionally dropping them first."""
    async with get_engine().begin() as conn:
        if drop:
            await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)


async def close_db() -> None:
    """Dispose the engine; the next call to ``get_engine`` builds a new one."""
    global _engine, _session_factory

    if _engine is not None:
        await _engine.dispose()
    _engine = None
    _session_factory = None
