"""Concurrent registration against a file-backed SQLite database.

Each registration runs in its own session and transaction, the way
concurrent API requests do.
"""

from __future__ import annotations

import asyncio

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker

from twx.db.models import Base
from twx.models import Actor
from twx.registry.service import AssetRegistry


@pytest_asyncio.fixture()
async def session_factory(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'twx.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    await engine.dispose()


@pytest.mark.asyncio
async def test_concurrent_registrations_get_distinct_sequential_numbers(
    session_factory, app_config
):
    actor = Actor(id="user-field")

    async def register_one(n: int) -> str:
        async with session_factory() as session:
            element = await AssetRegistry(session, app_config).register(
                "IfcColumn", f"proj-{n % 3}", "Good", actor
            )
            await session.commit()
            return element.asset_number

    numbers = await asyncio.gather(*(register_one(n) for n in range(10)))

    assert len(set(numbers)) == 10
    assert sorted(numbers) == [f"IfcColumn-{i:06d}" for i in range(1, 11)]


@pytest.mark.asyncio
async def test_rolled_back_registration_releases_its_number(session_factory, app_config):
    actor = Actor(id="user-field")

    async with session_factory() as session:
        await AssetRegistry(session, app_config).register("IfcBeam", "proj-a", "Good", actor)
        await session.rollback()

    async with session_factory() as session:
        element = await AssetRegistry(session, app_config).register(
            "IfcBeam", "proj-a", "Good", actor
        )
        await session.commit()

    assert element.asset_number == "IfcBeam-000001"
