"""Pytest configuration for repository test runs."""

from __future__ import annotations

import asyncio
import os
from collections.abc import Iterator
from datetime import datetime, timezone
from decimal import Decimal
from pathlib import Path

# Settings are read at import time; point them at test values first.
os.environ.setdefault("DB_URL", "sqlite+aiosqlite://")
os.environ.setdefault("LOG_FORMAT", "text")
os.environ.setdefault("JWT_KEY", "test-signing-key-that-is-long-enough-for-hs256")

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from spacemissions import models


async def _create_schema(engine) -> None:
    async with engine.begin() as conn:
        await conn.run_sync(models.Base.metadata.create_all)


@pytest.fixture
def session_factory(tmp_path: Path) -> Iterator[async_sessionmaker[AsyncSession]]:
    """Session factory bound to a fresh on-disk SQLite database.

    NullPool keeps connections out of any one event loop, so each
    ``asyncio.run`` call in a test gets its own connection.
    """
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'missions.db'}", poolclass=NullPool)
    asyncio.run(_create_schema(engine))
    yield async_sessionmaker(bind=engine, expire_on_commit=False, class_=AsyncSession)
    asyncio.run(engine.dispose())


def utc(year: int, month: int, day: int, hour: int = 0, minute: int = 0) -> datetime:
    return datetime(year, month, day, hour, minute, tzinfo=timezone.utc)


async def seed_catalog(session_factory, rockets: list[tuple[str, bool]], missions: list[dict]) -> list[int]:
    """Insert rockets then missions; ``rocket`` in a mission dict is a rocket index or None.

    Returns:
        Mission ids in insertion order.
    """
    async with session_factory() as session:
        rocket_rows = [models.Rocket(name=name, is_active=active) for name, active in rockets]
        session.add_all(rocket_rows)
        await session.flush()

        mission_rows = []
        for row in missions:
            rocket_index = row.get("rocket")
            mission_rows.append(
                models.Mission(
                    company=row.get("company", ""),
                    location=row.get("location", ""),
                    launch_datetime=row.get("launch_datetime", utc(2020, 1, 1)),
                    mission_name=row["mission_name"],
                    mission_status=row.get("mission_status"),
                    price=row.get("price"),
                    rocket_id=rocket_rows[rocket_index].id if rocket_index is not None else None,
                )
            )
        session.add_all(mission_rows)
        await session.commit()
        return [m.id for m in mission_rows]


SAMPLE_MISSIONS = [
    {"company": "SpaceX", "mission_name": "Starlink 1", "mission_status": "Success",
     "launch_datetime": utc(2020, 1, 7, 2, 19), "rocket": 0, "price": Decimal("50")},
    {"company": "RVSN USSR", "mission_name": "Sputnik 1", "mission_status": "Success",
     "launch_datetime": utc(1957, 10, 4, 19, 28), "rocket": 1},
    {"company": "SpaceX", "mission_name": "Amos-6", "mission_status": "Prelaunch Failure",
     "launch_datetime": utc(2016, 9, 1, 13, 7), "rocket": 0},
    {"company": "NASA", "mission_name": "Apollo 11", "mission_status": "Success",
     "launch_datetime": utc(1969, 7, 16, 13, 32), "rocket": 2},
    {"company": "Blue Origin", "mission_name": "NS-1", "mission_status": "Failure",
     "launch_datetime": utc(2015, 4, 29), "rocket": None},
    {"company": "SpaceX", "mission_name": "Crew-1", "mission_status": "Success",
     "launch_datetime": utc(2020, 11, 16, 0, 27), "rocket": 0},
    {"company": "ExPace", "mission_name": "Jilin-1", "mission_status": "Failure",
     "launch_datetime": utc(2020, 7, 10, 4, 17), "rocket": 3},
]

SAMPLE_ROCKETS = [("Falcon 9", True), ("Sputnik 8K71PS", False), ("Saturn V", False), ("Kuaizhou 11", True)]


@pytest.fixture
def seeded_factory(session_factory):
    """Session factory over a database holding the sample catalog."""
    asyncio.run(seed_catalog(session_factory, SAMPLE_ROCKETS, SAMPLE_MISSIONS))
    return session_factory
