"""Integration tests for batch ingestion against a real database."""

from __future__ import annotations

import asyncio
from datetime import datetime, timezone
from decimal import Decimal
from pathlib import Path

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import OperationalError

from spacemissions import models
from spacemissions.errors import ConflictError, IngestionError
from spacemissions.pipelines.ingest import import_csv, ingest_records
from spacemissions.pipelines.normalization import RawMissionRecord, RejectionReason
from spacemissions.pipelines.rockets import RocketResolver


def _raw(mission_name: str, rocket_name: str | None = "Falcon 9", **overrides) -> RawMissionRecord:
    values = {
        "company": "SpaceX",
        "location": "SLC-40, Cape Canaveral, USA",
        "date": "2020-01-01",
        "time": "12:30:00",
        "rocket_name": rocket_name,
        "rocket_status": "Active",
        "mission_name": mission_name,
        "price": "50",
        "mission_status": "Success",
    }
    values.update(overrides)
    return RawMissionRecord(**values)


async def _ingest(session_factory, records):
    async with session_factory() as session:
        return await ingest_records(session, records)


async def _counts(session_factory) -> tuple[int, int]:
    async with session_factory() as session:
        rockets = (await session.execute(select(func.count(models.Rocket.id)))).scalar_one()
        missions = (await session.execute(select(func.count(models.Mission.id)))).scalar_one()
        return rockets, missions


async def _all_missions(session_factory) -> list[models.Mission]:
    async with session_factory() as session:
        result = await session.execute(select(models.Mission).order_by(models.Mission.id))
        return list(result.scalars().all())


def test_rocket_names_deduplicate_case_insensitively(session_factory) -> None:
    """Spelling variants of one rocket in a batch should create a single rocket."""
    report = asyncio.run(
        _ingest(session_factory, [_raw("A", "Falcon 9"), _raw("B", "falcon 9"), _raw("C", " FALCON 9 ")])
    )
    missions = asyncio.run(_all_missions(session_factory))

    assert report.rockets_added == 1 and report.missions_added == 3
    assert len({m.rocket_id for m in missions}) == 1
    assert asyncio.run(_counts(session_factory)) == (1, 3)


def test_first_spelling_names_the_new_rocket(session_factory) -> None:
    asyncio.run(_ingest(session_factory, [_raw("A", "Falcon 9"), _raw("B", "FALCON 9")]))

    async def _names():
        async with session_factory() as session:
            return list((await session.execute(select(models.Rocket.name))).scalars())

    assert asyncio.run(_names()) == ["Falcon 9"]


def test_existing_rocket_is_reused(session_factory) -> None:
    """A stored rocket should be linked, not duplicated, and keep its flag."""

    async def _seed() -> int:
        async with session_factory() as session:
            rocket = models.Rocket(name="Falcon 9", is_active=False)
            session.add(rocket)
            await session.commit()
            return rocket.id

    rocket_id = asyncio.run(_seed())
    report = asyncio.run(_ingest(session_factory, [_raw("A", "falcon 9", rocket_status="Active")]))
    (mission,) = asyncio.run(_all_missions(session_factory))

    async def _rocket():
        async with session_factory() as session:
            return await session.get(models.Rocket, rocket_id)

    assert report.rockets_added == 0 and mission.rocket_id == rocket_id
    assert asyncio.run(_rocket()).is_active is False


def test_bad_rows_are_skipped_and_reported(session_factory) -> None:
    """Rows with missing names or unparsable dates should be counted, not stored."""
    records = [
        _raw("Good"),
        _raw("Bad date", date="someday"),
        _raw("No rocket", rocket_name=None),
        _raw("", rocket_name="Soyuz"),
    ]

    report = asyncio.run(_ingest(session_factory, records))

    assert report.loaded == 4 and report.skipped == 3 and report.missions_added == 1
    assert report.rejections == [
        (1, RejectionReason.INVALID_DATETIME),
        (2, RejectionReason.MISSING_REQUIRED_FIELD),
        (3, RejectionReason.MISSING_REQUIRED_FIELD),
    ]
    # The rejected row's rocket must not be created either.
    assert asyncio.run(_counts(session_factory)) == (1, 1)


def test_stored_values_are_typed(session_factory) -> None:
    """Stored missions should carry UTC timestamps and decimal prices."""
    asyncio.run(_ingest(session_factory, [_raw("A", price="$1,250.50", date="2021-03-04", time=None)]))
    (mission,) = asyncio.run(_all_missions(session_factory))

    assert mission.launch_datetime == datetime(2021, 3, 4, tzinfo=timezone.utc)
    assert mission.price == Decimal("1250.50")


def test_empty_batch_writes_nothing(session_factory) -> None:
    report = asyncio.run(_ingest(session_factory, []))

    assert report.loaded == 0 and report.missions_added == 0
    assert asyncio.run(_counts(session_factory)) == (0, 0)


def test_failed_write_rolls_back_everything(session_factory, monkeypatch) -> None:
    """A storage failure should leave no rockets or missions behind."""
    from sqlalchemy.ext.asyncio import AsyncSession

    original_commit = AsyncSession.commit

    async def _failing_commit(self):
        raise OperationalError("COMMIT", {}, Exception("disk full"))

    monkeypatch.setattr(AsyncSession, "commit", _failing_commit)
    with pytest.raises(IngestionError):
        asyncio.run(_ingest(session_factory, [_raw("A"), _raw("B", "Soyuz")]))
    monkeypatch.setattr(AsyncSession, "commit", original_commit)

    assert asyncio.run(_counts(session_factory)) == (0, 0)


def test_resolver_queries_storage_once_per_name(session_factory) -> None:
    """Repeated names should be served from the per-run cache."""

    async def _resolve():
        async with session_factory() as session:
            resolver = RocketResolver(session)
            first = await resolver.resolve("Falcon 9", True)
            second = await resolver.resolve("FALCON 9", False)
            third = await resolver.resolve("Soyuz", False)
            return resolver, first, second, third

    resolver, first, second, third = asyncio.run(_resolve())

    assert first is second and first is not third
    assert resolver.lookups == 2
    assert [r.name for r in resolver.new_rockets] == ["Falcon 9", "Soyuz"]


def test_import_csv_reads_file(session_factory, tmp_path: Path) -> None:
    csv_path = tmp_path / "space_missions.csv"
    csv_path.write_text(
        "Company,Location,Date,Time,Rocket,Mission,RocketStatus,Price,MissionStatus\n"
        "RVSN USSR,Baikonur,1957-10-04,19:28:00,Sputnik 8K71PS,Sputnik-1,Retired,,Success\n"
        "NASA,Kennedy,1969-07-16,13:32:00,Saturn V,Apollo 11,Retired,\"1,160.00\",Success\n",
        encoding="utf-8",
    )

    async def _run():
        async with session_factory() as session:
            return await import_csv(session, csv_path)

    report = asyncio.run(_run())

    assert report.missions_added == 2 and report.rockets_added == 2
    assert asyncio.run(_counts(session_factory)) == (2, 2)


def test_import_csv_missing_file(session_factory, tmp_path: Path) -> None:
    async def _run():
        async with session_factory() as session:
            return await import_csv(session, tmp_path / "nope.csv")

    with pytest.raises(FileNotFoundError):
        asyncio.run(_run())


def test_rocket_created_concurrently_rolls_back_run(session_factory, monkeypatch) -> None:
    """A rocket committed by another importer after lookup should abort the whole run."""
    from spacemissions.pipelines import rockets

    original_find = rockets.find_rocket_by_name

    async def _find_then_lose_race(session, name):
        found = await original_find(session, name)
        if found is None:
            async with session_factory() as other:
                other.add(models.Rocket(name=name.upper(), is_active=True))
                await other.commit()
        return found

    monkeypatch.setattr(rockets, "find_rocket_by_name", _find_then_lose_race)
    with pytest.raises(ConflictError):
        asyncio.run(_ingest(session_factory, [_raw("A", "Falcon 9"), _raw("B", "falcon 9")]))

    async def _rocket_names():
        async with session_factory() as session:
            return list((await session.execute(select(models.Rocket.name))).scalars())

    assert asyncio.run(_rocket_names()) == ["FALCON 9"]
    assert asyncio.run(_counts(session_factory)) == (1, 0)
