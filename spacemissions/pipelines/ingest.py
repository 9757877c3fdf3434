"""Batch ingestion of external mission records.

Normalizes every record, resolves rockets through a per-run
``RocketResolver`` and writes new rockets plus new missions in a single
transaction. A failed write leaves nothing from the run behind.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from spacemissions import models
from spacemissions.errors import ConflictError, IngestionError
from spacemissions.parsers import parse_mission_csv
from spacemissions.pipelines.normalization import (
    NormalizedMission,
    RawMissionRecord,
    Rejection,
    RejectionReason,
    normalize_record,
)
from spacemissions.pipelines.rockets import RocketResolver

logger = logging.getLogger(__name__)


@dataclass
class IngestionReport:
    """Outcome of one ingestion run."""
    loaded: int = 0
    rockets_added: int = 0
    missions_added: int = 0
    rejections: list[tuple[int, RejectionReason]] = field(default_factory=list)

    @property
    def skipped(self) -> int:
        return len(self.rejections)


def build_mission(candidate: NormalizedMission, rocket: models.Rocket) -> models.Mission:
    """Create an unsaved Mission linked to ``rocket``."""
    return models.Mission(
        company=candidate.company,
        location=candidate.location,
        launch_datetime=candidate.launch_datetime,
        mission_name=candidate.mission_name,
        mission_status=candidate.mission_status,
        price=candidate.price,
        rocket=rocket,
    )


async def ingest_records(
    session: AsyncSession,
    records: Iterable[RawMissionRecord],
) -> IngestionReport:
    """Import a full record set.

    Steps:
    1. Normalize each record (bad rows are skipped and reported)
    2. Resolve the rocket of each accepted row
    3. Persist new rockets, then missions, in one transaction

    Args:
        session: Database session (must not have pending work)
        records: Already-materialized raw records

    Returns:
        IngestionReport with counts and per-row rejections

    Raises:
        ConflictError: If a concurrent import created one of the rockets first
        IngestionError: If the batch write fails for any other reason
    """
    report = IngestionReport()
    resolver = RocketResolver(session)
    missions: list[models.Mission] = []

    try:
        for index, record in enumerate(records):
            report.loaded += 1
            result = normalize_record(record)
            if isinstance(result, Rejection):
                report.rejections.append((index, result.reason))
                continue

            rocket = await resolver.resolve(result.rocket_name, result.rocket_is_active)
            missions.append(build_mission(result, rocket))

        logger.info(f"Loaded {report.loaded} records, skipped {report.skipped}")

        # Rockets first so missions can reference the assigned ids.
        session.add_all(resolver.new_rockets)
        await session.flush()
        session.add_all(missions)
        await session.commit()

    except IntegrityError as e:
        await session.rollback()
        logger.error(f"Ingestion rejected by a unique constraint: {e}")
        raise ConflictError("Import conflicts with existing data; nothing was written") from e
    except SQLAlchemyError as e:
        await session.rollback()
        logger.error(f"Ingestion write failed: {e}", exc_info=True)
        raise IngestionError(f"Import failed; nothing was written: {e}") from e

    report.rockets_added = len(resolver.new_rockets)
    report.missions_added = len(missions)
    logger.info(
        f"Imported rockets: {report.rockets_added}, missions: {report.missions_added}"
    )
    return report


async def import_csv(session: AsyncSession, csv_path: str | Path) -> IngestionReport:
    """Read a missions CSV from disk and ingest it.

    Raises:
        FileNotFoundError: If ``csv_path`` does not exist
        ParseError: If the CSV cannot be read
    """
    path = Path(csv_path)
    if not path.is_file():
        logger.error(f"CSV file not found at {path}")
        raise FileNotFoundError(str(path))

    records = parse_mission_csv(path)
    logger.info(f"Loaded {len(records)} CSV records from {path}")
    return await ingest_records(session, records)
