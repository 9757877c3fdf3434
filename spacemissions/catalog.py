"""Mission and rocket catalog operations.

Single-entity reads and mutations behind the HTTP layer. Every mutation
commits once or rolls back; unique-key violations surface as
``ConflictError``.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload
from sqlalchemy.orm.exc import StaleDataError

from . import models
from .errors import ConflictError, NotFoundError, ValidationError
from .pipelines.rockets import find_rocket_by_name

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MissionData:
    """Writable mission fields."""
    mission_name: str
    launch_datetime: datetime
    company: str = ""
    location: str = ""
    mission_status: str | None = None
    price: Decimal | None = None
    rocket_id: int | None = None


async def _commit(session: AsyncSession, conflict_message: str) -> None:
    try:
        await session.commit()
    except IntegrityError as e:
        await session.rollback()
        logger.warning(f"{conflict_message}: {e.orig}")
        raise ConflictError(conflict_message) from e


# Missions ------------------------------------------------------------------


async def get_mission(session: AsyncSession, mission_id: int) -> models.Mission:
    """Load a mission with its rocket."""
    result = await session.execute(
        select(models.Mission)
        .options(selectinload(models.Mission.rocket))
        .where(models.Mission.id == mission_id)
    )
    mission = result.scalars().first()
    if mission is None:
        raise NotFoundError(f"Mission {mission_id} not found.")
    return mission


async def _require_rocket(session: AsyncSession, rocket_id: int) -> models.Rocket:
    rocket = await session.get(models.Rocket, rocket_id)
    if rocket is None:
        raise NotFoundError(f"Rocket {rocket_id} not found.")
    return rocket


async def create_mission(session: AsyncSession, data: MissionData) -> models.Mission:
    if data.rocket_id is None or data.rocket_id <= 0:
        raise ValidationError("RocketId must be provided and greater than zero.")
    rocket = await _require_rocket(session, data.rocket_id)

    mission = models.Mission(
        mission_name=data.mission_name,
        launch_datetime=models.to_utc(data.launch_datetime),
        company=data.company,
        location=data.location,
        mission_status=data.mission_status,
        price=data.price,
        rocket=rocket,
    )
    session.add(mission)
    await _commit(session, "Mission could not be created.")
    logger.info(f"Created mission {mission.id}: {mission.mission_name}")
    return mission


async def update_mission(
    session: AsyncSession,
    mission_id: int,
    data: MissionData,
    *,
    body_id: int | None = None,
) -> models.Mission:
    """Overwrite a mission's fields.

    The row is read, changed and written back without locking. If it was
    deleted in between, the write affects no row and NotFoundError is raised.
    """
    if body_id is not None and body_id != mission_id:
        raise ValidationError("Id in URL and request body do not match.")

    mission = await get_mission(session, mission_id)
    rocket = None
    if data.rocket_id is not None:
        rocket = await _require_rocket(session, data.rocket_id)

    mission.mission_name = data.mission_name
    mission.launch_datetime = models.to_utc(data.launch_datetime)
    mission.company = data.company
    mission.location = data.location
    mission.mission_status = data.mission_status
    mission.price = data.price
    mission.rocket = rocket

    try:
        await _commit(session, "Mission could not be updated.")
    except StaleDataError as e:
        await session.rollback()
        raise NotFoundError(f"Mission {mission_id} not found.") from e
    logger.info(f"Updated mission {mission_id}")
    return mission


async def delete_mission(session: AsyncSession, mission_id: int) -> None:
    mission = await session.get(models.Mission, mission_id)
    if mission is None:
        raise NotFoundError(f"Mission {mission_id} not found.")
    await session.delete(mission)
    await session.commit()
    logger.info(f"Deleted mission {mission_id}")


async def get_mission_rocket(session: AsyncSession, mission_id: int) -> models.Rocket:
    mission = await get_mission(session, mission_id)
    if mission.rocket is None:
        raise NotFoundError(f"Mission {mission_id} has no rocket.")
    return mission.rocket


# Rockets -------------------------------------------------------------------


async def list_rockets(session: AsyncSession) -> list[models.Rocket]:
    result = await session.execute(select(models.Rocket).order_by(models.Rocket.id))
    return list(result.scalars().all())


async def get_rocket(session: AsyncSession, rocket_id: int) -> models.Rocket:
    return await _require_rocket(session, rocket_id)


async def _ensure_name_free(
    session: AsyncSession,
    name: str,
    *,
    exclude_id: int | None = None,
) -> None:
    existing = await find_rocket_by_name(session, name)
    if existing is not None and existing.id != exclude_id:
        raise ConflictError(f"A rocket named {existing.name!r} already exists.")


async def create_rocket(session: AsyncSession, *, name: str, is_active: bool) -> models.Rocket:
    name = name.strip()
    await _ensure_name_free(session, name)
    rocket = models.Rocket(name=name, is_active=is_active)
    session.add(rocket)
    await _commit(session, f"A rocket named {name!r} already exists.")
    logger.info(f"Created rocket {rocket.id}: {rocket.name}")
    return rocket


async def update_rocket(
    session: AsyncSession,
    rocket_id: int,
    *,
    name: str,
    is_active: bool,
    body_id: int | None = None,
) -> models.Rocket:
    if body_id is not None and body_id != rocket_id:
        raise ValidationError("Id in URL and request body do not match.")

    rocket = await _require_rocket(session, rocket_id)
    name = name.strip()
    await _ensure_name_free(session, name, exclude_id=rocket_id)

    rocket.name = name
    rocket.is_active = is_active
    await _commit(session, f"A rocket named {name!r} already exists.")
    logger.info(f"Updated rocket {rocket_id}")
    return rocket


async def delete_rocket(session: AsyncSession, rocket_id: int) -> int:
    """Delete a rocket, keeping its missions with no rocket reference.

    Returns:
        Number of missions that lost their rocket reference
    """
    rocket = await _require_rocket(session, rocket_id)
    result = await session.execute(
        update(models.Mission)
        .where(models.Mission.rocket_id == rocket_id)
        .values(rocket_id=None)
    )
    await session.delete(rocket)
    await session.commit()

    orphaned = result.rowcount or 0
    logger.info(f"Deleted rocket {rocket_id}; {orphaned} missions kept without rocket")
    return orphaned


async def list_rocket_missions(session: AsyncSession, rocket_id: int) -> list[models.Mission]:
    rocket = await _require_rocket(session, rocket_id)
    result = await session.execute(
        select(models.Mission)
        .where(models.Mission.rocket_id == rocket.id)
        .order_by(models.Mission.id)
    )
    return list(result.scalars().all())
