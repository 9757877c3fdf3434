"""Rocket resolution for batch ingestion.

Maps rocket names to entities, deduplicating case-insensitively both inside
the current batch and against what is already stored.
"""
from __future__ import annotations

import logging

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from spacemissions import models

logger = logging.getLogger(__name__)


def rocket_key(name: str) -> str:
    """Normalized lookup key for a rocket name."""
    return (name or "").strip().lower()


async def find_rocket_by_name(session: AsyncSession, name: str) -> models.Rocket | None:
    """Case-insensitive lookup of a stored rocket."""
    result = await session.execute(
        select(models.Rocket).where(func.lower(models.Rocket.name) == rocket_key(name)).limit(1)
    )
    return result.scalars().first()


class RocketResolver:
    """Per-run rocket name → entity map.

    Storage is queried at most once per distinct name. Existing rockets win
    over the activity hint of the record that references them; unknown names
    become new, not-yet-persisted ``Rocket`` entities collected in
    ``new_rockets``.
    """

    def __init__(self, session: AsyncSession):
        self.session = session
        self._by_key: dict[str, models.Rocket] = {}
        self.new_rockets: list[models.Rocket] = []
        self.lookups = 0

    async def resolve(self, name: str, is_active: bool) -> models.Rocket:
        key = rocket_key(name)
        rocket = self._by_key.get(key)
        if rocket is not None:
            return rocket

        self.lookups += 1
        rocket = await find_rocket_by_name(self.session, name)
        if rocket is None:
            rocket = models.Rocket(name=name.strip(), is_active=is_active)
            self.new_rockets.append(rocket)
            logger.debug(f"New rocket {rocket.name!r} (active={is_active})")

        self._by_key[key] = rocket
        return rocket
