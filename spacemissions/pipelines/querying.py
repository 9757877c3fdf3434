"""Mission query engine: filter, sort and paginate.

Pagination relies on a total order, so every query ends with the mission id
as a tie-breaker and falls back to id ascending when no sort is requested.
"""
from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from datetime import datetime
from typing import Generic, TypeVar

from sqlalchemy import Select, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from spacemissions import models
from spacemissions.errors import ValidationError

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Accepted sort keys (compared lower-cased) → mission column
SORT_FIELDS = {
    "company": models.Mission.company,
    "missionstatus": models.Mission.mission_status,
    "mission_status": models.Mission.mission_status,
    "launchdatetime": models.Mission.launch_datetime,
    "launch_datetime": models.Mission.launch_datetime,
}


@dataclass(frozen=True)
class MissionFilter:
    """Optional criteria, all ANDed together."""
    company: str | None = None
    mission_status: str | None = None
    start_date: datetime | None = None
    end_date: datetime | None = None


@dataclass(frozen=True)
class MissionSort:
    field: str | None = None
    descending: bool = False


@dataclass(frozen=True)
class PageRequest:
    page_number: int = 1
    page_size: int = 10

    @property
    def offset(self) -> int:
        return (self.page_number - 1) * self.page_size


@dataclass(frozen=True)
class MissionSummary:
    """List item with the rocket name denormalized."""
    id: int
    company: str
    mission_name: str
    rocket_name: str
    launch_datetime: datetime
    mission_status: str | None


@dataclass
class Page(Generic[T]):
    """Bounded slice of a result set plus its position."""
    page_number: int
    page_size: int
    total_count: int
    items: list[T] = field(default_factory=list)

    @property
    def total_pages(self) -> int:
        return math.ceil(self.total_count / self.page_size)

    @property
    def has_previous_page(self) -> bool:
        return self.page_number > 1

    @property
    def has_next_page(self) -> bool:
        return self.page_number < self.total_pages


def validate_page_request(page: PageRequest) -> None:
    if page.page_number < 1 or page.page_size < 1:
        raise ValidationError("PageNumber and PageSize must be greater than 0.")


def apply_filters(query: Select, filters: MissionFilter) -> Select:
    # Blank values mean "no filter"; anything else is matched as given.
    if filters.company and filters.company.strip():
        query = query.where(models.Mission.company.contains(filters.company, autoescape=True))

    if filters.mission_status and filters.mission_status.strip():
        query = query.where(models.Mission.mission_status == filters.mission_status)

    if filters.start_date is not None:
        query = query.where(models.Mission.launch_datetime >= models.to_utc(filters.start_date))

    if filters.end_date is not None:
        query = query.where(models.Mission.launch_datetime <= models.to_utc(filters.end_date))

    return query


def apply_sort(query: Select, sort: MissionSort) -> Select:
    """Order by the requested field with id as tie-breaker.

    Unknown or absent fields sort by id ascending, whatever ``descending``
    says.
    """
    column = SORT_FIELDS.get((sort.field or "").strip().lower())
    if column is None:
        return query.order_by(models.Mission.id.asc())
    if sort.descending:
        return query.order_by(column.desc(), models.Mission.id.desc())
    return query.order_by(column.asc(), models.Mission.id.asc())


async def query_missions(
    session: AsyncSession,
    filters: MissionFilter | None = None,
    sort: MissionSort | None = None,
    page: PageRequest | None = None,
) -> Page[MissionSummary]:
    """Return one page of mission summaries.

    Raises:
        ValidationError: If page number or size is below 1 (checked before
            touching storage)
    """
    filters = filters or MissionFilter()
    sort = sort or MissionSort()
    page = page or PageRequest()
    validate_page_request(page)

    count_query = apply_filters(select(func.count(models.Mission.id)), filters)
    total_count = int((await session.execute(count_query)).scalar_one())

    items_query = (
        select(
            models.Mission.id,
            models.Mission.company,
            models.Mission.mission_name,
            func.coalesce(models.Rocket.name, "").label("rocket_name"),
            models.Mission.launch_datetime,
            models.Mission.mission_status,
        )
        .select_from(models.Mission)
        .outerjoin(models.Rocket, models.Mission.rocket_id == models.Rocket.id)
    )
    items_query = apply_sort(apply_filters(items_query, filters), sort)
    items_query = items_query.offset(page.offset).limit(page.page_size)

    rows = (await session.execute(items_query)).all()
    items = [
        MissionSummary(
            id=row.id,
            company=row.company,
            mission_name=row.mission_name,
            rocket_name=row.rocket_name or "",
            launch_datetime=row.launch_datetime,
            mission_status=row.mission_status,
        )
        for row in rows
    ]

    logger.debug(
        f"Mission query page={page.page_number} size={page.page_size} "
        f"total={total_count} returned={len(items)}"
    )
    return Page(
        page_number=page.page_number,
        page_size=page.page_size,
        total_count=total_count,
        items=items,
    )
