"""Normalization of raw external mission records.

Turns one loosely-typed CSV row into a validated candidate (UTC launch
instant, decimal price, rocket activity flag) or a rejection reason.
Rejections never abort a batch; the caller skips the row and moves on.
"""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from enum import Enum

logger = logging.getLogger(__name__)

COMBINED_DATETIME_FORMAT = "%Y-%m-%dT%H:%M:%SZ"
_COMBINED_DATETIME_RE = re.compile(r"^\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}Z$")

# Accepted in addition to ISO-8601 when only a date is given.
_DATE_ONLY_FORMATS = (
    "%m/%d/%Y",
    "%m/%d/%Y %H:%M:%S",
    "%d %b %Y",
    "%d %B %Y",
    "%a %b %d, %Y",
    "%a %b %d, %Y %H:%M",
    "%b %d, %Y",
)

ACTIVE_ROCKET_STATUS = "active"


class RejectionReason(str, Enum):
    """Why a raw record was skipped."""
    MISSING_REQUIRED_FIELD = "missing-required-field"
    INVALID_DATETIME = "invalid-datetime"


@dataclass(frozen=True)
class RawMissionRecord:
    """One row of the external source, all fields as text."""
    company: str | None = None
    location: str | None = None
    date: str | None = None
    time: str | None = None
    rocket_name: str | None = None
    rocket_status: str | None = None
    mission_name: str | None = None
    price: str | None = None
    mission_status: str | None = None


@dataclass(frozen=True)
class NormalizedMission:
    """A raw record that passed validation."""
    company: str
    location: str
    launch_datetime: datetime
    rocket_name: str
    rocket_is_active: bool
    mission_name: str
    mission_status: str | None
    price: Decimal | None


@dataclass(frozen=True)
class Rejection:
    """A raw record that failed validation."""
    reason: RejectionReason
    record: RawMissionRecord


def _clean(value: str | None) -> str:
    return (value or "").strip()


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def parse_launch_datetime(date: str | None, time: str | None) -> datetime | None:
    """Resolve the launch instant in UTC.

    Without a time the date is parsed on its own (ISO-8601 or a handful of
    common calendar formats); naive values are taken as UTC and zoned values
    are converted. With a time, the combined ``{date}T{time}Z`` string must
    match ``YYYY-MM-DDTHH:MM:SSZ`` exactly.

    Returns:
        Aware UTC datetime, or None when the input cannot be parsed
    """
    date = _clean(date)
    time = _clean(time)
    if not date:
        return None

    if time:
        combined = f"{date}T{time}Z"
        if not _COMBINED_DATETIME_RE.match(combined):
            return None
        try:
            parsed = datetime.strptime(combined, COMBINED_DATETIME_FORMAT)
        except ValueError:
            return None
        return parsed.replace(tzinfo=timezone.utc)

    iso_candidate = date[:-1] + "+00:00" if date.endswith(("Z", "z")) else date
    try:
        return _as_utc(datetime.fromisoformat(iso_candidate))
    except ValueError:
        pass

    for fmt in _DATE_ONLY_FORMATS:
        try:
            return datetime.strptime(date, fmt).replace(tzinfo=timezone.utc)
        except ValueError:
            continue
    return None


def parse_price(price: str | None) -> Decimal | None:
    """Parse a price such as ``"$50,000,000"``.

    Blank and unparsable prices both yield None; a bad price never rejects
    the record.
    """
    cleaned = _clean(price).replace("$", "").replace(",", "").strip()
    if not cleaned:
        return None
    try:
        value = Decimal(cleaned)
    except InvalidOperation:
        logger.debug(f"Unparsable price {price!r} ignored")
        return None
    if not value.is_finite():
        return None
    return value


def is_active_status(rocket_status: str | None) -> bool:
    return _clean(rocket_status).lower() == ACTIVE_ROCKET_STATUS


def normalize_record(record: RawMissionRecord) -> NormalizedMission | Rejection:
    """Validate and type one raw record.

    Required fields are checked before the launch date so that a row with
    neither is reported as missing data.
    """
    rocket_name = _clean(record.rocket_name)
    mission_name = _clean(record.mission_name)
    if not rocket_name or not mission_name:
        logger.warning(
            f"Skipping record: {RejectionReason.MISSING_REQUIRED_FIELD.value} "
            f"(mission={record.mission_name!r}, rocket={record.rocket_name!r})"
        )
        return Rejection(RejectionReason.MISSING_REQUIRED_FIELD, record)

    launch_datetime = parse_launch_datetime(record.date, record.time)
    if launch_datetime is None:
        logger.warning(
            f"Skipping record: {RejectionReason.INVALID_DATETIME.value} for mission {mission_name!r} "
            f"(date={record.date!r}, time={record.time!r})"
        )
        return Rejection(RejectionReason.INVALID_DATETIME, record)

    mission_status = _clean(record.mission_status) or None

    return NormalizedMission(
        company=_clean(record.company),
        location=_clean(record.location),
        launch_datetime=launch_datetime,
        rocket_name=rocket_name,
        rocket_is_active=is_active_status(record.rocket_status),
        mission_name=mission_name,
        mission_status=mission_status,
        price=parse_price(record.price),
    )
