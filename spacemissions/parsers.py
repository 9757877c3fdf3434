"""CSV record source for bulk mission imports.

Reads the external missions file with pandas and hands back raw, untyped
records. Typing and validation happen later in the normalization pipeline.
"""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, BinaryIO, Mapping

import pandas as pd

from .pipelines.normalization import RawMissionRecord

logger = logging.getLogger(__name__)

# CSV header → RawMissionRecord field
CSV_COLUMNS: dict[str, str] = {
    "Company": "company",
    "Location": "location",
    "Date": "date",
    "Time": "time",
    "Rocket": "rocket_name",
    "Mission": "mission_name",
    "RocketStatus": "rocket_status",
    "Price": "price",
    "MissionStatus": "mission_status",
}


class ParseError(Exception):
    """Raised when the record source cannot be read."""
    pass


def record_from_row(row: Mapping[str, Any]) -> RawMissionRecord:
    """Build a raw record from one CSV row.

    Missing columns and empty cells become None.
    """
    values: dict[str, str | None] = {}
    for column, field_name in CSV_COLUMNS.items():
        value = row.get(column)
        values[field_name] = None if value is None or value == "" else str(value)
    return RawMissionRecord(**values)


def parse_mission_csv(source: str | Path | BinaryIO) -> list[RawMissionRecord]:
    """Parse a missions CSV into raw records.

    Every cell is read as text so that prices like ``"$50,000,000"`` and
    dates reach the normalizer untouched.

    Args:
        source: Path or binary file object

    Returns:
        List of RawMissionRecord (one per row)

    Raises:
        ParseError: If the CSV cannot be read
    """
    try:
        df = pd.read_csv(
            source,
            dtype=str,
            keep_default_na=False,
            skipinitialspace=True,
            encoding="utf-8",
        )
    except pd.errors.EmptyDataError:
        logger.info("CSV source is empty")
        return []
    except Exception as e:
        logger.error(f"CSV parsing failed: {e}")
        raise ParseError(f"Failed to parse CSV: {e}") from e

    df.columns = [str(c).strip() for c in df.columns]
    missing = sorted(set(CSV_COLUMNS) - set(df.columns))
    if missing:
        logger.warning(f"CSV is missing columns {missing}; they are read as blank")

    records = [record_from_row(row) for row in df.to_dict("records")]
    logger.info(f"Parsed CSV with {len(records)} rows and {len(df.columns)} columns")
    return records
