"""Unit tests for the CSV record source."""

from __future__ import annotations

from pathlib import Path

import pytest

from spacemissions.parsers import ParseError, parse_mission_csv

HEADER = "Company,Location,Date,Time,Rocket,Mission,RocketStatus,Price,MissionStatus\n"


def _write_csv(path: Path, body: str) -> Path:
    path.write_text(body, encoding="utf-8")
    return path


def test_rows_become_raw_records(tmp_path: Path) -> None:
    """Every row should map onto one raw record with text values."""
    csv_path = _write_csv(
        tmp_path / "missions.csv",
        HEADER
        + 'SpaceX,"LC-39A, Florida, USA",2020-08-07,05:12:00,Falcon 9,Starlink V1 L9,Active,"$50,000,000",Success\n'
        + "CASC,Site 9401,2020-08-06,,Long March 2D,Gaofen-9 04,Active,29.75,Success\n",
    )

    records = parse_mission_csv(csv_path)

    assert len(records) == 2
    first, second = records
    assert first.location == "LC-39A, Florida, USA"
    assert first.price == "$50,000,000"
    assert first.rocket_name == "Falcon 9" and first.mission_name == "Starlink V1 L9"
    assert second.time is None


def test_missing_columns_read_as_blank(tmp_path: Path) -> None:
    """Absent columns should produce None fields instead of failing."""
    csv_path = _write_csv(
        tmp_path / "partial.csv",
        "Company,Date,Rocket,Mission\nNASA,1969-07-16,Saturn V,Apollo 11\n",
    )

    (record,) = parse_mission_csv(csv_path)

    assert record.company == "NASA"
    assert record.price is None and record.rocket_status is None and record.time is None


def test_header_whitespace_is_ignored(tmp_path: Path) -> None:
    """Padded header names should still match the expected columns."""
    csv_path = _write_csv(tmp_path / "padded.csv", " Company , Mission \nNASA,Apollo 11\n")

    (record,) = parse_mission_csv(csv_path)

    assert record.company == "NASA" and record.mission_name == "Apollo 11"


def test_empty_file_yields_no_records(tmp_path: Path) -> None:
    """A zero-byte file should parse to an empty list."""
    csv_path = _write_csv(tmp_path / "empty.csv", "")

    assert parse_mission_csv(csv_path) == []


def test_header_only_yields_no_records(tmp_path: Path) -> None:
    """A file with only the header row should parse to an empty list."""
    csv_path = _write_csv(tmp_path / "header.csv", HEADER)

    assert parse_mission_csv(csv_path) == []


def test_unreadable_source_raises_parse_error(tmp_path: Path) -> None:
    """A source pandas cannot read should surface as ParseError."""
    with pytest.raises(ParseError):
        parse_mission_csv(tmp_path / "missing.csv")
