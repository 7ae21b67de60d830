"""Value parsing for canonical roll rows.

Turns raw cell values (strings, numbers, dates from a spreadsheet) into typed
fields and flags dates of birth whose day and month could have been
transposed during conversion.
"""

import re
from collections.abc import Mapping
from datetime import UTC, date, datetime, timedelta
from typing import Any

from dateutil.parser import ParserError
from dateutil.parser import parse as parse_date

from voter_vetting.lib.roll_importer.types import ParsedRow

# Spreadsheet serial dates count days from this epoch
_SERIAL_EPOCH = date(1899, 12, 30)

_MIN_BIRTH_YEAR = 1900

_ISO_DATE = re.compile(r"^\d{4}-\d{2}-\d{2}")
_YEAR_ONLY = re.compile(r"^\d{4}(\.0+)?$")


def is_blank(value: Any) -> bool:
    """True for None, empty strings, and NaN/NaT cells."""
    if value is None:
        return True
    if isinstance(value, str):
        return value.strip() == ""
    # NaN and NaT are the only values not equal to themselves
    return bool(value != value)  # noqa: PLR0124


def clean_text(value: Any) -> str | None:
    """Strip a cell to text; blank cells become None."""
    if is_blank(value):
        return None
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    text = str(value).strip()
    return text or None


def _valid_year(year: int) -> bool:
    return _MIN_BIRTH_YEAR <= year <= datetime.now(UTC).year


def parse_birth_year(value: Any) -> int | None:
    """Parse a year-of-birth cell.

    Accepts integers, integral floats, digit strings, and dates (the year is
    taken).

    Raises:
        ValueError: If the value is not a year between 1900 and the current year.
    """
    if is_blank(value):
        return None
    if isinstance(value, datetime | date):
        year = value.year
    elif isinstance(value, bool):
        msg = f"Invalid birth_year: {value!r}"
        raise ValueError(msg)
    elif isinstance(value, int | float):
        if float(value) != int(value):
            msg = f"Invalid birth_year: {value!r}"
            raise ValueError(msg)
        year = int(value)
    else:
        text = str(value).strip()
        if not _YEAR_ONLY.match(text):
            msg = f"Invalid birth_year format: {value!r}"
            raise ValueError(msg)
        year = int(float(text))
    if not _valid_year(year):
        msg = f"Invalid birth_year: {year} (must be {_MIN_BIRTH_YEAR}-{datetime.now(UTC).year})"
        raise ValueError(msg)
    return year


def parse_dob(value: Any, *, day_first: bool = False) -> date | None:
    """Parse a date-of-birth cell.

    Handles date/datetime objects, ISO strings, other date strings (month
    first unless ``day_first``), and spreadsheet serial numbers.

    Raises:
        ValueError: If a non-blank value cannot be read as a date.
    """
    if is_blank(value):
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, int | float) and not isinstance(value, bool):
        try:
            return _SERIAL_EPOCH + timedelta(days=int(value))
        except OverflowError as exc:
            msg = f"Invalid date serial: {value!r}"
            raise ValueError(msg) from exc

    text = str(value).strip()
    if _ISO_DATE.match(text):
        try:
            return date.fromisoformat(text[:10])
        except ValueError:
            pass
    try:
        return parse_date(text, dayfirst=day_first).date()
    except (ParserError, OverflowError, ValueError) as exc:
        msg = f"Unparseable dob: {value!r}"
        raise ValueError(msg) from exc


def is_ambiguous_dob(dob: date | None) -> bool:
    """Whether day and month could be transposed (both are 12 or less)."""
    if dob is None:
        return False
    return dob.day <= 12 and dob.month <= 12


def _looks_like_year(value: Any) -> bool:
    if isinstance(value, str):
        return bool(_YEAR_ONLY.match(value.strip()))
    if isinstance(value, int | float) and not isinstance(value, bool):
        return float(value).is_integer() and _valid_year(int(value))
    return False


def parse_row(raw: Mapping[str, Any], *, row_number: int, day_first: bool = False) -> ParsedRow:
    """Parse one canonical roll row.

    Parse problems are collected on ``ParsedRow.errors`` rather than raised.
    A year-only value in the ``dob`` column is treated as a birth year.

    Args:
        raw: Mapping of canonical column name to raw cell value.
        row_number: 1-based data row number, for error messages.
        day_first: Parse ambiguous slash dates as day/month/year.

    Returns:
        The parsed row.
    """
    row = ParsedRow(
        row_number=row_number,
        first_name=clean_text(raw.get("first_name")),
        last_name=clean_text(raw.get("last_name")),
        jurisdiction_name=clean_text(raw.get("jurisdiction_name")),
        registration_number=clean_text(raw.get("registration_number")),
    )

    raw_dob = raw.get("dob")
    raw_year = raw.get("birth_year")
    if is_blank(raw_year) and _looks_like_year(raw_dob):
        raw_year, raw_dob = raw_dob, None

    try:
        row.dob = parse_dob(raw_dob, day_first=day_first)
    except ValueError as exc:
        row.errors.append(f"Row {row_number}: {exc}")

    try:
        row.birth_year = parse_birth_year(raw_year)
    except ValueError as exc:
        row.errors.append(f"Row {row_number}: {exc}")

    if row.dob is not None:
        row.dob_ambiguous = is_ambiguous_dob(row.dob)
        if row.birth_year is None:
            row.birth_year = row.dob.year

    return row
