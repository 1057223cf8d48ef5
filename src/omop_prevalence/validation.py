"""
Input validation.

Everything here runs before any store access, so invalid input never
issues a query.
"""

import re
from datetime import date, datetime
from typing import Optional, Union

from omop_prevalence.exceptions import InvalidSchema, InvalidDateFormat
from omop_prevalence.models import TimeWindow

DEFAULT_START_DATE = date(2016, 1, 1)
DEFAULT_END_DATE = date(2024, 12, 31)

DateLike = Union[str, date, None]

_SCHEMA_PATTERN = re.compile(r"^[A-Za-z_][A-Za-z0-9_$]*$")


def validate_schema(schema) -> str:
    """
    Validate a schema name.

    Args:
        schema: Schema name

    Returns:
        The schema name, stripped

    Raises:
        InvalidSchema: If the name is not a non-empty plain identifier
    """
    if not isinstance(schema, str) or not schema.strip():
        raise InvalidSchema("Schema name must be a non-empty character string.")
    schema = schema.strip()
    if not _SCHEMA_PATTERN.match(schema):
        raise InvalidSchema(f"Schema name '{schema}' is not a valid identifier.")
    return schema


def parse_date(value: DateLike, name: str = "date") -> date:
    """
    Parse a YYYY-MM-DD string (or pass through a date).

    Raises:
        InvalidDateFormat: If the value cannot be parsed
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        try:
            return datetime.strptime(value.strip(), "%Y-%m-%d").date()
        except ValueError:
            pass
    raise InvalidDateFormat(f"Invalid {name}. Please use YYYY-MM-DD format.")


def build_window(
    start: DateLike = DEFAULT_START_DATE,
    end: DateLike = DEFAULT_END_DATE,
    open_ended: bool = False,
) -> TimeWindow:
    """
    Build a validated analysis window.

    Args:
        start: Window start (inclusive); None means the default start
        end: Window end (inclusive); ignored when open_ended
        open_ended: If True, the window has no end

    Returns:
        TimeWindow

    Raises:
        InvalidDateFormat: If a date cannot be parsed
        StartAfterEnd: If start is not strictly before end
    """
    start_date = parse_date(start if start is not None else DEFAULT_START_DATE, "start_date")
    if open_ended:
        return TimeWindow(start=start_date, end=None)

    end_date = parse_date(end if end is not None else DEFAULT_END_DATE, "end_date")
    return TimeWindow(start=start_date, end=end_date)


def validate_window(window: Optional[TimeWindow]) -> TimeWindow:
    """
    Return the window, or the default window when None.

    A TimeWindow cannot be built inverted, so only the type is checked.
    """
    if window is None:
        return build_window()
    if not isinstance(window, TimeWindow):
        raise TypeError(f"Expected TimeWindow, got {type(window).__name__}")
    return window
