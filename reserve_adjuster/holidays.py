"""Holiday list handling.

Holidays are stored as ISO calendar dates (``YYYY-MM-DD``) in the battery's
local zone. Every write and every lookup goes through ``format_holiday`` so
the stored and compared representations cannot drift apart.
"""

from __future__ import annotations

from datetime import date, datetime
from typing import Iterable, List, Union

from dateutil.parser import isoparse

from .errors import ValidationError

DateLike = Union[str, date, datetime]


def format_holiday(day: date) -> str:
    """Canonical stored form of a holiday date."""

    if isinstance(day, datetime):
        day = day.date()
    return day.isoformat()


def normalize_holiday(value: DateLike) -> str:
    """Parse user input into the canonical holiday form.

    Accepts ``date``/``datetime`` objects and ISO / SQL style strings such as
    ``2026-12-25`` or ``2026-12-25 00:00:00``.
    """

    if isinstance(value, (date, datetime)):
        return format_holiday(value)
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"Holiday must be a date string, got {value!r}")
    try:
        return format_holiday(isoparse(value.strip()))
    except ValueError as e:
        raise ValidationError(f"Invalid holiday date {value!r}: {e}") from e


def _as_list(values: Union[DateLike, Iterable[DateLike], None]) -> List[DateLike]:
    if values is None:
        return []
    if isinstance(values, (str, date, datetime)):
        return [values]
    return list(values)


def is_holiday(day: date, holidays: Iterable[str]) -> bool:
    """True if ``day`` (a date in the battery's zone) is in ``holidays``."""

    return format_holiday(day) in set(holidays)


def add_holidays(current: Iterable[str], new: Union[DateLike, Iterable[DateLike]]) -> List[str]:
    """Union of ``current`` and ``new``, keeping first-seen order."""

    merged = list(current) + [normalize_holiday(value) for value in _as_list(new)]
    return list(dict.fromkeys(merged))


def remove_holidays(current: Iterable[str], dates: Union[DateLike, Iterable[DateLike]]) -> List[str]:
    """``current`` without any of ``dates``."""

    removed = {normalize_holiday(value) for value in _as_list(dates)}
    return [day for day in current if day not in removed]
