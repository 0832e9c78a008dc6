"""
Calendar date helpers shared by the decision core.

Every comparison in the policy layer goes through normalize_date so that all
components reason in whole days, never timestamps.
"""

from datetime import date, datetime
from typing import Callable, Optional, Union

from app.policy.errors import InvalidDate, InvalidInput

DateLike = Union[str, date]


def normalize_date(value: DateLike) -> date:
    """
    Normalize a calendar date.

    Accepts `date` objects, `datetime` objects (time of day is dropped) and
    strict `YYYY-MM-DD` strings.

    Raises:
        InvalidDate: if the value is not a well-formed calendar date
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str):
        raise InvalidDate(value)

    text = value.strip()
    # fromisoformat also accepts "20240101" on newer interpreters
    if len(text) != 10 or text[4] != "-" or text[7] != "-":
        raise InvalidDate(value)
    try:
        return date.fromisoformat(text)
    except ValueError:
        raise InvalidDate(value) from None


def is_invalid_range(start: DateLike, end: DateLike) -> bool:
    """True when the end date falls before the start date."""
    return normalize_date(end) < normalize_date(start)


def inclusive_day_count(start: DateLike, end: DateLike) -> int:
    """Number of calendar days in [start, end], counting both ends."""
    start_day = normalize_date(start)
    end_day = normalize_date(end)
    if end_day < start_day:
        raise InvalidInput(
            f"End date {end_day.isoformat()} is before start date {start_day.isoformat()}"
        )
    return (end_day - start_day).days + 1


def is_past(
    value: DateLike,
    today: Optional[date] = None,
    clock: Callable[[], date] = date.today,
) -> bool:
    """True when the date is strictly before today (local reference clock)."""
    reference = today if today is not None else clock()
    return normalize_date(value) < reference
