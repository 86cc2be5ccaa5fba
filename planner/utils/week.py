"""
Week identity helpers.

Every week-scoped entity (note, weekly summary, week settings) is addressed
by an ISO-8601 week id of the form ``YYYY-Www``. A week belongs to the ISO
year that contains its Thursday, so late-December and early-January dates can
resolve to the neighbouring year.
"""

import re
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import List, Optional, Union

from ..domain.errors import InvalidWeekId

WEEK_ID_PATTERN = re.compile(r"^(\d{4})-W(\d{2})$")
DATE_FORMAT = "%Y-%m-%d"

DateLike = Union[date, datetime, str]


@dataclass(frozen=True)
class WeekRange:
    """Monday-aligned bounds of an ISO week plus its canonical id."""

    start: str  # Monday, YYYY-MM-DD
    end: str  # Sunday, YYYY-MM-DD
    week_id: str

    def contains(self, day: str) -> bool:
        """Whether a YYYY-MM-DD string falls inside this week."""
        return self.start <= day <= self.end


def to_date(value: DateLike) -> date:
    """Coerce a date, datetime or YYYY-MM-DD string to a ``date``."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return datetime.strptime(value, DATE_FORMAT).date()


def format_date(value: DateLike) -> str:
    return to_date(value).strftime(DATE_FORMAT)


def week_start(reference: DateLike) -> date:
    day = to_date(reference)
    return day - timedelta(days=day.weekday())


def week_id(reference: DateLike) -> str:
    """Canonical ``YYYY-Www`` id of the ISO week containing *reference*."""
    iso_year, iso_week, _ = to_date(reference).isocalendar()
    return f"{iso_year}-W{iso_week:02d}"


def resolve_week(reference: DateLike) -> WeekRange:
    """Resolve the week bounds and id for a reference date."""
    monday = week_start(reference)
    sunday = monday + timedelta(days=6)
    return WeekRange(
        start=monday.strftime(DATE_FORMAT),
        end=sunday.strftime(DATE_FORMAT),
        week_id=week_id(monday),
    )


def week_days(reference: DateLike) -> List[date]:
    """The seven dates of the week, Monday first."""
    monday = week_start(reference)
    return [monday + timedelta(days=offset) for offset in range(7)]


def day_index(reference: DateLike) -> int:
    """0 for Monday through 6 for Sunday."""
    return to_date(reference).weekday()


def next_week(reference: DateLike) -> date:
    return to_date(reference) + timedelta(weeks=1)


def prev_week(reference: DateLike) -> date:
    return to_date(reference) - timedelta(weeks=1)


def is_today(reference: DateLike, today: Optional[date] = None) -> bool:
    return to_date(reference) == (today or date.today())


def is_valid_week_id(value: str) -> bool:
    try:
        parse_week_id(value)
    except InvalidWeekId:
        return False
    return True


def parse_week_id(value: str) -> date:
    """Return the Monday of the week named by a ``YYYY-Www`` id.

    Raises:
        InvalidWeekId: If the string is malformed or names a week the ISO
            year does not have (e.g. W53 in a 52-week year).
    """
    match = WEEK_ID_PATTERN.match(value or "")
    if not match:
        raise InvalidWeekId(value)
    year, week = int(match.group(1)), int(match.group(2))
    try:
        return date.fromisocalendar(year, week, 1)
    except ValueError:
        raise InvalidWeekId(value) from None


def is_valid_date(value: str) -> bool:
    if not isinstance(value, str) or len(value) != 10:
        return False
    try:
        datetime.strptime(value, DATE_FORMAT)
    except (TypeError, ValueError):
        return False
    return True
