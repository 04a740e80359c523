"""
Monday-Saturday reporting weeks.

All arithmetic runs on datetime.date values. "Today" is taken in a fixed
civil offset (UTC+9 by default) so the host timezone never moves a day
boundary.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from typing import Iterable

WEEK_DAYS = 6
DEFAULT_UTC_OFFSET_HOURS = 9

ISO_DATE_RE = re.compile(r"^(\d{4})-(\d{2})-(\d{2})$")


@dataclass(frozen=True)
class WeekWindow:
    week_start: date
    week_end: date
    expected_dates: tuple[date, ...]

    def contains(self, value: date) -> bool:
        return self.week_start <= value <= self.week_end

    def expected_strings(self) -> list[str]:
        return [item.isoformat() for item in self.expected_dates]


@dataclass(frozen=True)
class WeekCheck:
    week_start: str
    week_end: str
    missing_days: tuple[str, ...]
    out_of_range: tuple[str, ...]

    def to_dict(self) -> dict:
        return {
            "week_start": self.week_start,
            "week_end": self.week_end,
            "missing_days": list(self.missing_days),
            "out_of_range": list(self.out_of_range),
        }


def parse_calendar_date(text: str) -> date | None:
    """Parse YYYY-MM-DD, rejecting overflowed dates such as 2024-02-30."""
    match = ISO_DATE_RE.match(str(text).strip())
    if not match:
        return None
    year, month, day = (int(part) for part in match.groups())
    try:
        parsed = date(year, month, day)
    except ValueError:
        return None
    if (parsed.year, parsed.month, parsed.day) != (year, month, day):
        return None
    return parsed


def monday_of(value: date) -> date:
    return value - timedelta(days=value.weekday())


def week_window(value: date) -> WeekWindow:
    start = monday_of(value)
    expected = tuple(start + timedelta(days=offset) for offset in range(WEEK_DAYS))
    return WeekWindow(week_start=start, week_end=expected[-1], expected_dates=expected)


def previous_week_window(today: date) -> WeekWindow:
    return week_window(monday_of(today) - timedelta(days=7))


def analyze_week_dates(date_strings: Iterable[str]) -> WeekCheck | None:
    unique = {str(item).strip() for item in date_strings if item}
    parsed = sorted(
        value for value in (parse_calendar_date(item) for item in unique) if value is not None
    )
    if not parsed:
        return None

    window = week_window(parsed[0])
    present = set(parsed)
    missing = [item.isoformat() for item in window.expected_dates if item not in present]
    out_of_range = [item.isoformat() for item in parsed if not window.contains(item)]
    return WeekCheck(
        week_start=window.week_start.isoformat(),
        week_end=window.week_end.isoformat(),
        missing_days=tuple(missing),
        out_of_range=tuple(out_of_range),
    )


def civil_now(offset_hours: int = DEFAULT_UTC_OFFSET_HOURS) -> datetime:
    return datetime.now(timezone(timedelta(hours=offset_hours)))


def civil_today(offset_hours: int = DEFAULT_UTC_OFFSET_HOURS) -> date:
    return civil_now(offset_hours).date()


def civil_timestamp(offset_hours: int = DEFAULT_UTC_OFFSET_HOURS, now: datetime | None = None) -> str:
    moment = now or datetime.now(timezone.utc)
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone(timedelta(hours=offset_hours))).strftime("%Y-%m-%d %H:%M")
