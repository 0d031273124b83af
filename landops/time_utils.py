"""Date and time helpers shared across landops services."""

from __future__ import annotations

from datetime import date, datetime, time, timedelta
from typing import List, Tuple

from zoneinfo import ZoneInfo

UTC = ZoneInfo("UTC")

# Payroll weeks run Friday to Thursday.
WORK_WEEK_START = 4  # Monday == 0


def utc_iso(dt: datetime | None) -> str | None:
    """Return an ISO 8601 string in UTC for ``dt`` (tolerates naive input)."""

    if dt is None:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=UTC)
    return dt.astimezone(UTC).isoformat()


def now_iso() -> str:
    return datetime.now(UTC).isoformat()


def to_date(value: str | date | datetime | None) -> date | None:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text = str(value).strip()
    try:
        return datetime.fromisoformat(text.replace("Z", "+00:00")).date()
    except ValueError:
        return date.fromisoformat(text[:10])


def day_bounds(start: str | date, end: str | date) -> Tuple[str, str]:
    """Inclusive ``created_at`` bounds covering whole days from ``start`` to ``end``."""

    start_d = to_date(start)
    end_d = to_date(end)
    if start_d is None or end_d is None:
        raise ValueError("start and end dates are required")
    if end_d < start_d:
        raise ValueError("end date is before start date")
    return f"{start_d.isoformat()}T00:00:00", f"{end_d.isoformat()}T23:59:59"


def work_week(reference: date | datetime | None = None, weeks_back: int = 0) -> Tuple[datetime, datetime]:
    """Friday 00:00 to Thursday 23:59:59.999999 (UTC) of the week holding ``reference``."""

    ref = to_date(reference) if reference is not None else datetime.now(UTC).date()
    offset = (ref.weekday() - WORK_WEEK_START) % 7
    start_day = ref - timedelta(days=offset) - timedelta(weeks=weeks_back)
    start = datetime.combine(start_day, time.min, tzinfo=UTC)
    end = datetime.combine(start_day + timedelta(days=6), time.max, tzinfo=UTC)
    return start, end


def project_weeks(start: str | date, end: str | date) -> List[Tuple[date, date]]:
    """Monday-start weeks overlapping the project period."""

    start_d = to_date(start)
    end_d = to_date(end)
    if start_d is None or end_d is None or end_d < start_d:
        return []
    week_start = start_d - timedelta(days=start_d.weekday())
    weeks: List[Tuple[date, date]] = []
    while week_start <= end_d:
        weeks.append((week_start, week_start + timedelta(days=6)))
        week_start += timedelta(weeks=1)
    return weeks


__all__ = [
    "UTC",
    "utc_iso",
    "now_iso",
    "to_date",
    "day_bounds",
    "work_week",
    "project_weeks",
]
