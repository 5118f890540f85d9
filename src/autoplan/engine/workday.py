"""Resolve the absolute work interval of a calendar day."""

from __future__ import annotations

from datetime import date, datetime, tzinfo

from autoplan.models import TimeRange, Weekday, WorkHoursConfig


def _to_day(value: date | datetime) -> tuple[date, tzinfo | None]:
    if isinstance(value, datetime):
        return value.date(), value.tzinfo
    return value, None


def resolve_work_interval(day: date | datetime, config: WorkHoursConfig) -> TimeRange | None:
    """Compose configured work hours onto ``day``.

    Returns None when the weekday is not a scheduling day or when the
    composed end is not strictly after the start. Neither case is an error.
    """

    calendar_day, tz = _to_day(day)
    if Weekday(calendar_day.weekday()) not in config.scheduling_days:
        return None

    start = datetime.combine(calendar_day, config.start.replace(second=0, microsecond=0), tzinfo=tz)
    end = datetime.combine(calendar_day, config.end.replace(second=0, microsecond=0), tzinfo=tz)
    if end <= start:
        return None
    return TimeRange(start, end)
