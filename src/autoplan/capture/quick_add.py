"""Natural-language quick-add capture.

Recognized tokens, everything else becomes the title:
- ``#tag`` and ``@project``
- priority words: ``p1``/``high``, ``p2``/``med``/``medium``, ``p3``/``low``
- durations: ``45m``, ``90min``, ``2h``, ``1hr``
- days: ``today``, ``tmrw``/``tomorrow``, weekday names (next occurrence after today)
- due dates: ``due fri``, ``due 3/14``, ``duefri`` (a weekday due date may be today)
- times: ``3pm``, ``3:30pm``, ``15:30``, bare hours ``0``-``23`` (only applied together with a day)
- explicit dates: ``M/D``, ``M/D/YY``, ``M/D/YYYY``
"""

from __future__ import annotations

import re
import string
from dataclasses import dataclass, field
from datetime import datetime, timedelta

from autoplan.models import Priority

_TAG_RE = re.compile(r"#([\w-]+)")
_PROJECT_RE = re.compile(r"@([\w-]+)")
_DURATION_RE = re.compile(r"^(\d+)(m|min|mins|minutes|h|hr|hrs|hour|hours)$", re.IGNORECASE)
_DATE_RE = re.compile(r"^(\d{1,2})/(\d{1,2})(?:/(\d{2}|\d{4}))?$")

_PRIORITY_WORDS = {
    "p1": Priority.HIGH,
    "high": Priority.HIGH,
    "p2": Priority.MEDIUM,
    "med": Priority.MEDIUM,
    "medium": Priority.MEDIUM,
    "p3": Priority.LOW,
    "low": Priority.LOW,
}
_WEEKDAY_NAMES = ["monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday"]


@dataclass(slots=True)
class QuickAddResult:
    title: str
    duration_minutes: int | None = None
    scheduled_start: datetime | None = None
    due: datetime | None = None
    priority: Priority | None = None
    project: str | None = None
    tags: list[str] = field(default_factory=list)


def parse_quick_add(text: str, reference: datetime | None = None) -> QuickAddResult:
    """Parse one line of capture text relative to ``reference`` (default: now)."""
    ref = reference or datetime.now()

    tags = _TAG_RE.findall(text)
    projects = _PROJECT_RE.findall(text)
    working = _PROJECT_RE.sub(" ", _TAG_RE.sub(" ", text))
    tokens = working.split()

    consumed: set[int] = set()
    priority: Priority | None = None
    duration: int | None = None
    scheduled_day: datetime | None = None
    scheduled_time: tuple[int, int] | None = None
    due: datetime | None = None

    for index, raw in enumerate(tokens):
        if index in consumed:
            continue
        token = raw.lower()

        if priority is None and token in _PRIORITY_WORDS:
            priority = _PRIORITY_WORDS[token]
            consumed.add(index)
            continue

        if duration is None:
            minutes = parse_duration_token(raw)
            if minutes is not None:
                duration = minutes
                consumed.add(index)
                continue

        day = _parse_day_token(token, ref)
        if day is not None:
            scheduled_day = day
            consumed.add(index)
            continue

        if token == "due" and index + 1 < len(tokens):
            parsed_due = _parse_due_token(tokens[index + 1].lower(), ref)
            if parsed_due is not None:
                due = parsed_due
                consumed.update((index, index + 1))
                continue

        clock = parse_time_token(token)
        if clock is not None:
            scheduled_time = clock
            consumed.add(index)
            continue

        explicit = parse_explicit_date(raw, ref)
        if explicit is not None:
            scheduled_day = explicit
            consumed.add(index)
            continue

    if due is None:
        for index, raw in enumerate(tokens):
            token = raw.lower()
            if index in consumed or not token.startswith("due") or len(token) <= 3:
                continue
            parsed_due = _parse_due_token(token[3:], ref)
            if parsed_due is not None:
                due = parsed_due
                consumed.add(index)
                break

    scheduled_start: datetime | None = None
    # A clock time without a day is dropped from the title but does not schedule.
    if scheduled_day is not None:
        hour, minute = scheduled_time or (0, 0)
        scheduled_start = scheduled_day.replace(hour=hour, minute=minute)

    title = " ".join(raw for index, raw in enumerate(tokens) if index not in consumed).strip()
    return QuickAddResult(
        title=title or text.strip(),
        duration_minutes=duration,
        scheduled_start=scheduled_start,
        due=due,
        priority=priority,
        project=projects[0] if projects else None,
        tags=tags,
    )


def parse_duration_token(token: str) -> int | None:
    match = _DURATION_RE.match(token)
    if match is None:
        return None
    value = int(match.group(1))
    if "h" in match.group(2).lower():
        return value * 60
    return value


def parse_time_token(token: str) -> tuple[int, int] | None:
    """Parse a clock token into ``(hour, minute)``."""
    normalized = token.lower().replace(" ", "")

    if normalized.endswith(("am", "pm")):
        meridiem = normalized[-2:]
        body = normalized[:-2]
        if ":" in body:
            hour_part, _, minute_part = body.partition(":")
        elif len(body) <= 2:
            hour_part, minute_part = body, "0"
        else:
            hour_part, minute_part = body[:-2], body[-2:]
        if not (hour_part.isdigit() and minute_part.isdigit()):
            return None
        hour, minute = int(hour_part), int(minute_part)
        if not (1 <= hour <= 12 and 0 <= minute < 60):
            return None
        return _to_24h(hour, minute, meridiem)

    if ":" in normalized:
        hour_part, _, minute_part = normalized.partition(":")
        if not (hour_part.isdigit() and minute_part.isdigit()):
            return None
        hour, minute = int(hour_part), int(minute_part)
        if 0 <= hour < 24 and 0 <= minute < 60:
            return hour, minute
        return None

    if normalized.isdigit() and 0 <= int(normalized) < 24:
        return int(normalized), 0
    return None


def parse_explicit_date(token: str, reference: datetime) -> datetime | None:
    match = _DATE_RE.match(token.replace(",", ""))
    if match is None:
        return None
    month, day = int(match.group(1)), int(match.group(2))
    raw_year = match.group(3)
    year = reference.year
    if raw_year is not None:
        year = int(raw_year) + (2000 if len(raw_year) == 2 else 0)
    try:
        resolved = _start_of_day(reference).replace(year=year, month=month, day=day)
    except ValueError:
        return None
    if raw_year is None and resolved.date() < reference.date():
        try:
            return resolved.replace(year=year + 1)
        except ValueError:
            return None
    return resolved


def _to_24h(hour: int, minute: int, meridiem: str) -> tuple[int, int]:
    resolved = hour % 12
    if meridiem == "pm":
        resolved += 12
    return resolved, minute


def _start_of_day(value: datetime) -> datetime:
    return value.replace(hour=0, minute=0, second=0, microsecond=0)


def _parse_weekday(token: str) -> int | None:
    trimmed = token.strip(string.punctuation)
    if len(trimmed) < 3:
        return None
    for index, name in enumerate(_WEEKDAY_NAMES):
        if name.startswith(trimmed):
            return index
    return None


def _next_occurrence(weekday: int, reference: datetime, *, include_today: bool) -> datetime:
    delta = (weekday - reference.weekday()) % 7
    if delta == 0 and not include_today:
        delta = 7
    return _start_of_day(reference) + timedelta(days=delta)


def _parse_day_token(token: str, reference: datetime) -> datetime | None:
    if token == "today":
        return _start_of_day(reference)
    if token in ("tmrw", "tomorrow"):
        return _start_of_day(reference) + timedelta(days=1)
    weekday = _parse_weekday(token)
    if weekday is not None:
        return _next_occurrence(weekday, reference, include_today=False)
    return None


def _parse_due_token(token: str, reference: datetime) -> datetime | None:
    weekday = _parse_weekday(token)
    if weekday is not None:
        return _next_occurrence(weekday, reference, include_today=True)
    return parse_explicit_date(token, reference)
