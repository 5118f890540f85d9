"""Workspace records shared by the engine, the store and the CLI."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field, replace
from datetime import date, datetime, time, timedelta
from enum import Enum, IntEnum
from typing import Any


class Priority(IntEnum):
    LOW = 0
    MEDIUM = 1
    HIGH = 2

    @property
    def label(self) -> str:
        return self.name.lower()

    @classmethod
    def from_label(cls, value: str) -> "Priority":
        return cls[value.upper()]


class TaskStatus(str, Enum):
    TODO = "todo"
    DOING = "doing"
    DONE = "done"


class Weekday(IntEnum):
    """Weekday numbered like ``date.weekday()``."""

    MON = 0
    TUE = 1
    WED = 2
    THU = 3
    FRI = 4
    SAT = 5
    SUN = 6

    @property
    def label(self) -> str:
        return self.name.lower()

    @classmethod
    def from_label(cls, value: str) -> "Weekday":
        return cls[value[:3].upper()]


ALL_WEEKDAYS = frozenset(Weekday)
WORKING_WEEKDAYS = frozenset({Weekday.MON, Weekday.TUE, Weekday.WED, Weekday.THU, Weekday.FRI})


def parse_datetime(raw: Any) -> datetime | None:
    if raw is None or raw == "":
        return None
    if isinstance(raw, datetime):
        return raw
    value = datetime.fromisoformat(str(raw).replace("Z", "+00:00"))
    if value.tzinfo is not None:
        # Stored instants are compared against naive day windows.
        value = value.astimezone().replace(tzinfo=None)
    return value


def format_datetime(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


@dataclass(slots=True, frozen=True)
class TimeRange:
    """Half-open absolute range ``[start, end)``."""

    start: datetime
    end: datetime

    @property
    def duration(self) -> timedelta:
        return self.end - self.start

    @property
    def is_empty(self) -> bool:
        return self.end <= self.start

    def intersects(self, other: "TimeRange") -> bool:
        return self.start < other.end and other.start < self.end

    def intersection(self, other: "TimeRange") -> "TimeRange | None":
        start = max(self.start, other.start)
        end = min(self.end, other.end)
        if start >= end:
            return None
        return TimeRange(start, end)


@dataclass(slots=True, frozen=True)
class BusyInterval:
    start: datetime
    end: datetime

    def as_range(self) -> TimeRange:
        return TimeRange(self.start, self.end)


@dataclass(slots=True)
class WorkHoursConfig:
    start: time
    end: time
    scheduling_days: frozenset[Weekday] = WORKING_WEEKDAYS

    def as_dict(self) -> dict[str, Any]:
        return {
            "work_start": self.start.strftime("%H:%M"),
            "work_end": self.end.strftime("%H:%M"),
            "scheduling_days": [day.label for day in sorted(self.scheduling_days)],
        }


@dataclass(slots=True)
class Settings:
    work_hours: WorkHoursConfig
    default_duration_minutes: int = 30
    min_split_minutes: int = 25

    def as_dict(self) -> dict[str, Any]:
        return {
            **self.work_hours.as_dict(),
            "default_duration_minutes": self.default_duration_minutes,
            "min_split_minutes": self.min_split_minutes,
        }


@dataclass(slots=True)
class Task:
    """A time-boxed work item."""

    title: str
    task_id: str = field(default_factory=lambda: uuid.uuid4().hex)
    notes: str | None = None
    status: TaskStatus = TaskStatus.TODO
    priority: Priority = Priority.MEDIUM
    estimate_minutes: int = 30
    scheduled_start: datetime | None = None
    scheduled_end: datetime | None = None
    due: datetime | None = None
    project: str | None = None
    tags: list[str] = field(default_factory=list)
    created_at: datetime = field(default_factory=datetime.now)
    updated_at: datetime = field(default_factory=datetime.now)

    @property
    def is_scheduled(self) -> bool:
        return self.scheduled_start is not None and self.scheduled_end is not None

    @property
    def estimated_duration(self) -> timedelta:
        return timedelta(minutes=self.estimate_minutes)

    def updating_schedule(self, start: datetime | None, end: datetime | None) -> "Task":
        return replace(self, scheduled_start=start, scheduled_end=end, updated_at=datetime.now())

    def as_dict(self) -> dict[str, Any]:
        return {
            "task_id": self.task_id,
            "title": self.title,
            "notes": self.notes,
            "status": self.status.value,
            "priority": self.priority.label,
            "estimate_minutes": self.estimate_minutes,
            "scheduled_start": format_datetime(self.scheduled_start),
            "scheduled_end": format_datetime(self.scheduled_end),
            "due": format_datetime(self.due),
            "project": self.project,
            "tags": list(self.tags),
            "created_at": format_datetime(self.created_at),
            "updated_at": format_datetime(self.updated_at),
        }

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> "Task":
        return cls(
            task_id=str(payload["task_id"]),
            title=str(payload.get("title", "")),
            notes=payload.get("notes"),
            status=TaskStatus(payload.get("status", TaskStatus.TODO.value)),
            priority=Priority.from_label(str(payload.get("priority", "medium"))),
            estimate_minutes=int(payload.get("estimate_minutes", 30)),
            scheduled_start=parse_datetime(payload.get("scheduled_start")),
            scheduled_end=parse_datetime(payload.get("scheduled_end")),
            due=parse_datetime(payload.get("due")),
            project=payload.get("project"),
            tags=[str(tag) for tag in payload.get("tags", [])],
            created_at=parse_datetime(payload.get("created_at")) or datetime.now(),
            updated_at=parse_datetime(payload.get("updated_at")) or datetime.now(),
        )


@dataclass(slots=True, frozen=True)
class Allocation:
    """One placed segment of a task."""

    allocation_id: str
    task_id: str
    start: datetime
    end: datetime
    is_split: bool = False

    @property
    def duration(self) -> timedelta:
        return self.end - self.start

    def as_dict(self) -> dict[str, Any]:
        return {
            "allocation_id": self.allocation_id,
            "task_id": self.task_id,
            "start": self.start.isoformat(),
            "end": self.end.isoformat(),
            "is_split": self.is_split,
        }

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> "Allocation":
        start = parse_datetime(payload["start"])
        end = parse_datetime(payload["end"])
        assert start is not None and end is not None
        return cls(
            allocation_id=str(payload["allocation_id"]),
            task_id=str(payload["task_id"]),
            start=start,
            end=end,
            is_split=bool(payload.get("is_split", False)),
        )


@dataclass(slots=True)
class PlanResult:
    allocations: list[Allocation] = field(default_factory=list)
    unscheduled: list[Task] = field(default_factory=list)


@dataclass(slots=True, frozen=True)
class CalendarEvent:
    title: str
    start: datetime
    end: datetime
    all_day: bool = False

    def as_busy(self) -> BusyInterval:
        return BusyInterval(self.start, self.end)


@dataclass(slots=True, frozen=True)
class TimelineItem:
    kind: str
    title: str
    start: datetime
    end: datetime
    ref_id: str | None = None


class HabitCadence(str, Enum):
    DAILY = "daily"
    WEEKDAYS = "weekdays"
    CUSTOM = "custom"


class HabitTargetType(str, Enum):
    COUNT = "count"
    MINUTES = "minutes"


class FocusSessionType(str, Enum):
    POMODORO = "pomodoro"
    CUSTOM = "custom"


@dataclass(slots=True)
class Habit:
    """A recurring commitment tracked by a completion streak."""

    title: str
    habit_id: str = field(default_factory=lambda: uuid.uuid4().hex)
    cadence: HabitCadence = HabitCadence.DAILY
    custom_days: frozenset[Weekday] = frozenset()
    target_type: HabitTargetType = HabitTargetType.COUNT
    target_value: int = 1
    reminder_time: time | None = None
    streak: int = 0
    last_completed: datetime | None = None

    def is_due_on(self, day: date) -> bool:
        weekday = Weekday(day.weekday())
        if self.cadence is HabitCadence.DAILY:
            return True
        if self.cadence is HabitCadence.WEEKDAYS:
            return weekday in WORKING_WEEKDAYS
        return weekday in self.custom_days

    def completing(self, when: datetime) -> "Habit":
        """Return the habit completed at ``when``.

        A completion the day after the last one extends the streak, a second
        completion on the same day leaves it alone, anything else restarts it.
        """
        last_day = self.last_completed.date() if self.last_completed is not None else None
        today = when.date()
        streak = self.streak
        if last_day == today - timedelta(days=1):
            streak += 1
        elif last_day != today:
            streak = 1
        return replace(self, streak=streak, last_completed=when)

    def as_dict(self) -> dict[str, Any]:
        return {
            "habit_id": self.habit_id,
            "title": self.title,
            "cadence": self.cadence.value,
            "custom_days": [day.label for day in sorted(self.custom_days)],
            "target_type": self.target_type.value,
            "target_value": self.target_value,
            "reminder_time": self.reminder_time.strftime("%H:%M") if self.reminder_time is not None else None,
            "streak": self.streak,
            "last_completed": format_datetime(self.last_completed),
        }

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> "Habit":
        reminder = payload.get("reminder_time")
        return cls(
            habit_id=str(payload["habit_id"]),
            title=str(payload.get("title", "")),
            cadence=HabitCadence(payload.get("cadence", HabitCadence.DAILY.value)),
            custom_days=frozenset(Weekday.from_label(str(day)) for day in payload.get("custom_days", [])),
            target_type=HabitTargetType(payload.get("target_type", HabitTargetType.COUNT.value)),
            target_value=int(payload.get("target_value", 1)),
            reminder_time=time.fromisoformat(reminder) if reminder else None,
            streak=int(payload.get("streak", 0)),
            last_completed=parse_datetime(payload.get("last_completed")),
        )


@dataclass(slots=True)
class FocusSession:
    start: datetime
    session_id: str = field(default_factory=lambda: uuid.uuid4().hex)
    task_id: str | None = None
    end: datetime | None = None
    planned_minutes: int = 25
    actual_minutes: int = 0
    session_type: FocusSessionType = FocusSessionType.POMODORO
    notes: str | None = None

    @property
    def is_active(self) -> bool:
        return self.end is None

    @property
    def elapsed_minutes(self) -> int:
        """Whole minutes between start and end; 0 while running."""
        if self.end is None:
            return 0
        return int((self.end - self.start).total_seconds() // 60)

    def as_dict(self) -> dict[str, Any]:
        return {
            "session_id": self.session_id,
            "task_id": self.task_id,
            "start": format_datetime(self.start),
            "end": format_datetime(self.end),
            "planned_minutes": self.planned_minutes,
            "actual_minutes": self.actual_minutes,
            "session_type": self.session_type.value,
            "notes": self.notes,
        }

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> "FocusSession":
        start = parse_datetime(payload["start"])
        assert start is not None
        return cls(
            session_id=str(payload["session_id"]),
            task_id=payload.get("task_id"),
            start=start,
            end=parse_datetime(payload.get("end")),
            planned_minutes=int(payload.get("planned_minutes", 25)),
            actual_minutes=int(payload.get("actual_minutes", 0)),
            session_type=FocusSessionType(payload.get("session_type", FocusSessionType.POMODORO.value)),
            notes=payload.get("notes"),
        )


@dataclass(slots=True)
class Note:
    title: str
    body: str = ""
    note_id: str = field(default_factory=lambda: uuid.uuid4().hex)
    pinned: bool = False
    created_at: datetime = field(default_factory=datetime.now)
    updated_at: datetime = field(default_factory=datetime.now)

    def as_dict(self) -> dict[str, Any]:
        return {
            "note_id": self.note_id,
            "title": self.title,
            "body": self.body,
            "pinned": self.pinned,
            "created_at": format_datetime(self.created_at),
            "updated_at": format_datetime(self.updated_at),
        }

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> "Note":
        return cls(
            note_id=str(payload["note_id"]),
            title=str(payload.get("title", "")),
            body=str(payload.get("body", "")),
            pinned=bool(payload.get("pinned", False)),
            created_at=parse_datetime(payload.get("created_at")) or datetime.now(),
            updated_at=parse_datetime(payload.get("updated_at")) or datetime.now(),
        )
