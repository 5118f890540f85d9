"""Workspace store: the single owner of tasks, habits, focus sessions, notes,
settings and the allocation ledger.

Every state transition runs under one re-entrant lock, so a planning run sees
a consistent candidate snapshot and commits its ledger entries and the tasks'
scheduled ranges in one step.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field, replace
from datetime import date, datetime, time, timedelta
from pathlib import Path
from typing import Any, Iterable, TypeVar

from autoplan.capture import QuickAddResult
from autoplan.engine import AllocationLedger, allocation_id_for, plan_day
from autoplan.io import read_json, write_json
from autoplan.models import (
    Allocation,
    CalendarEvent,
    FocusSession,
    FocusSessionType,
    Habit,
    Note,
    PlanResult,
    Priority,
    Settings,
    Task,
    TaskStatus,
    TimelineItem,
    TimeRange,
)
from autoplan.normalization import resolve_settings
from autoplan.reporting.decision_trace import DecisionTraceCollector
from autoplan.validation import ValidationReport, validate_workspace_payload

logger = logging.getLogger(__name__)

SCHEMA_VERSION = "1.0"
DEFAULT_HABIT_TIME = time(8, 0)
MIN_HABIT_BLOCK_MINUTES = 15

_T = TypeVar("_T")


class WorkspaceLoadError(ValueError):
    """Raised when a workspace file cannot be read or fails validation."""

    def __init__(self, message: str, report: ValidationReport | None = None) -> None:
        super().__init__(message)
        self.report = report or ValidationReport()


@dataclass(slots=True)
class WorkspaceSnapshot:
    tasks: list[Task]
    settings: Settings
    ledger: AllocationLedger
    habits: list[Habit] = field(default_factory=list)
    focus_sessions: list[FocusSession] = field(default_factory=list)
    notes: list[Note] = field(default_factory=list)

    def as_dict(self) -> dict[str, Any]:
        return {
            "schema_version": SCHEMA_VERSION,
            "tasks": [task.as_dict() for task in sorted(self.tasks, key=lambda t: (t.created_at, t.task_id))],
            "habits": [habit.as_dict() for habit in sorted(self.habits, key=lambda h: (h.title, h.habit_id))],
            "focus_sessions": [
                session.as_dict() for session in sorted(self.focus_sessions, key=lambda s: (s.start, s.session_id))
            ],
            "notes": [note.as_dict() for note in sorted(self.notes, key=lambda n: (n.created_at, n.note_id))],
            "settings": self.settings.as_dict(),
            "allocations": self.ledger.as_dict(),
        }


def _lookup(items: dict[str, _T], key: str) -> _T:
    """Find by exact id or by a unique id prefix; KeyError otherwise."""
    if key in items:
        return items[key]
    matches = [item_id for item_id in items if item_id.startswith(key)] if key else []
    if len(matches) == 1:
        return items[matches[0]]
    raise KeyError(key)


class WorkspaceStore:
    def __init__(self, path: str | Path | None, settings: Settings) -> None:
        self._lock = threading.RLock()
        self._path = Path(path) if path is not None else None
        self._tasks: dict[str, Task] = {}
        self._habits: dict[str, Habit] = {}
        self._focus_sessions: dict[str, FocusSession] = {}
        self._notes: dict[str, Note] = {}
        self._settings = settings
        self._ledger = AllocationLedger()
        if self._path is not None and self._path.exists():
            self._load()

    # Persistence

    def snapshot(self) -> WorkspaceSnapshot:
        with self._lock:
            return WorkspaceSnapshot(
                tasks=list(self._tasks.values()),
                settings=self._settings,
                ledger=AllocationLedger.from_dict(self._ledger.as_dict()),
                habits=list(self._habits.values()),
                focus_sessions=list(self._focus_sessions.values()),
                notes=list(self._notes.values()),
            )

    def save(self) -> None:
        with self._lock:
            if self._path is None:
                return
            write_json(self._path, self.snapshot().as_dict())
            logger.debug("Saved workspace to %s", self._path)

    def _load(self) -> None:
        assert self._path is not None
        try:
            payload = read_json(self._path)
        except (OSError, ValueError) as exc:
            raise WorkspaceLoadError(f"Cannot read workspace {self._path}: {exc}") from exc

        report = validate_workspace_payload(payload)
        settings = self._settings
        settings_payload = payload.get("settings")
        if isinstance(settings_payload, dict):
            settings_report = ValidationReport()
            settings = resolve_settings(settings_payload, settings_report)
            report.extend(settings_report)
        if not report.ok:
            raise WorkspaceLoadError(f"Workspace {self._path} failed validation", report)

        self._settings = settings
        self._tasks = {item.task_id: item for item in map(Task.from_dict, payload.get("tasks", []))}
        self._habits = {item.habit_id: item for item in map(Habit.from_dict, payload.get("habits", []))}
        self._focus_sessions = {
            item.session_id: item for item in map(FocusSession.from_dict, payload.get("focus_sessions", []))
        }
        self._notes = {item.note_id: item for item in map(Note.from_dict, payload.get("notes", []))}
        self._ledger = AllocationLedger.from_dict(payload.get("allocations", {}))
        logger.debug(
            "Loaded %d task(s), %d habit(s), %d focus session(s), %d note(s) from %s",
            len(self._tasks),
            len(self._habits),
            len(self._focus_sessions),
            len(self._notes),
            self._path,
        )

    # Tasks

    def add_task(self, task: Task) -> Task:
        with self._lock:
            self._tasks[task.task_id] = task
            self.save()
            return task

    def quick_add(self, result: QuickAddResult) -> Task:
        with self._lock:
            estimate = result.duration_minutes or self._settings.default_duration_minutes
            if estimate <= 0:
                estimate = self._settings.default_duration_minutes

            scheduled_end = None
            if result.scheduled_start is not None:
                scheduled_end = result.scheduled_start + timedelta(minutes=estimate)

            task = Task(
                title=result.title,
                priority=result.priority if result.priority is not None else Priority.MEDIUM,
                estimate_minutes=estimate,
                scheduled_start=result.scheduled_start,
                scheduled_end=scheduled_end,
                due=result.due,
                project=result.project,
                tags=list(result.tags),
            )
            self._tasks[task.task_id] = task
            if task.scheduled_start is not None and task.scheduled_end is not None:
                self._ledger.record(
                    [
                        Allocation(
                            allocation_id=allocation_id_for(task.task_id, task.scheduled_start, task.scheduled_end),
                            task_id=task.task_id,
                            start=task.scheduled_start,
                            end=task.scheduled_end,
                        )
                    ]
                )
            self.save()
            return task

    def update_task(self, task: Task) -> Task:
        with self._lock:
            if task.task_id not in self._tasks:
                raise KeyError(task.task_id)
            self._tasks[task.task_id] = task
            self.save()
            return task

    def complete_task(self, task_id: str) -> Task:
        with self._lock:
            task = self.get_task(task_id)
            done = replace(task, status=TaskStatus.DONE, updated_at=datetime.now())
            self._tasks[done.task_id] = done
            self.save()
            return done

    def get_task(self, task_id: str) -> Task:
        with self._lock:
            return _lookup(self._tasks, task_id)

    def all_tasks(self) -> list[Task]:
        with self._lock:
            return sorted(self._tasks.values(), key=lambda t: (t.created_at, t.task_id))

    def unscheduled_tasks(self) -> list[Task]:
        with self._lock:
            return [task for task in self.all_tasks() if not task.is_scheduled]

    def planning_candidates(self) -> list[Task]:
        """Tasks eligible for auto-planning: open, unscheduled, with effort."""
        with self._lock:
            return [
                task
                for task in self.all_tasks()
                if task.status is TaskStatus.TODO and not task.is_scheduled and task.estimate_minutes > 0
            ]

    # Habits

    def add_habit(self, habit: Habit) -> Habit:
        with self._lock:
            self._habits[habit.habit_id] = habit
            self.save()
            return habit

    def complete_habit(self, habit_id: str, when: datetime | None = None) -> Habit:
        with self._lock:
            habit = _lookup(self._habits, habit_id).completing(when or datetime.now())
            self._habits[habit.habit_id] = habit
            self.save()
            return habit

    def all_habits(self) -> list[Habit]:
        with self._lock:
            return sorted(self._habits.values(), key=lambda h: (h.title, h.habit_id))

    # Focus sessions

    def start_focus_session(
        self,
        task_id: str | None,
        minutes: int,
        session_type: FocusSessionType = FocusSessionType.POMODORO,
        when: datetime | None = None,
    ) -> FocusSession:
        with self._lock:
            if task_id is not None:
                task_id = self.get_task(task_id).task_id
            session = FocusSession(
                start=when or datetime.now(),
                task_id=task_id,
                planned_minutes=minutes,
                session_type=session_type,
            )
            self._focus_sessions[session.session_id] = session
            self.save()
            return session

    def end_focus_session(self, session_id: str, when: datetime | None = None) -> FocusSession:
        with self._lock:
            session = _lookup(self._focus_sessions, session_id)
            ended = replace(session, end=when or datetime.now())
            ended = replace(ended, actual_minutes=ended.elapsed_minutes)
            self._focus_sessions[ended.session_id] = ended
            self.save()
            return ended

    def all_focus_sessions(self) -> list[FocusSession]:
        with self._lock:
            return sorted(self._focus_sessions.values(), key=lambda s: (s.start, s.session_id))

    # Notes

    def add_note(self, note: Note) -> Note:
        with self._lock:
            self._notes[note.note_id] = note
            self.save()
            return note

    def all_notes(self) -> list[Note]:
        with self._lock:
            return sorted(self._notes.values(), key=lambda n: (not n.pinned, n.created_at, n.note_id))

    # Settings

    def update_settings(self, settings: Settings, *, persist: bool = True) -> None:
        with self._lock:
            self._settings = settings
            if persist:
                self.save()

    def current_settings(self) -> Settings:
        with self._lock:
            return self._settings

    # Scheduling

    def auto_plan(
        self,
        day: date | datetime,
        calendar_events: Iterable[CalendarEvent] = (),
        decision_trace: DecisionTraceCollector | None = None,
    ) -> PlanResult:
        with self._lock:
            busy = [event.as_busy() for event in calendar_events]
            result = plan_day(
                self.planning_candidates(),
                busy,
                day,
                self._settings.work_hours,
                self._settings.min_split_minutes,
                decision_trace=decision_trace,
            )

            bounds = self._ledger.record(result.allocations)
            for task_id, scheduled in bounds.items():
                task = self._tasks.get(task_id)
                if task is None:
                    continue
                self._tasks[task_id] = task.updating_schedule(scheduled.start, scheduled.end)

            self.save()
            return result

    def ledger_segments(self, task_id: str) -> list[Allocation]:
        with self._lock:
            return self._ledger.segments(task_id)

    # Timeline

    def timeline(
        self,
        day: date | datetime,
        calendar_events: Iterable[CalendarEvent] = (),
        now: datetime | None = None,
    ) -> list[TimelineItem]:
        """Events, open task segments, habit instances and focus sessions of ``day``.

        A running focus session extends to ``now``. A habit without a reminder
        time is placed at 08:00 and blocks at least fifteen minutes.
        """
        calendar_day = day.date() if isinstance(day, datetime) else day
        start_of_day = datetime.combine(calendar_day, time.min)
        window = TimeRange(start_of_day, start_of_day + timedelta(days=1))
        current = now or datetime.now()

        items: list[TimelineItem] = []
        for event in calendar_events:
            overlap = TimeRange(event.start, event.end).intersection(window)
            if overlap is not None:
                items.append(TimelineItem("event", event.title, overlap.start, overlap.end))

        with self._lock:
            for task in self.all_tasks():
                if task.status is TaskStatus.DONE:
                    continue
                segments = self._ledger.segments(task.task_id)
                if segments:
                    ranges = [TimeRange(seg.start, seg.end) for seg in segments]
                elif task.scheduled_start is not None and task.scheduled_end is not None:
                    ranges = [TimeRange(task.scheduled_start, task.scheduled_end)]
                else:
                    ranges = []
                for scheduled in ranges:
                    overlap = scheduled.intersection(window)
                    if overlap is not None:
                        items.append(TimelineItem("task", task.title, overlap.start, overlap.end, task.task_id))

            for habit in self.all_habits():
                if not habit.is_due_on(calendar_day):
                    continue
                start = datetime.combine(calendar_day, habit.reminder_time or DEFAULT_HABIT_TIME)
                end = start + timedelta(minutes=max(MIN_HABIT_BLOCK_MINUTES, habit.target_value))
                items.append(TimelineItem("habit", habit.title, start, end, habit.habit_id))

            for session in self.all_focus_sessions():
                overlap = TimeRange(session.start, session.end or current).intersection(window)
                if overlap is None:
                    continue
                title = self._tasks[session.task_id].title if session.task_id in self._tasks else "Focus Session"
                items.append(TimelineItem("focus", title, overlap.start, overlap.end, session.session_id))

        items.sort(key=lambda item: item.start)
        return items
