"""CLI entrypoint for autoplan."""

from __future__ import annotations

import argparse
import json
import logging
import sys
from datetime import date, datetime, timedelta
from pathlib import Path
from typing import Any

from autoplan.capture import parse_quick_add
from autoplan.engine import resolve_work_interval
from autoplan.io import read_json
from autoplan.metrics import collect_plan_metrics, summarize_week, weekly_interval
from autoplan.models import (
    CalendarEvent,
    FocusSessionType,
    Habit,
    HabitCadence,
    HabitTargetType,
    Note,
    Settings,
    Task,
    Weekday,
)
from autoplan.normalization import parse_clock, resolve_settings
from autoplan.reporting import (
    DecisionTraceCollector,
    build_error_report,
    build_error_report_with_validation,
    build_plan_report,
)
from autoplan.search import search_workspace
from autoplan.store import WorkspaceLoadError, WorkspaceStore
from autoplan.validation import ValidationError, ValidationReport

logger = logging.getLogger(__name__)

DEFAULT_WORKSPACE = "autoplan-workspace.json"


class InputError(ValueError):
    """Command-line input that cannot be turned into a request."""

    def __init__(self, errors: list[ValidationError], code: str) -> None:
        super().__init__("; ".join(err.message for err in errors))
        self.errors = errors
        self.code = code


def _print_json(payload: dict[str, Any]) -> None:
    print(json.dumps(payload, ensure_ascii=False, indent=2, sort_keys=True))


def _fail(error: InputError, as_json: bool, validation_report: ValidationReport | None = None) -> int:
    if as_json:
        if validation_report is not None:
            _print_json(build_error_report_with_validation(error.errors, validation_report, code=error.code))
        else:
            _print_json(build_error_report(error.errors, code=error.code))
    else:
        for err in error.errors:
            print(f"error: {err.message} ({err.path})", file=sys.stderr)
    return 2


def parse_day(value: str | None) -> date:
    if value is None:
        return date.today()
    try:
        return date.fromisoformat(value)
    except ValueError as exc:
        raise InputError(
            [ValidationError(code="INVALID_DATE_FORMAT", message=f"Invalid date {value!r}, expected YYYY-MM-DD", path="--date")],
            code="invalid_arguments",
        ) from exc


def parse_event(value: str, day: date) -> CalendarEvent:
    """Turn ``HH:MM-HH:MM[=title]`` into a calendar event on ``day``."""
    span, _, title = value.partition("=")
    start_raw, sep, end_raw = span.partition("-")
    try:
        if not sep:
            raise ValueError(value)
        start = datetime.combine(day, parse_clock(start_raw))
        end = datetime.combine(day, parse_clock(end_raw))
    except ValueError as exc:
        raise InputError(
            [ValidationError(code="INVALID_TIME_FORMAT", message=f"Invalid event {value!r}, expected HH:MM-HH:MM", path="--event")],
            code="invalid_arguments",
        ) from exc
    if end <= start:
        end += timedelta(days=1)
    return CalendarEvent(title=title.strip() or "Busy", start=start, end=end)


def load_settings(path: str | None) -> tuple[Settings, ValidationReport]:
    report = ValidationReport()
    source: dict[str, Any] | None = None
    if path is not None:
        try:
            source = read_json(path)
        except (OSError, ValueError) as exc:
            raise InputError(
                [ValidationError(code="invalid_settings", message=str(exc), path="--settings")],
                code="settings_read_error",
            ) from exc
    settings = resolve_settings(source, report)
    return settings, report


def open_store(args: argparse.Namespace) -> WorkspaceStore:
    settings, report = load_settings(args.settings)
    if not report.ok:
        raise InputError(report.as_errors(), code="validation_error")
    for info in report.infos:
        logger.info("%s: %s", info.code, info.message)

    store = WorkspaceStore(args.workspace, settings)
    if args.settings is not None:
        # Read-only commands never write; mutating ones save the applied settings with their change.
        store.update_settings(settings, persist=False)
    return store


def _describe(task: Task) -> str:
    parts = [f"{task.task_id[:8]}", f"[{task.status.value}]", task.title, f"({task.estimate_minutes}m, {task.priority.label})"]
    if task.scheduled_start is not None and task.scheduled_end is not None:
        parts.append(f"{task.scheduled_start:%Y-%m-%d %H:%M}-{task.scheduled_end:%H:%M}")
    if task.due is not None:
        parts.append(f"due {task.due:%Y-%m-%d}")
    return " ".join(parts)


def run_quickadd_command(store: WorkspaceStore, text: str) -> int:
    if not text.strip():
        raise InputError(
            [ValidationError(code="MISSING_REQUIRED_FIELD", message="Nothing to add", path="text")],
            code="invalid_arguments",
        )
    task = store.quick_add(parse_quick_add(text))
    print(f"Added {_describe(task)}")
    return 0


def run_tasks_command(store: WorkspaceStore) -> int:
    for task in store.all_tasks():
        print(_describe(task))
    return 0


def run_done_command(store: WorkspaceStore, task_id: str) -> int:
    try:
        task = store.complete_task(task_id)
    except KeyError as exc:
        raise InputError(
            [ValidationError(code="UNKNOWN_TASK_REFERENCE", message=f"No task {task_id!r}", path="task_id")],
            code="not_found",
        ) from exc
    print(f"Done {_describe(task)}")
    return 0


def run_plan_command(store: WorkspaceStore, day: date, events: list[CalendarEvent], as_json: bool) -> int:
    trace = DecisionTraceCollector(start_timestamp=datetime.combine(day, datetime.min.time()))
    result = store.auto_plan(day, events, decision_trace=trace)
    metrics = collect_plan_metrics(result, resolve_work_interval(day, store.current_settings().work_hours))

    if as_json:
        _print_json(build_plan_report(result, trace, metrics))
        return 0

    titles = {task.task_id: task.title for task in store.all_tasks()}
    for allocation in result.allocations:
        marker = " (split)" if allocation.is_split else ""
        print(f"{allocation.start:%H:%M}-{allocation.end:%H:%M} {titles.get(allocation.task_id, allocation.task_id)}{marker}")
    for task in result.unscheduled:
        print(f"unscheduled: {task.title}")
    print(f"{metrics['planned_minutes']} of {metrics['work_minutes']} work minutes planned")
    return 0


def run_timeline_command(store: WorkspaceStore, day: date, events: list[CalendarEvent]) -> int:
    for item in store.timeline(day, events):
        print(f"{item.start:%H:%M}-{item.end:%H:%M} {item.kind:<5} {item.title}")
    return 0


def run_insights_command(store: WorkspaceStore, day: date) -> int:
    snapshot = store.snapshot()
    summary = summarize_week(
        snapshot.tasks,
        snapshot.ledger,
        weekly_interval(day),
        focus_sessions=snapshot.focus_sessions,
        habits=snapshot.habits,
    )
    print(f"Week of {summary.interval.start:%Y-%m-%d}")
    print(f"Completed: {summary.completed_count}")
    for tag, count in summary.completed_by_tag.items():
        print(f"  #{tag}: {count}")
    print(f"Planned minutes: {summary.planned_minutes} ({summary.open_planned_minutes} still open)")
    print(f"Focus minutes: {summary.total_focus_minutes} over {summary.focus_session_count} session(s)")
    titles = {habit.habit_id: habit.title for habit in snapshot.habits}
    for habit_id, streak in summary.habit_streaks.items():
        print(f"  {titles[habit_id]}: {streak} day streak")
    return 0


def run_search_command(store: WorkspaceStore, query: str) -> int:
    snapshot = store.snapshot()
    hits = search_workspace(
        query,
        snapshot.tasks,
        habits=snapshot.habits,
        notes=snapshot.notes,
        focus_sessions=snapshot.focus_sessions,
    )
    for hit in hits:
        line = f"{hit.ref_id[:8]} {hit.kind:<5} {hit.title}"
        if hit.subtitle:
            line += f" - {hit.subtitle}"
        print(line)
    return 0


def _moment(day_raw: str | None, at_raw: str | None) -> datetime | None:
    """``--date``/``--at`` pair as a datetime, or None when neither is given."""
    if day_raw is None and at_raw is None:
        return None
    day = parse_day(day_raw)
    if at_raw is None:
        return datetime.combine(day, datetime.now().time())
    try:
        clock = parse_clock(at_raw)
    except ValueError as exc:
        raise InputError(
            [ValidationError(code="INVALID_TIME_FORMAT", message=f"Invalid time {at_raw!r}, expected HH:MM", path="--at")],
            code="invalid_arguments",
        ) from exc
    return datetime.combine(day, clock)


def _not_found(kind: str, ref: str) -> InputError:
    return InputError(
        [ValidationError(code="UNKNOWN_REFERENCE", message=f"No {kind} {ref!r}", path="id")],
        code="not_found",
    )


def run_habit_command(store: WorkspaceStore, args: argparse.Namespace) -> int:
    if args.habit_command == "add":
        try:
            days = frozenset(Weekday.from_label(name.strip()) for name in args.days.split(",") if name.strip()) if args.days else frozenset()
            reminder = parse_clock(args.at) if args.at else None
        except (KeyError, ValueError) as exc:
            raise InputError(
                [ValidationError(code="INVALID_ARGUMENT", message=f"Invalid habit option: {exc}", path="habit")],
                code="invalid_arguments",
            ) from exc
        cadence = HabitCadence(args.cadence)
        if cadence is HabitCadence.CUSTOM and not days:
            raise InputError(
                [ValidationError(code="MISSING_REQUIRED_FIELD", message="Custom cadence needs --days", path="--days")],
                code="invalid_arguments",
            )
        habit = store.add_habit(
            Habit(
                title=" ".join(args.title),
                cadence=cadence,
                custom_days=days,
                target_type=HabitTargetType(args.target_type),
                target_value=args.target,
                reminder_time=reminder,
            )
        )
        print(f"Added habit {habit.habit_id[:8]} {habit.title} ({habit.cadence.value})")
        return 0

    if args.habit_command == "done":
        when = _moment(args.date, None)
        try:
            habit = store.complete_habit(args.habit_id, when)
        except KeyError as exc:
            raise _not_found("habit", args.habit_id) from exc
        print(f"Done habit {habit.title}: {habit.streak} day streak")
        return 0

    for habit in store.all_habits():
        reminder = f" at {habit.reminder_time:%H:%M}" if habit.reminder_time is not None else ""
        print(f"{habit.habit_id[:8]} {habit.title} ({habit.cadence.value}{reminder}) streak {habit.streak}")
    return 0


def run_focus_command(store: WorkspaceStore, args: argparse.Namespace) -> int:
    when = _moment(args.date, args.at)
    if args.focus_command == "start":
        try:
            session = store.start_focus_session(args.task, args.minutes, FocusSessionType(args.type), when)
        except KeyError as exc:
            raise _not_found("task", args.task) from exc
        print(f"Focus {session.session_id[:8]} started at {session.start:%H:%M} for {session.planned_minutes}m")
        return 0

    try:
        session = store.end_focus_session(args.session_id, when)
    except KeyError as exc:
        raise _not_found("focus session", args.session_id) from exc
    print(f"Focus {session.session_id[:8]} ended after {session.actual_minutes}m")
    return 0


def run_note_command(store: WorkspaceStore, args: argparse.Namespace) -> int:
    if args.note_command == "add":
        note = store.add_note(Note(title=" ".join(args.title), body=args.body, pinned=args.pin))
        print(f"Added note {note.note_id[:8]} {note.title}")
        return 0

    for note in store.all_notes():
        marker = "* " if note.pinned else ""
        print(f"{note.note_id[:8]} {marker}{note.title}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="autoplan", description="Plan tasks into the free time of a work day")
    parser.add_argument("--workspace", default=DEFAULT_WORKSPACE, help="Path to the workspace JSON file")
    parser.add_argument("--settings", help="Path to a settings JSON file")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    subparsers = parser.add_subparsers(dest="command", required=True)

    quickadd = subparsers.add_parser("quickadd", help="Capture a task from one line of text")
    quickadd.add_argument("text", nargs="+")

    subparsers.add_parser("tasks", help="List tasks")

    done = subparsers.add_parser("done", help="Mark a task done")
    done.add_argument("task_id")

    plan = subparsers.add_parser("plan", help="Auto-plan unscheduled tasks into a day")
    plan.add_argument("--date", help="Day to plan (YYYY-MM-DD, default today)")
    plan.add_argument("--event", action="append", default=[], help="Busy time HH:MM-HH:MM[=title]")
    plan.add_argument("--json", action="store_true", help="Print a JSON report")

    timeline = subparsers.add_parser("timeline", help="Show events and tasks of a day")
    timeline.add_argument("--date")
    timeline.add_argument("--event", action="append", default=[])

    insights = subparsers.add_parser("insights", help="Summarize the week")
    insights.add_argument("--date")

    search = subparsers.add_parser("search", help="Search tasks, habits, notes and focus sessions")
    search.add_argument("query", nargs="+")

    habit = subparsers.add_parser("habit", help="Track recurring habits")
    habit_commands = habit.add_subparsers(dest="habit_command", required=True)
    habit_add = habit_commands.add_parser("add", help="Create a habit")
    habit_add.add_argument("title", nargs="+")
    habit_add.add_argument("--cadence", choices=[c.value for c in HabitCadence], default=HabitCadence.DAILY.value)
    habit_add.add_argument("--days", help="Comma separated weekdays for a custom cadence, e.g. mon,wed,fri")
    habit_add.add_argument("--target", type=int, default=1)
    habit_add.add_argument("--target-type", choices=[t.value for t in HabitTargetType], default=HabitTargetType.COUNT.value)
    habit_add.add_argument("--at", help="Reminder time HH:MM")
    habit_done = habit_commands.add_parser("done", help="Record a completion")
    habit_done.add_argument("habit_id")
    habit_done.add_argument("--date", help="Completion day (YYYY-MM-DD, default now)")
    habit_commands.add_parser("list", help="List habits")

    focus = subparsers.add_parser("focus", help="Start or stop a focus session")
    focus_commands = focus.add_subparsers(dest="focus_command", required=True)
    focus_start = focus_commands.add_parser("start", help="Start a session")
    focus_start.add_argument("--task", help="Task id or unique prefix")
    focus_start.add_argument("--minutes", type=int, default=25)
    focus_start.add_argument("--type", choices=[t.value for t in FocusSessionType], default=FocusSessionType.POMODORO.value)
    focus_stop = focus_commands.add_parser("stop", help="End a session")
    focus_stop.add_argument("session_id")
    for sub in (focus_start, focus_stop):
        sub.add_argument("--date", help="Day of the event (YYYY-MM-DD, default today)")
        sub.add_argument("--at", help="Clock time HH:MM (default now)")

    note = subparsers.add_parser("note", help="Keep short notes")
    note_commands = note.add_subparsers(dest="note_command", required=True)
    note_add = note_commands.add_parser("add", help="Write a note")
    note_add.add_argument("title", nargs="+")
    note_add.add_argument("--body", default="")
    note_add.add_argument("--pin", action="store_true")
    note_commands.add_parser("list", help="List notes, pinned first")

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )
    as_json = bool(getattr(args, "json", False))

    try:
        store = open_store(args)
    except InputError as exc:
        return _fail(exc, as_json)
    except WorkspaceLoadError as exc:
        error = InputError(exc.report.as_errors() or [ValidationError(code="workspace_read_error", message=str(exc), path="--workspace")], code="workspace_error")
        return _fail(error, as_json, validation_report=exc.report)

    try:
        if args.command == "quickadd":
            return run_quickadd_command(store, " ".join(args.text))
        if args.command == "tasks":
            return run_tasks_command(store)
        if args.command == "done":
            return run_done_command(store, args.task_id)
        if args.command == "plan":
            day = parse_day(args.date)
            return run_plan_command(store, day, [parse_event(raw, day) for raw in args.event], as_json)
        if args.command == "timeline":
            day = parse_day(args.date)
            return run_timeline_command(store, day, [parse_event(raw, day) for raw in args.event])
        if args.command == "insights":
            return run_insights_command(store, parse_day(args.date))
        if args.command == "search":
            return run_search_command(store, " ".join(args.query))
        if args.command == "habit":
            return run_habit_command(store, args)
        if args.command == "focus":
            return run_focus_command(store, args)
        if args.command == "note":
            return run_note_command(store, args)
    except InputError as exc:
        return _fail(exc, as_json)

    parser.error("Unknown command")
    return 2


if __name__ == "__main__":
    raise SystemExit(main())
