"""Workspace-level coherence rules."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from autoplan.models import FocusSessionType, HabitCadence, HabitTargetType, Priority, TaskStatus, Weekday

from .errors import ValidationReport

_DATETIME_FIELDS = ("scheduled_start", "scheduled_end", "due", "created_at", "updated_at")
_PRIORITY_LABELS = {p.label for p in Priority}
_STATUS_VALUES = {s.value for s in TaskStatus}
_CADENCE_VALUES = {c.value for c in HabitCadence}
_TARGET_TYPE_VALUES = {t.value for t in HabitTargetType}
_SESSION_TYPE_VALUES = {t.value for t in FocusSessionType}


class _TimezoneTracker:
    """Remember whether datetimes seen so far carry an offset.

    Aware and naive values cannot be ordered against each other, so a
    workspace must use one form throughout.
    """

    def __init__(self, report: ValidationReport) -> None:
        self._report = report
        self._first: tuple[bool, str] | None = None

    def see(self, value: datetime | None, path: str) -> None:
        if value is None:
            return
        aware = value.tzinfo is not None
        if self._first is None:
            self._first = (aware, path)
            return
        first_aware, first_path = self._first
        if aware != first_aware:
            self._report.add_error(
                code="INCONSISTENT_TIMEZONE",
                message=f"{'Offset' if aware else 'Naive'} datetime mixed with {'naive' if aware else 'offset'} datetime at {first_path}",
                field_path=path,
                suggested_fix="Write every datetime with an offset, or none of them.",
            )


def validate_workspace_payload(payload: dict[str, Any]) -> ValidationReport:
    """Validate a workspace JSON document before it is loaded."""
    report = ValidationReport()
    timezones = _TimezoneTracker(report)

    tasks = _list_section(payload, "tasks", report)
    task_ids: set[str] = set()
    for idx, task in enumerate(tasks):
        path = f"$.tasks[{idx}]"
        if not isinstance(task, dict):
            report.add_error(code="INVALID_TYPE", message="task must be an object", field_path=path)
            continue
        _check_id(task, "task_id", path, task_ids, report)
        _validate_task_fields(task, path, report, timezones)

    allocations = payload.get("allocations", {})
    if not isinstance(allocations, dict):
        report.add_error(code="INVALID_TYPE", message="allocations must be an object", field_path="$.allocations")
        allocations = {}
    for task_id, segments in allocations.items():
        path = f"$.allocations.{task_id}"
        if task_id not in task_ids:
            report.add_error(
                code="UNKNOWN_TASK_REFERENCE",
                message=f"Allocations reference unknown task_id: {task_id}",
                field_path=path,
                suggested_fix="Remove the ledger entry or restore the task.",
            )
        if not isinstance(segments, list):
            report.add_error(code="INVALID_TYPE", message="segments must be a list", field_path=path)
            continue
        for seg_idx, segment in enumerate(segments):
            seg_path = f"{path}[{seg_idx}]"
            if not isinstance(segment, dict):
                report.add_error(code="INVALID_TYPE", message="segment must be an object", field_path=seg_path)
                continue
            start = _parse(segment.get("start"))
            end = _parse(segment.get("end"))
            if start is None or end is None:
                report.add_error(
                    code="INVALID_DATE_FORMAT",
                    message="Segment start/end must be ISO datetimes",
                    field_path=seg_path,
                )
                continue
            timezones.see(start, f"{seg_path}.start")
            timezones.see(end, f"{seg_path}.end")
            if _comparable(start, end) and end <= start:
                report.add_error(
                    code="INVALID_SEGMENT_RANGE",
                    message="Segment end must be after start",
                    field_path=seg_path,
                )

    habit_ids: set[str] = set()
    for idx, habit in enumerate(_list_section(payload, "habits", report)):
        path = f"$.habits[{idx}]"
        if not isinstance(habit, dict):
            report.add_error(code="INVALID_TYPE", message="habit must be an object", field_path=path)
            continue
        _check_id(habit, "habit_id", path, habit_ids, report)
        _validate_habit_fields(habit, path, report, timezones)

    session_ids: set[str] = set()
    for idx, session in enumerate(_list_section(payload, "focus_sessions", report)):
        path = f"$.focus_sessions[{idx}]"
        if not isinstance(session, dict):
            report.add_error(code="INVALID_TYPE", message="focus session must be an object", field_path=path)
            continue
        _check_id(session, "session_id", path, session_ids, report)
        _validate_session_fields(session, path, task_ids, report, timezones)

    note_ids: set[str] = set()
    for idx, note in enumerate(_list_section(payload, "notes", report)):
        path = f"$.notes[{idx}]"
        if not isinstance(note, dict):
            report.add_error(code="INVALID_TYPE", message="note must be an object", field_path=path)
            continue
        _check_id(note, "note_id", path, note_ids, report)
        for name in ("created_at", "updated_at"):
            timezones.see(_datetime_field(note, name, path, report), f"{path}.{name}")

    return report


def _list_section(payload: dict[str, Any], key: str, report: ValidationReport) -> list[Any]:
    items = payload.get(key, [])
    if not isinstance(items, list):
        report.add_error(code="INVALID_TYPE", message=f"{key} must be a list", field_path=f"$.{key}")
        return []
    return items


def _check_id(item: dict[str, Any], key: str, path: str, seen: set[str], report: ValidationReport) -> None:
    value = item.get(key)
    if not isinstance(value, str) or not value:
        report.add_error(code="MISSING_REQUIRED_FIELD", message=f"Missing {key}", field_path=f"{path}.{key}")
    elif value in seen:
        report.add_error(code=f"DUPLICATE_{key.upper()}", message=f"Duplicate {key}: {value}", field_path=f"{path}.{key}")
    else:
        seen.add(value)


def _check_enum(item: dict[str, Any], key: str, default: str, allowed: set[str], path: str, report: ValidationReport) -> None:
    value = item.get(key, default)
    if value not in allowed:
        report.add_error(
            code="INVALID_ENUM_VALUE",
            message=f"Unknown {key} {value!r}",
            field_path=f"{path}.{key}",
            suggested_fix=f"Use one of: {', '.join(sorted(allowed))}",
        )


def _validate_task_fields(task: dict[str, Any], path: str, report: ValidationReport, timezones: _TimezoneTracker) -> None:
    _check_enum(task, "priority", "medium", _PRIORITY_LABELS, path, report)
    _check_enum(task, "status", "todo", _STATUS_VALUES, path, report)

    estimate = task.get("estimate_minutes", 30)
    if not isinstance(estimate, int) or isinstance(estimate, bool):
        report.add_error(code="INVALID_TYPE", message="estimate_minutes must be an integer", field_path=f"{path}.estimate_minutes")
    elif estimate <= 0:
        report.add_info(
            code="INFO_TASK_NOT_PLANNABLE",
            message="Tasks without a positive estimate are never auto-planned",
            field_path=f"{path}.estimate_minutes",
        )

    parsed: dict[str, datetime | None] = {}
    for name in _DATETIME_FIELDS:
        parsed[name] = _datetime_field(task, name, path, report)
        timezones.see(parsed[name], f"{path}.{name}")

    start = parsed.get("scheduled_start")
    end = parsed.get("scheduled_end")
    if start is not None and end is not None and _comparable(start, end) and end < start:
        report.add_error(
            code="INVALID_SCHEDULE_WINDOW",
            message="scheduled_start must be <= scheduled_end",
            field_path=path,
            suggested_fix="Swap the bounds or clear the schedule.",
        )


def _validate_habit_fields(habit: dict[str, Any], path: str, report: ValidationReport, timezones: _TimezoneTracker) -> None:
    _check_enum(habit, "cadence", "daily", _CADENCE_VALUES, path, report)
    _check_enum(habit, "target_type", "count", _TARGET_TYPE_VALUES, path, report)

    days = habit.get("custom_days", [])
    if not isinstance(days, list):
        report.add_error(code="INVALID_TYPE", message="custom_days must be a list", field_path=f"{path}.custom_days")
    else:
        for day_idx, name in enumerate(days):
            try:
                Weekday.from_label(str(name))
            except KeyError:
                report.add_error(
                    code="INVALID_WEEKDAY",
                    message=f"Unknown weekday {name!r}",
                    field_path=f"{path}.custom_days[{day_idx}]",
                )

    for key in ("target_value", "streak"):
        value = habit.get(key, 0)
        if not isinstance(value, int) or isinstance(value, bool) or value < 0:
            report.add_error(code="INVALID_TYPE", message=f"{key} must be a non-negative integer", field_path=f"{path}.{key}")

    reminder = habit.get("reminder_time")
    if reminder not in (None, ""):
        try:
            datetime.strptime(str(reminder), "%H:%M")
        except ValueError:
            report.add_error(code="INVALID_TIME_FORMAT", message=f"reminder_time must be HH:MM, got {reminder!r}", field_path=f"{path}.reminder_time")

    timezones.see(_datetime_field(habit, "last_completed", path, report), f"{path}.last_completed")


def _validate_session_fields(
    session: dict[str, Any],
    path: str,
    task_ids: set[str],
    report: ValidationReport,
    timezones: _TimezoneTracker,
) -> None:
    _check_enum(session, "session_type", "pomodoro", _SESSION_TYPE_VALUES, path, report)

    task_id = session.get("task_id")
    if task_id is not None and task_id not in task_ids:
        report.add_error(
            code="UNKNOWN_TASK_REFERENCE",
            message=f"Focus session references unknown task_id: {task_id}",
            field_path=f"{path}.task_id",
        )

    start = _datetime_field(session, "start", path, report)
    if start is None and "start" not in session:
        report.add_error(code="MISSING_REQUIRED_FIELD", message="Missing start", field_path=f"{path}.start")
    end = _datetime_field(session, "end", path, report)
    timezones.see(start, f"{path}.start")
    timezones.see(end, f"{path}.end")
    if start is not None and end is not None and _comparable(start, end) and end < start:
        report.add_error(code="INVALID_SESSION_RANGE", message="Focus session ends before it starts", field_path=path)


def _datetime_field(item: dict[str, Any], name: str, path: str, report: ValidationReport) -> datetime | None:
    raw = item.get(name)
    if raw in (None, ""):
        return None
    value = _parse(raw)
    if value is None:
        report.add_error(code="INVALID_DATE_FORMAT", message=f"Invalid datetime: {raw!r}", field_path=f"{path}.{name}")
    return value


def _comparable(a: datetime, b: datetime) -> bool:
    return (a.tzinfo is None) == (b.tzinfo is None)


def _parse(raw: Any) -> datetime | None:
    if not isinstance(raw, str):
        return None
    try:
        return datetime.fromisoformat(raw.replace("Z", "+00:00"))
    except ValueError:
        return None
