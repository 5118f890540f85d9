from __future__ import annotations

from datetime import date, datetime, time, timedelta

from autoplan.capture import parse_quick_add
from autoplan.engine import AllocationLedger, allocation_id_for
from autoplan.metrics import collect_plan_metrics, summarize_week, weekly_interval
from autoplan.models import (
    Allocation,
    CalendarEvent,
    FocusSession,
    Habit,
    HabitCadence,
    Note,
    PlanResult,
    Priority,
    Task,
    TaskStatus,
    TimeRange,
    Weekday,
)
from autoplan.normalization import merge_settings, resolve_settings
from autoplan.reporting import build_error_report_with_validation, build_plan_report
from autoplan.search import search_workspace
from autoplan.validation import ValidationReport, validate_workspace_payload

# Wednesday
REFERENCE = datetime(2026, 1, 7, 10, 15)


def test_settings_defaults_and_overrides() -> None:
    vr = ValidationReport()
    settings = resolve_settings({"work_start": "08:30", "scheduling_days": ["mon", "Saturday"]}, vr)

    assert vr.ok
    assert settings.work_hours.start == time(8, 30)
    assert settings.work_hours.end == time(17, 0)
    assert settings.work_hours.scheduling_days == frozenset({Weekday.MON, Weekday.SAT})
    assert settings.default_duration_minutes == 30
    assert settings.min_split_minutes == 25


def test_settings_report_every_problem_and_fall_back() -> None:
    vr = ValidationReport()
    settings = resolve_settings(
        {
            "work_start": "9am",
            "work_end": "08:00",
            "scheduling_days": ["mon", "funday"],
            "default_duration_minutes": "thirty",
            "colour": "blue",
        },
        vr,
    )

    assert {"INVALID_TIME_FORMAT", "INVALID_WORK_HOURS", "INVALID_WEEKDAY", "INVALID_TYPE", "INVALID_OVERRIDE_KEY"} <= vr.codes()
    assert settings.work_hours.start == time(9, 0)
    assert settings.default_duration_minutes == 30


def test_settings_clamp_negative_split_threshold_with_info() -> None:
    vr = ValidationReport()
    settings = resolve_settings({"min_split_minutes": -5}, vr)

    assert vr.ok
    assert settings.min_split_minutes == 0
    assert [info.code for info in vr.infos] == ["INFO_CLAMP_MIN_SPLIT_MINUTES_APPLIED"]


def test_merge_settings_later_layers_win_and_none_is_ignored() -> None:
    merged = merge_settings({"work_end": "18:00"}, {"work_end": "16:00", "work_start": None}, None)
    assert merged["work_end"] == "16:00"
    assert merged["work_start"] == "09:00"


def test_settings_round_trip_through_dict_form() -> None:
    vr = ValidationReport()
    settings = resolve_settings({"work_end": "18:30", "scheduling_days": ["sun", "mon"]}, vr)
    again = resolve_settings(settings.as_dict(), ValidationReport())
    assert again == settings
    assert settings.as_dict()["scheduling_days"] == ["mon", "sun"]


def test_workspace_validation_reports_multiple_errors() -> None:
    payload = {
        "tasks": [
            {"task_id": "a", "title": "A", "priority": "urgent", "estimate_minutes": 0},
            {"task_id": "a", "title": "A again", "status": "blocked"},
            {
                "task_id": "b",
                "title": "B",
                "scheduled_start": "2026-01-05T11:00:00",
                "scheduled_end": "2026-01-05T10:00:00",
                "due": "next friday",
            },
        ],
        "allocations": {
            "ghost": [{"allocation_id": "x", "task_id": "ghost", "start": "2026-01-05T09:00:00", "end": "2026-01-05T09:00:00"}],
        },
    }

    report = validate_workspace_payload(payload)
    assert report.codes() == {
        "INVALID_ENUM_VALUE",
        "DUPLICATE_TASK_ID",
        "INVALID_SCHEDULE_WINDOW",
        "INVALID_DATE_FORMAT",
        "UNKNOWN_TASK_REFERENCE",
        "INVALID_SEGMENT_RANGE",
    }
    assert [info.code for info in report.infos] == ["INFO_TASK_NOT_PLANNABLE"]


def test_workspace_validation_accepts_empty_workspace() -> None:
    assert validate_workspace_payload({}).ok


def test_workspace_validation_rejects_mixed_timezone_forms() -> None:
    payload = {
        "tasks": [{"task_id": "a", "title": "A", "created_at": "2026-01-05T09:00:00+01:00"}],
        "notes": [{"note_id": "n", "title": "N", "created_at": "2026-01-05T09:00:00"}],
    }
    report = validate_workspace_payload(payload)
    assert report.codes() == {"INCONSISTENT_TIMEZONE"}
    assert report.errors[0].field_path == "$.notes[0].created_at"

    offsets_only = {
        "tasks": [{"task_id": "a", "title": "A", "created_at": "2026-01-05T09:00:00Z", "due": "2026-01-06T09:00:00+02:00"}],
    }
    assert validate_workspace_payload(offsets_only).ok


def test_workspace_validation_checks_habits_sessions_and_notes() -> None:
    payload = {
        "tasks": [{"task_id": "t", "title": "T"}],
        "habits": [
            {"habit_id": "h", "title": "H", "cadence": "hourly", "custom_days": ["funday"], "reminder_time": "7am", "streak": -1},
            {"habit_id": "h", "title": "H again"},
        ],
        "focus_sessions": [
            {"session_id": "s", "task_id": "ghost", "start": "2026-01-05T10:00:00", "end": "2026-01-05T09:00:00"},
            {"session_id": "s2", "session_type": "marathon"},
        ],
        "notes": [{"note_id": "n"}, {"note_id": "n"}],
    }
    report = validate_workspace_payload(payload)
    assert report.codes() == {
        "INVALID_ENUM_VALUE",
        "INVALID_WEEKDAY",
        "INVALID_TIME_FORMAT",
        "INVALID_TYPE",
        "DUPLICATE_HABIT_ID",
        "UNKNOWN_TASK_REFERENCE",
        "INVALID_SESSION_RANGE",
        "MISSING_REQUIRED_FIELD",
        "DUPLICATE_NOTE_ID",
    }


def test_quick_add_extracts_tokens_and_keeps_title() -> None:
    result = parse_quick_add("Write report tmrw 3pm 45m high #work @ops", REFERENCE)

    assert result.title == "Write report"
    assert result.duration_minutes == 45
    assert result.priority is Priority.HIGH
    assert result.tags == ["work"]
    assert result.project == "ops"
    assert result.scheduled_start == datetime(2026, 1, 8, 15, 0)


def test_quick_add_weekday_is_next_occurrence_but_due_may_be_today() -> None:
    scheduled = parse_quick_add("Standup wed 9:30", REFERENCE)
    assert scheduled.scheduled_start == datetime(2026, 1, 14, 9, 30)

    due = parse_quick_add("File taxes due wed", REFERENCE)
    assert due.title == "File taxes"
    assert due.due == datetime(2026, 1, 7)
    assert due.scheduled_start is None


def test_quick_add_dates_durations_and_plain_text() -> None:
    result = parse_quick_add("Renew passport 1/2 2h p3", REFERENCE)
    assert result.scheduled_start == datetime(2027, 1, 2)
    assert result.duration_minutes == 120
    assert result.priority is Priority.LOW

    plain = parse_quick_add("Buy 2 apples", REFERENCE)
    assert plain.title == "Buy apples"
    assert plain.scheduled_start is None

    only_tokens = parse_quick_add("  today  ", REFERENCE)
    assert only_tokens.title == "today"
    assert only_tokens.scheduled_start == datetime(2026, 1, 7)


def test_search_ranks_exact_then_prefix_matches() -> None:
    tasks = [
        Task(title="Review budget", task_id="1"),
        Task(title="budget", task_id="2", due=datetime(2026, 1, 9, 17, 0)),
        Task(title="Plan offsite", task_id="3", notes="mention the budgeting tool"),
        Task(title="Walk dog", task_id="4"),
    ]

    results = search_workspace("  Budget ", tasks)
    assert [r.ref_id for r in results] == ["2", "3", "1"]
    assert results[0].relevance == 2.5
    assert results[0].subtitle == "Due 2026-01-09 17:00"
    assert search_workspace("   ", tasks) == []
    assert len(search_workspace("budget", tasks, limit=1)) == 1


def test_search_covers_habits_notes_focus_sessions_and_events() -> None:
    task = Task(title="Write report", task_id="t1")
    habits = [Habit(title="Morning writing", habit_id="h1", streak=4)]
    notes = [Note(title="Ideas", body="writing prompts", note_id="n1")]
    sessions = [
        FocusSession(start=datetime(2026, 1, 5, 9), session_id="f1", task_id="t1", end=datetime(2026, 1, 5, 9, 25)),
        FocusSession(start=datetime(2026, 1, 5, 10), session_id="f2"),
    ]
    events = [CalendarEvent(title="Writing workshop", start=datetime(2026, 1, 6, 14), end=datetime(2026, 1, 6, 15))]

    results = search_workspace("writ", [task], habits=habits, notes=notes, focus_sessions=sessions, events=events)
    by_ref = {r.ref_id: r for r in results}
    assert by_ref["h1"].kind == "habit" and by_ref["h1"].subtitle == "Streak: 4"
    assert by_ref["n1"].kind == "note" and by_ref["n1"].subtitle == "Note"
    assert by_ref["f1"].title == "Write report" and by_ref["f1"].subtitle == "25m, 2026-01-05 09:00"
    assert by_ref["Writing workshop"].subtitle == "2026-01-06 14:00"
    assert "f2" not in by_ref

    running = search_workspace("focus", [task], focus_sessions=sessions)
    assert [(r.ref_id, r.subtitle) for r in running] == [("f2", "In progress")]


def _segment(task_id: str, start: datetime, minutes: int, is_split: bool = False) -> Allocation:
    end = start + timedelta(minutes=minutes)
    return Allocation(allocation_id_for(task_id, start, end), task_id, start, end, is_split)


def test_plan_metrics_count_split_and_partial_tasks() -> None:
    day = datetime(2026, 1, 5)
    partial = Task(title="long", task_id="long", estimate_minutes=600)
    result = PlanResult(
        allocations=[
            _segment("long", day.replace(hour=9), 180, True),
            _segment("short", day.replace(hour=12), 30),
            _segment("long", day.replace(hour=13), 240, True),
        ],
        unscheduled=[partial],
    )

    metrics = collect_plan_metrics(result, TimeRange(day.replace(hour=9), day.replace(hour=17)))
    assert metrics["planned_minutes"] == 450
    assert metrics["work_minutes"] == 480
    assert metrics["utilization"] == 450 / 480
    assert metrics["split_task_ids"] == ["long"]
    assert metrics["fully_placed_count"] == 1
    assert metrics["partially_placed_count"] == 1
    assert collect_plan_metrics(PlanResult(), None)["utilization"] == 0.0


def test_weekly_summary_counts_completed_tasks_and_planned_minutes() -> None:
    interval = weekly_interval(datetime(2026, 1, 8, 12, 0))
    assert interval.start == datetime(2026, 1, 5)
    assert interval.end == datetime(2026, 1, 12)

    tasks = [
        Task(title="a", task_id="a", status=TaskStatus.DONE, tags=["work", "deep"], updated_at=datetime(2026, 1, 6, 10)),
        Task(title="b", task_id="b", status=TaskStatus.DONE, tags=["work"], updated_at=datetime(2026, 1, 9, 10)),
        Task(title="c", task_id="c", status=TaskStatus.DONE, tags=["home"], updated_at=datetime(2026, 1, 2, 10)),
        Task(title="d", task_id="d"),
    ]
    ledger = AllocationLedger()
    ledger.record(
        [
            _segment("a", datetime(2026, 1, 6, 9), 60),
            _segment("d", datetime(2026, 1, 7, 9), 30),
            _segment("d", datetime(2026, 1, 12, 9), 30),
        ]
    )

    summary = summarize_week(tasks, ledger, interval)
    assert summary.completed_count == 2
    assert summary.completed_by_tag == {"work": 2, "deep": 1}
    assert summary.planned_minutes == 90
    assert summary.open_planned_minutes == 30


def test_weekly_summary_counts_finished_focus_sessions_and_habit_streaks() -> None:
    interval = weekly_interval(datetime(2026, 1, 7))
    sessions = [
        FocusSession(start=datetime(2026, 1, 5, 9), end=datetime(2026, 1, 5, 9, 25)),
        FocusSession(start=datetime(2026, 1, 4, 23, 50), end=datetime(2026, 1, 5, 0, 35)),
        FocusSession(start=datetime(2026, 1, 6, 9)),
        FocusSession(start=datetime(2026, 1, 12, 9), end=datetime(2026, 1, 12, 10)),
    ]
    habits = [Habit(title="Read", habit_id="read", streak=2), Habit(title="Run", habit_id="run", streak=5)]

    summary = summarize_week([], AllocationLedger(), interval, focus_sessions=sessions, habits=habits)
    assert summary.total_focus_minutes == 70
    assert summary.focus_session_count == 2
    assert summary.average_focus_minutes == 35.0
    assert list(summary.habit_streaks.items()) == [("run", 5), ("read", 2)]
    assert summarize_week([], AllocationLedger(), interval).average_focus_minutes == 0.0


def test_habit_due_days_and_streak_progression() -> None:
    monday, saturday = date(2026, 1, 5), date(2026, 1, 10)
    assert Habit(title="a").is_due_on(saturday)
    assert not Habit(title="b", cadence=HabitCadence.WEEKDAYS).is_due_on(saturday)
    custom = Habit(title="c", cadence=HabitCadence.CUSTOM, custom_days=frozenset({Weekday.SAT}))
    assert custom.is_due_on(saturday) and not custom.is_due_on(monday)

    habit = Habit(title="Read").completing(datetime(2026, 1, 5, 8))
    assert habit.streak == 1
    habit = habit.completing(datetime(2026, 1, 5, 21))
    assert habit.streak == 1
    habit = habit.completing(datetime(2026, 1, 6, 7))
    assert habit.streak == 2
    habit = habit.completing(datetime(2026, 1, 9, 7))
    assert habit.streak == 1
    assert Habit.from_dict(habit.as_dict()) == habit


def test_plan_report_and_error_report_shapes() -> None:
    day = datetime(2026, 1, 5, 9)
    report = build_plan_report(PlanResult(allocations=[_segment("a", day, 30)], unscheduled=[Task(title="x", task_id="x")]))
    assert report["status"] == "ok"
    assert report["allocations"][0]["start"] == "2026-01-05T09:00:00"
    assert report["unscheduled"] == [{"task_id": "x", "title": "x", "estimate_minutes": 30}]
    assert report["decision_trace"] == []

    vr = ValidationReport()
    vr.add_error(code="INVALID_TYPE", message="bad", field_path="$.tasks")
    error = build_error_report_with_validation(vr.as_errors(), vr)
    assert error["status"] == "error"
    assert error["error"]["count"] == 1
    assert error["error"]["details"][0] == {"code": "INVALID_TYPE", "message": "bad", "path": "$.tasks"}
    assert error["validation_report"]["errors"][0]["field_path"] == "$.tasks"
