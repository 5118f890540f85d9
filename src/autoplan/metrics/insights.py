"""Plan metrics and weekly insights."""

from __future__ import annotations

from collections import Counter, defaultdict
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta
from typing import Any, Iterable

from autoplan.engine.ledger import AllocationLedger
from autoplan.models import FocusSession, Habit, PlanResult, Task, TaskStatus, TimeRange


def _clamp01(value: float) -> float:
    return max(0.0, min(1.0, float(value)))


def _minutes(value: timedelta) -> int:
    return int(value.total_seconds() // 60)


def collect_plan_metrics(result: PlanResult, work_interval: TimeRange | None) -> dict[str, Any]:
    """Summarize one planning run; ratios are clamped into [0,1]."""
    planned_by_task: dict[str, int] = defaultdict(int)
    for allocation in result.allocations:
        planned_by_task[allocation.task_id] += _minutes(allocation.duration)

    planned_minutes = sum(planned_by_task.values())
    work_minutes = _minutes(work_interval.duration) if work_interval is not None else 0
    split_tasks = sorted(
        task_id for task_id, count in Counter(a.task_id for a in result.allocations).items() if count > 1
    )
    unscheduled_ids = {task.task_id for task in result.unscheduled}

    return {
        "allocation_count": len(result.allocations),
        "planned_minutes": planned_minutes,
        "work_minutes": work_minutes,
        "utilization": _clamp01(planned_minutes / work_minutes) if work_minutes else 0.0,
        "split_task_ids": split_tasks,
        "fully_placed_count": len([tid for tid in planned_by_task if tid not in unscheduled_ids]),
        "partially_placed_count": len([tid for tid in planned_by_task if tid in unscheduled_ids]),
        "unscheduled_count": len(result.unscheduled),
    }


@dataclass(slots=True)
class InsightSummary:
    interval: TimeRange
    completed_count: int = 0
    completed_by_tag: dict[str, int] = field(default_factory=dict)
    planned_minutes: int = 0
    open_planned_minutes: int = 0
    total_focus_minutes: int = 0
    focus_session_count: int = 0
    habit_streaks: dict[str, int] = field(default_factory=dict)

    @property
    def average_focus_minutes(self) -> float:
        if not self.focus_session_count:
            return 0.0
        return self.total_focus_minutes / self.focus_session_count


def weekly_interval(day: date | datetime) -> TimeRange:
    """Monday-to-Monday week containing ``day``."""
    calendar_day = day.date() if isinstance(day, datetime) else day
    monday = calendar_day - timedelta(days=calendar_day.weekday())
    start = datetime.combine(monday, time.min)
    return TimeRange(start, start + timedelta(days=7))


def summarize_week(
    tasks: Iterable[Task],
    ledger: AllocationLedger,
    interval: TimeRange,
    focus_sessions: Iterable[FocusSession] = (),
    habits: Iterable[Habit] = (),
) -> InsightSummary:
    """Completions, planned time, finished focus time and habit streaks of one week.

    A focus session counts when it has ended and overlaps the week; its whole
    elapsed time is credited. Running sessions are left out.
    """
    summary = InsightSummary(interval=interval)
    tag_counts: Counter[str] = Counter()
    status_by_task: dict[str, TaskStatus] = {}

    for task in tasks:
        status_by_task[task.task_id] = task.status
        if task.status is not TaskStatus.DONE:
            continue
        if not (interval.start <= task.updated_at < interval.end):
            continue
        summary.completed_count += 1
        tag_counts.update(task.tags)

    for task_id in ledger.task_ids():
        for segment in ledger.segments(task_id):
            overlap = TimeRange(segment.start, segment.end).intersection(interval)
            if overlap is None:
                continue
            minutes = _minutes(overlap.duration)
            summary.planned_minutes += minutes
            if status_by_task.get(task_id) is not TaskStatus.DONE:
                summary.open_planned_minutes += minutes

    for session in focus_sessions:
        if session.end is None:
            continue
        if session.start >= interval.end or session.end < interval.start:
            continue
        summary.total_focus_minutes += session.elapsed_minutes
        summary.focus_session_count += 1

    summary.habit_streaks = {habit.habit_id: habit.streak for habit in sorted(habits, key=lambda h: (-h.streak, h.title))}
    summary.completed_by_tag = dict(sorted(tag_counts.items(), key=lambda item: (-item[1], item[0])))
    return summary
