"""Greedy single-pass allocation of ordered tasks into free slots.

Rules:
- each task takes the first slot that covers its remaining effort, at the slot start;
- a shorter slot is consumed whole only when the slot and the leftover are both
  usable pieces (leftover is zero or at least ``min_split_minutes``);
- nothing is revisited: a skipped slot stays skipped for that task, and an earlier
  task's placement is never undone.
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timedelta
from typing import Sequence

from autoplan.models import Allocation, PlanResult, Task, TimeRange
from autoplan.reporting.decision_trace import DecisionTraceCollector

logger = logging.getLogger(__name__)

DEFAULT_MIN_SPLIT_MINUTES = 25

_ALLOCATION_NAMESPACE = uuid.UUID("6f1d6c1e-3b0a-5c53-9a36-4f3f0d6c2a10")
_ZERO = timedelta(0)


def allocation_id_for(task_id: str, start: datetime, end: datetime) -> str:
    """Stable segment id, so identical runs produce identical output."""
    return str(uuid.uuid5(_ALLOCATION_NAMESPACE, f"{task_id}|{start.isoformat()}|{end.isoformat()}"))


def _segment(task: Task, start: datetime, end: datetime, *, is_split: bool) -> Allocation:
    return Allocation(
        allocation_id=allocation_id_for(task.task_id, start, end),
        task_id=task.task_id,
        start=start,
        end=end,
        is_split=is_split,
    )


def _minutes(value: timedelta) -> float:
    return value.total_seconds() / 60.0


def allocate(
    ordered_tasks: Sequence[Task],
    free_slots: Sequence[TimeRange],
    min_split_minutes: int = DEFAULT_MIN_SPLIT_MINUTES,
    decision_trace: DecisionTraceCollector | None = None,
) -> PlanResult:
    """Place ``ordered_tasks`` into ``free_slots`` in the given order."""

    slots = sorted(free_slots, key=lambda s: s.start)
    min_split = timedelta(minutes=max(0, int(min_split_minutes)))
    allocations: list[Allocation] = []
    unscheduled: list[Task] = []

    for task in ordered_tasks:
        remaining = task.estimated_duration
        if remaining <= _ZERO:
            logger.debug("Task %s has no effort to place; treated as placed", task.task_id)
            continue

        placed_any = False
        for index, slot in enumerate(slots):
            if remaining <= _ZERO:
                break
            if slot.is_empty:
                continue

            if remaining <= slot.duration:
                end = slot.start + remaining
                allocations.append(_segment(task, slot.start, end, is_split=placed_any))
                slots[index] = TimeRange(end, slot.end)
                if decision_trace is not None:
                    decision_trace.record(
                        task_id=task.task_id,
                        action="placed",
                        slot=slot,
                        applied_rules=["RULE_FIRST_FIT", "RULE_PLACE_AT_SLOT_START"],
                        remaining_minutes=0.0,
                    )
                placed_any = True
                remaining = _ZERO
                break

            leftover = remaining - slot.duration
            if slot.duration >= min_split and (leftover == _ZERO or leftover >= min_split):
                allocations.append(_segment(task, slot.start, slot.end, is_split=True))
                slots[index] = TimeRange(slot.end, slot.end)
                remaining = leftover
                placed_any = True
                if decision_trace is not None:
                    decision_trace.record(
                        task_id=task.task_id,
                        action="split",
                        slot=slot,
                        applied_rules=["RULE_FIRST_FIT", "RULE_SPLIT_WHOLE_SLOT"],
                        remaining_minutes=_minutes(remaining),
                    )
                continue

            if decision_trace is not None:
                decision_trace.record(
                    task_id=task.task_id,
                    action="skipped_sliver",
                    slot=slot,
                    applied_rules=["RULE_MIN_SPLIT_THRESHOLD"],
                    remaining_minutes=_minutes(remaining),
                    note="Slot or leftover shorter than the minimum split; slot left free.",
                )

        if remaining > _ZERO:
            unscheduled.append(task)
            logger.debug("Task %s left with %.0f unplaced minutes", task.task_id, _minutes(remaining))
            if decision_trace is not None:
                decision_trace.record(
                    task_id=task.task_id,
                    action="unscheduled",
                    slot=None,
                    applied_rules=["RULE_NO_BACKTRACK"],
                    remaining_minutes=_minutes(remaining),
                )

    allocations.sort(key=lambda a: a.start)
    return PlanResult(allocations=allocations, unscheduled=unscheduled)
