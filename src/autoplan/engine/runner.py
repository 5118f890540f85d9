"""Planning engine runner."""

from __future__ import annotations

import logging
from datetime import date, datetime
from typing import Iterable, Sequence

from autoplan.models import BusyInterval, PlanResult, Task, WorkHoursConfig
from autoplan.reporting.decision_trace import DecisionTraceCollector

from .allocator import DEFAULT_MIN_SPLIT_MINUTES, allocate
from .free_slots import compute_free_slots
from .ordering import order_candidates
from .workday import resolve_work_interval

logger = logging.getLogger(__name__)


def plan_day(
    tasks: Sequence[Task],
    busy: Iterable[BusyInterval],
    day: date | datetime,
    work_hours: WorkHoursConfig,
    min_split_minutes: int = DEFAULT_MIN_SPLIT_MINUTES,
    decision_trace: DecisionTraceCollector | None = None,
) -> PlanResult:
    """Plan ``tasks`` into the free time of ``day``.

    ``tasks`` must already be filtered to planning candidates. On a day
    without a work interval every candidate comes back unscheduled, in
    input order.
    """

    work_interval = resolve_work_interval(day, work_hours)
    if work_interval is None:
        logger.info("No work interval on %s; %d task(s) left unscheduled", day, len(tasks))
        return PlanResult(allocations=[], unscheduled=list(tasks))

    free_slots = compute_free_slots(work_interval, busy)
    ordered = order_candidates(tasks)
    result = allocate(ordered, free_slots, min_split_minutes, decision_trace=decision_trace)
    logger.info(
        "Planned %s: %d free slot(s), %d allocation(s), %d unscheduled",
        work_interval.start.date().isoformat(),
        len(free_slots),
        len(result.allocations),
        len(result.unscheduled),
    )
    return result
