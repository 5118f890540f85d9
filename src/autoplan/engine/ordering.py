"""Deterministic placement order for planning candidates."""

from __future__ import annotations

from datetime import datetime
from typing import Iterable

from autoplan.models import Task


def scheduling_sort_key(task: Task) -> tuple[int, datetime | None, int, int]:
    """Return the placement key of ``task``.

    Order:
    1) due date ascending, tasks without a due date last
    2) higher priority first
    3) larger estimate first
    """

    # The flag decides before the instant is ever compared, so None never meets a datetime.
    if task.due is None:
        return (1, None, -int(task.priority), -int(task.estimate_minutes))
    return (0, task.due, -int(task.priority), -int(task.estimate_minutes))


def order_candidates(tasks: Iterable[Task]) -> list[Task]:
    """Sort tasks for placement; full ties keep their input order."""
    return sorted(tasks, key=scheduling_sort_key)
