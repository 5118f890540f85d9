"""Auto-plan scheduling engine."""

from .allocator import DEFAULT_MIN_SPLIT_MINUTES, allocate, allocation_id_for
from .free_slots import compute_free_slots
from .ledger import AllocationLedger
from .ordering import order_candidates, scheduling_sort_key
from .runner import plan_day
from .workday import resolve_work_interval

__all__ = [
    "DEFAULT_MIN_SPLIT_MINUTES",
    "AllocationLedger",
    "allocate",
    "allocation_id_for",
    "compute_free_slots",
    "order_candidates",
    "plan_day",
    "resolve_work_interval",
    "scheduling_sort_key",
]
