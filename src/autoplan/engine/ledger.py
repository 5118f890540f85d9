"""Per-task allocation history and derived scheduled ranges."""

from __future__ import annotations

from typing import Any, Iterable

from autoplan.models import Allocation, TimeRange


class AllocationLedger:
    """Accumulate allocation segments per task across planning runs.

    The ledger is additive: segments from earlier runs are never removed or
    merged. Re-planning a task that is already fully allocated therefore adds
    another segment; callers avoid that by planning unscheduled tasks only.
    """

    def __init__(self, segments: dict[str, list[Allocation]] | None = None) -> None:
        self._segments: dict[str, list[Allocation]] = {}
        for task_id, items in (segments or {}).items():
            self._segments[task_id] = sorted(items, key=lambda a: a.start)

    def record(self, allocations: Iterable[Allocation]) -> dict[str, TimeRange]:
        """Append a run's allocations and return bounds of the tasks it touched."""
        touched: list[str] = []
        for allocation in allocations:
            history = self._segments.setdefault(allocation.task_id, [])
            history.append(allocation)
            if allocation.task_id not in touched:
                touched.append(allocation.task_id)

        bounds: dict[str, TimeRange] = {}
        for task_id in touched:
            self._segments[task_id].sort(key=lambda a: a.start)
            task_bounds = self.bounds(task_id)
            assert task_bounds is not None
            bounds[task_id] = task_bounds
        return bounds

    def segments(self, task_id: str) -> list[Allocation]:
        return list(self._segments.get(task_id, []))

    def bounds(self, task_id: str) -> TimeRange | None:
        history = self._segments.get(task_id)
        if not history:
            return None
        return TimeRange(
            min(item.start for item in history),
            max(item.end for item in history),
        )

    def task_ids(self) -> list[str]:
        return sorted(self._segments)

    def __contains__(self, task_id: object) -> bool:
        return task_id in self._segments

    def __len__(self) -> int:
        return len(self._segments)

    def as_dict(self) -> dict[str, list[dict[str, Any]]]:
        return {
            task_id: [item.as_dict() for item in self._segments[task_id]]
            for task_id in sorted(self._segments)
        }

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> "AllocationLedger":
        return cls(
            {
                str(task_id): [Allocation.from_dict(item) for item in items if isinstance(item, dict)]
                for task_id, items in payload.items()
                if isinstance(items, list)
            }
        )
