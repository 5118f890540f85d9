"""Decision trace utilities for allocator runtime events."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any

from autoplan.models import TimeRange


@dataclass(slots=True)
class DecisionTraceCollector:
    """Collect placement decisions while the allocator walks the free slots."""

    start_timestamp: datetime
    _sequence: int = 0
    _items: list[dict[str, Any]] = field(default_factory=list)

    def __post_init__(self) -> None:
        if self.start_timestamp.tzinfo is None:
            self.start_timestamp = self.start_timestamp.replace(tzinfo=timezone.utc)

    def record(
        self,
        *,
        task_id: str,
        action: str,
        slot: TimeRange | None,
        applied_rules: list[str],
        remaining_minutes: float,
        note: str = "",
    ) -> None:
        self._sequence += 1
        timestamp = self.start_timestamp + timedelta(seconds=self._sequence)
        self._items.append(
            {
                "decision_id": f"d-{self._sequence:06d}",
                "timestamp": timestamp.isoformat().replace("+00:00", "Z"),
                "task_id": task_id,
                "action": action,
                "slot_start": slot.start.isoformat() if slot is not None else None,
                "slot_end": slot.end.isoformat() if slot is not None else None,
                "applied_rules": list(applied_rules),
                "remaining_minutes": float(remaining_minutes),
                "note": note,
            }
        )

    def actions_for(self, task_id: str) -> list[str]:
        return [item["action"] for item in self._items if item["task_id"] == task_id]

    def as_list(self) -> list[dict[str, Any]]:
        """Return trace sorted in deterministic chronological order."""
        return sorted(self._items, key=lambda item: (str(item["timestamp"]), str(item["decision_id"])))
