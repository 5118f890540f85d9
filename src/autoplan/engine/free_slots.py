"""Free slot computation by interval subtraction.

Busy intervals are clipped to the work interval first, then subtracted one
at a time from the working set. Overlapping or unsorted busy input is
handled because each busy range is removed from every piece it touches.
"""

from __future__ import annotations

from typing import Iterable

from autoplan.models import BusyInterval, TimeRange


def _clip_busy(work_interval: TimeRange, busy: Iterable[BusyInterval]) -> list[TimeRange]:
    clipped: list[TimeRange] = []
    for interval in busy:
        overlap = interval.as_range().intersection(work_interval)
        if overlap is None:
            continue
        clipped.append(overlap)
    return sorted(clipped, key=lambda r: r.start)


def _subtract(pieces: list[TimeRange], block: TimeRange) -> list[TimeRange]:
    remaining: list[TimeRange] = []
    for piece in pieces:
        if not piece.intersects(block):
            remaining.append(piece)
            continue
        if block.start > piece.start:
            remaining.append(TimeRange(piece.start, block.start))
        if block.end < piece.end:
            remaining.append(TimeRange(block.end, piece.end))
    return remaining


def compute_free_slots(work_interval: TimeRange, busy: Iterable[BusyInterval]) -> list[TimeRange]:
    """Return free slots inside ``work_interval``, ascending and disjoint."""

    slots = [work_interval]
    for block in _clip_busy(work_interval, busy):
        slots = _subtract(slots, block)
    return sorted((slot for slot in slots if not slot.is_empty), key=lambda r: r.start)
