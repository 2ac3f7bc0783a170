"""
Interval arithmetic over free/busy time.

Pure functions, no I/O:
- merge_intervals: fold overlapping/touching busy intervals
- find_available_slots: complement of busy time inside a window
- is_slot_available: whether a slot collides with busy time
"""

from __future__ import annotations

from datetime import datetime
from typing import Iterable

from app.models.calendar import FreeBusyInterval


def merge_intervals(intervals: Iterable[FreeBusyInterval]) -> list[FreeBusyInterval]:
    """
    Merge overlapping or adjacent intervals.

    Returns:
        Minimal, non-overlapping intervals sorted by start
    """
    ordered = sorted(intervals, key=lambda i: (i.start, i.end))
    if not ordered:
        return []

    merged = [ordered[0]]
    for current in ordered[1:]:
        last = merged[-1]
        if current.start <= last.end:
            if current.end > last.end:
                merged[-1] = FreeBusyInterval(start=last.start, end=current.end)
        else:
            merged.append(current)
    return merged


def clip_intervals(
    intervals: Iterable[FreeBusyInterval],
    window_start: datetime,
    window_end: datetime,
) -> list[FreeBusyInterval]:
    """Clamp intervals to the window, dropping those fully outside it."""
    clipped = []
    for interval in intervals:
        start = max(interval.start, window_start)
        end = min(interval.end, window_end)
        if end > start:
            clipped.append(FreeBusyInterval(start=start, end=end))
    return clipped


def find_available_slots(
    busy: Iterable[FreeBusyInterval],
    window_start: datetime,
    window_end: datetime,
    min_minutes: float,
) -> list[FreeBusyInterval]:
    """
    Free slots of at least ``min_minutes`` inside [window_start, window_end).

    Busy intervals may be unsorted and overlapping; the cursor only moves
    forward so contained or overlapping intervals are absorbed.
    """
    if window_end <= window_start:
        return []

    slots: list[FreeBusyInterval] = []

    def emit(start: datetime, end: datetime) -> None:
        if end > start and (end - start).total_seconds() / 60 >= min_minutes:
            slots.append(FreeBusyInterval(start=start, end=end))

    cursor = window_start
    for interval in sorted(
        clip_intervals(busy, window_start, window_end), key=lambda i: i.start
    ):
        if interval.start > cursor:
            emit(cursor, interval.start)
        if interval.end > cursor:
            cursor = interval.end

    emit(cursor, window_end)
    return slots


def is_slot_available(slot: FreeBusyInterval, busy: Iterable[FreeBusyInterval]) -> bool:
    """True when no busy interval overlaps the half-open slot."""
    return all(b.end <= slot.start or b.start >= slot.end for b in busy)
