"""
core/segments.py — Segment windows and note-list merging.

Long media is analysed in fixed-length segments (30, 60 or 90 seconds) so the
UI can show notes for the current part while the rest is still unknown. This
module holds the pure arithmetic of that scheme plus the merge rule that
keeps repeated producer calls from duplicating notes.

Merge rule:
    Producers guarantee id uniqueness only within one call. Merging a new
    batch keeps every existing note, adds the new notes whose id is not
    already present, and re-sorts by start_time. Merging the same batch
    twice is a no-op.
"""

from __future__ import annotations

import math
from collections.abc import Iterable, Sequence

from core.types import NoteEvent, sort_events

SEGMENT_DURATIONS: tuple[int, ...] = (30, 60, 90)
"""Allowed segment lengths in seconds."""

DEFAULT_SEGMENT_SEC: int = 30

DEFAULT_MIN_CONFIDENCE: float = 0.4
"""Notes below this confidence are hidden from the notation view."""


def validate_segment_duration(segment_sec: float) -> None:
    """Raise ValueError unless segment_sec is one of SEGMENT_DURATIONS."""
    if segment_sec not in SEGMENT_DURATIONS:
        raise ValueError(
            f"segment duration must be one of {list(SEGMENT_DURATIONS)}, got {segment_sec}"
        )


def segment_count(total_sec: float, segment_sec: float) -> int:
    """Number of segments needed to cover ``total_sec``. 0 for empty media."""
    if total_sec <= 0 or segment_sec <= 0:
        return 0
    return math.ceil(total_sec / segment_sec)


def segment_window(index: int, segment_sec: float, total_sec: float) -> tuple[float, float]:
    """Time window [start, end) of segment ``index``.

    The last segment is truncated to the media length.

    Raises:
        ValueError: If index is negative or past the end of the media.

    Examples:
        >>> segment_window(0, 30, 75)
        (0.0, 30.0)
        >>> segment_window(2, 30, 75)
        (60.0, 75.0)
    """
    count = segment_count(total_sec, segment_sec)
    if not (0 <= index < count):
        raise ValueError(f"segment index {index} out of range [0, {count})")
    start = float(index * segment_sec)
    end = float(min(start + segment_sec, total_sec))
    return start, end


def segment_index_at(time_sec: float, segment_sec: float) -> int:
    """Index of the segment containing ``time_sec`` (negative times → 0)."""
    if segment_sec <= 0:
        raise ValueError(f"segment_sec must be positive, got {segment_sec}")
    return max(0, math.floor(time_sec / segment_sec))


def merge_notes(existing: Sequence[NoteEvent], new: Iterable[NoteEvent]) -> list[NoteEvent]:
    """Add ``new`` notes whose id is not in ``existing``; return sorted result."""
    seen = {n.id for n in existing}
    merged = list(existing)
    for note in new:
        if note.id in seen:
            continue
        seen.add(note.id)
        merged.append(note)
    return sort_events(merged)


def filter_confident(
    notes: Iterable[NoteEvent],
    min_confidence: float = DEFAULT_MIN_CONFIDENCE,
) -> list[NoteEvent]:
    """Keep notes with confidence >= min_confidence (order preserved)."""
    return [n for n in notes if n.confidence >= min_confidence]


def notes_in_window(notes: Iterable[NoteEvent], start: float, end: float) -> list[NoteEvent]:
    """Notes whose start_time lies in [start, end)."""
    return [n for n in notes if start <= n.start_time < end]
