"""
ingestion/cache.py — In-process memo of producer output per media segment.

Both producers are deterministic, so the notes of one segment never change
for a given (source, segment length, index). NoteEngine stores each result
here so scrubbing back over a segment does not re-run the analysis.

Entries expire after ``ttl_seconds`` and the least recently used entry is
dropped once ``max_size`` is reached. The cache is shared across engines
(see api/deps.py), so every operation takes the lock.
"""

import time
from collections import OrderedDict
from threading import Lock
from typing import NamedTuple

from core.types import NoteEvent


class SegmentKey(NamedTuple):
    """Identity of one analysed segment."""

    source_key: str  # "video:<id>" or "file:<sha1>"
    segment_sec: int
    index: int


class NoteCache:
    """Thread-safe TTL + LRU store of segment notes keyed by SegmentKey.

    Args:
        max_size: Maximum number of segments held (default: 256).
        ttl_seconds: Lifetime of an entry in seconds (default: 1 hour).
    """

    def __init__(self, max_size: int = 256, ttl_seconds: float = 3600.0) -> None:
        if max_size <= 0:
            raise ValueError(f"max_size must be positive, got {max_size}")
        self.max_size = max_size
        self.ttl_seconds = ttl_seconds
        # key -> (stored_at, notes)
        self._entries: OrderedDict[SegmentKey, tuple[float, tuple[NoteEvent, ...]]] = (
            OrderedDict()
        )
        self._lock = Lock()

    def get(self, key: SegmentKey) -> tuple[NoteEvent, ...] | None:
        """Notes of a segment, or None on a miss or an expired entry.

        An empty tuple is a hit: the segment was analysed and held no notes.
        """
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            stored_at, notes = entry
            if time.monotonic() - stored_at > self.ttl_seconds:
                del self._entries[key]
                return None
            self._entries.move_to_end(key)
            return notes

    def put(self, key: SegmentKey, notes: tuple[NoteEvent, ...]) -> None:
        """Store the notes of a segment, evicting the LRU entry when full."""
        with self._lock:
            if key not in self._entries and len(self._entries) >= self.max_size:
                self._entries.popitem(last=False)
            self._entries[key] = (time.monotonic(), tuple(notes))
            self._entries.move_to_end(key)

    def invalidate_source(self, source_key: str) -> int:
        """Drop every segment of one source, at any segment length.

        Returns:
            Number of entries removed.
        """
        with self._lock:
            stale = [key for key in self._entries if key.source_key == source_key]
            for key in stale:
                del self._entries[key]
        return len(stale)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def size(self) -> int:
        """Number of entries held (expired ones included until next touched)."""
        with self._lock:
            return len(self._entries)
