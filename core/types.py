"""
core/types.py — The note event contract shared by both producers.

Both the analytical path (core/audio/segmentation.py) and the procedural path
(core/composition/generator.py) return ``list[NoteEvent]``. The notation UI,
the MIDI exporter and the HTTP layer consume this single type.

Design principles:
    - Frozen dataclass: immutable, hashable, safe to cache.
    - Invariants ARE enforced at construction time (unlike the transient
      analysis types) because NoteEvent crosses every layer boundary.
    - Times are seconds, velocity/confidence are normalized 0.0–1.0
      (NOT MIDI 0–127 — conversion happens in ingestion/midi_export.py).
"""

from __future__ import annotations

import math
from dataclasses import asdict, dataclass
from enum import Enum
from typing import TypedDict


class Producer(str, Enum):
    """Which producer generated a note sequence."""

    ANALYSIS = "analysis"
    COMPOSITION = "composition"


class NoteEventDict(TypedDict):
    """Serialized form of a NoteEvent (JSON / cache payloads)."""

    id: str
    start_time: float
    duration: float
    midi_pitch: int
    velocity: float
    confidence: float


@dataclass(frozen=True)
class NoteEvent:
    """A single discrete note on the time axis.

    Invariants:
        id is non-empty
        start_time >= 0
        duration > 0
        0 <= midi_pitch <= 127
        0.0 <= velocity <= 1.0
        0.0 <= confidence <= 1.0
    """

    id: str
    """Unique within one producer call, e.g. 'evt_real_1250_3', 'bass_4_1'."""

    start_time: float
    """Onset in seconds from the start of the media."""

    duration: float
    """Length in seconds. Always > 0."""

    midi_pitch: int
    """MIDI note number (0–127). A4 = 69, C4 = 60."""

    velocity: float
    """Perceptual loudness, 0.0–1.0."""

    confidence: float
    """Producer certainty, 0.0–1.0."""

    def __post_init__(self) -> None:
        if not self.id:
            raise ValueError("NoteEvent.id must not be empty")
        if not math.isfinite(self.start_time) or self.start_time < 0:
            raise ValueError(f"NoteEvent.start_time must be >= 0, got {self.start_time}")
        if not math.isfinite(self.duration) or self.duration <= 0:
            raise ValueError(f"NoteEvent.duration must be > 0, got {self.duration}")
        if not (0 <= self.midi_pitch <= 127):
            raise ValueError(f"MIDI pitch {self.midi_pitch} out of range [0, 127]")
        if not (0.0 <= self.velocity <= 1.0):
            raise ValueError(f"NoteEvent.velocity must be in [0, 1], got {self.velocity}")
        if not (0.0 <= self.confidence <= 1.0):
            raise ValueError(f"NoteEvent.confidence must be in [0, 1], got {self.confidence}")

    @property
    def end_time(self) -> float:
        """Offset in seconds (start_time + duration)."""
        return self.start_time + self.duration

    def to_dict(self) -> NoteEventDict:
        """Return the JSON-safe dictionary form."""
        return NoteEventDict(**asdict(self))  # type: ignore[typeddict-item]

    @classmethod
    def from_dict(cls, data: NoteEventDict) -> NoteEvent:
        """Rebuild a NoteEvent from its dictionary form (validates again)."""
        return cls(
            id=str(data["id"]),
            start_time=float(data["start_time"]),
            duration=float(data["duration"]),
            midi_pitch=int(data["midi_pitch"]),
            velocity=float(data["velocity"]),
            confidence=float(data["confidence"]),
        )


def sort_events(events: list[NoteEvent]) -> list[NoteEvent]:
    """Return events sorted ascending by start_time (stable for equal starts)."""
    return sorted(events, key=lambda e: e.start_time)
