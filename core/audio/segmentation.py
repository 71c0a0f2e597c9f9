"""
core/audio/segmentation.py — Frame-to-note segmentation (analytical path).

detect_notes() sweeps a mono PCM slice in overlapping windows, runs the
autocorrelation pitch tracker on every window with enough energy, and turns
the resulting frame sequence into discrete NoteEvents with a small state
machine:

    silence (RMS < 0.02)          → close the open note (conf 0.8), reset
    voiced, unvoiced by tracker   → gap: keep the open note untouched
    voiced, no open note          → open {start, pitch, frames=1}
    voiced, |Δpitch| > 1 semitone → close (conf 0.85), open a new note
    voiced, |Δpitch| ≤ 1 semitone → vibrato: extend (frames + 1)
    end of slice                  → force-close (conf 0.85)

A note is only emitted if it accrued MORE than ``min_note_frames`` frames,
which filters pitch-tracking blips and consonant transients.

Design decisions:
    - Pure: the open-note state is an immutable OpenNote value threaded
      through advance(); nothing survives the call.
    - Fail-soft: empty, short, silent or malformed input returns [] instead
      of raising — the output feeds an interactive UI.
    - Output is sorted by construction (windows are visited in time order).
"""

from __future__ import annotations

import math
from collections.abc import Sequence
from dataclasses import dataclass

import numpy as np

from core.audio.pitch import estimate_pitch, frame_rms, hz_to_midi
from core.config import (
    DEFAULT_PITCH_CONFIG,
    DEFAULT_SEGMENTER_CONFIG,
    PitchTrackerConfig,
    SegmenterConfig,
)
from core.types import NoteEvent

# ---------------------------------------------------------------------------
# Transient sweep state
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Frame:
    """One analysis window: start sample, RMS energy and f0 (None = unvoiced)."""

    index: int
    rms: float
    frequency: float | None


@dataclass(frozen=True)
class OpenNote:
    """A note being tracked: where it started, its pitch, how many frames it held."""

    start_index: int
    pitch: int
    frames: int = 1


@dataclass(frozen=True)
class ClosedNote:
    """A note promoted out of the state machine, before conversion to seconds."""

    start_index: int
    end_index: int
    pitch: int
    confidence: float


# ---------------------------------------------------------------------------
# State machine
# ---------------------------------------------------------------------------


def _close(
    note: OpenNote | None,
    end_index: int,
    confidence: float,
    config: SegmenterConfig,
) -> ClosedNote | None:
    """Promote an open note if it was held long enough, else discard it."""
    if note is None or note.frames <= config.min_note_frames:
        return None
    return ClosedNote(
        start_index=note.start_index,
        end_index=end_index,
        pitch=note.pitch,
        confidence=confidence,
    )


def advance(
    note: OpenNote | None,
    frame: Frame,
    *,
    config: SegmenterConfig = DEFAULT_SEGMENTER_CONFIG,
) -> tuple[OpenNote | None, ClosedNote | None]:
    """Feed one frame into the segmentation state machine.

    Args:
        note: Currently open note, or None.
        frame: The next analysis window (in time order).
        config: Segmentation policy constants.

    Returns:
        (next open note, note closed by this frame or None).
    """
    if frame.rms < config.silence_rms:
        return None, _close(note, frame.index, config.silence_confidence, config)

    if frame.frequency is None or frame.frequency <= 0:
        # Dropped frame inside a voiced region.
        return note, None

    pitch = hz_to_midi(frame.frequency)

    if note is None:
        return OpenNote(start_index=frame.index, pitch=pitch), None

    if abs(pitch - note.pitch) > config.semitone_tolerance:
        closed = _close(note, frame.index, config.change_confidence, config)
        return OpenNote(start_index=frame.index, pitch=pitch), closed

    return OpenNote(start_index=note.start_index, pitch=note.pitch, frames=note.frames + 1), None


def finish(
    note: OpenNote | None,
    end_index: int,
    *,
    config: SegmenterConfig = DEFAULT_SEGMENTER_CONFIG,
) -> ClosedNote | None:
    """Force-close whatever is still open when the slice ends."""
    return _close(note, end_index, config.change_confidence, config)


# ---------------------------------------------------------------------------
# Buffer helpers
# ---------------------------------------------------------------------------


def _to_mono(buffer: Sequence[float] | np.ndarray) -> np.ndarray:
    """Coerce input to a 1-D float64 array; (n, channels) input is averaged."""
    y = np.asarray(buffer, dtype=np.float64)
    if y.ndim == 2:
        y = y.mean(axis=1)
    return y.reshape(-1)


def iter_frames(
    segment: np.ndarray,
    sample_rate: float,
    *,
    config: SegmenterConfig = DEFAULT_SEGMENTER_CONFIG,
    pitch_config: PitchTrackerConfig = DEFAULT_PITCH_CONFIG,
):
    """Yield a Frame for every window start i with i < len(segment) - window_size.

    The pitch tracker only runs on windows above the silence threshold.
    """
    window = config.window_size
    for i in range(0, segment.size - window, config.hop_size):
        chunk = segment[i : i + window]
        rms = frame_rms(chunk)
        frequency = None
        if rms >= config.silence_rms:
            frequency = estimate_pitch(chunk, sample_rate, config=pitch_config)
        yield Frame(index=i, rms=rms, frequency=frequency)


def _to_event(
    closed: ClosedNote,
    order: int,
    sample_rate: float,
    start_time_offset: float,
    config: SegmenterConfig,
) -> NoteEvent:
    start_time = start_time_offset + closed.start_index / sample_rate
    duration = (closed.end_index - closed.start_index) / sample_rate
    return NoteEvent(
        id=f"evt_real_{math.floor(start_time * 1000)}_{order}",
        start_time=start_time,
        duration=max(config.min_duration_sec, duration),
        midi_pitch=closed.pitch,
        velocity=config.velocity,
        confidence=closed.confidence,
    )


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def detect_notes(
    buffer: Sequence[float] | np.ndarray,
    sample_rate: float,
    start_time_offset: float,
    duration: float,
    *,
    config: SegmenterConfig = DEFAULT_SEGMENTER_CONFIG,
    pitch_config: PitchTrackerConfig = DEFAULT_PITCH_CONFIG,
) -> list[NoteEvent]:
    """Detect monophonic notes in one time segment of a PCM buffer.

    Pipeline:
        1. Slice buffer[floor(t0·sr) : floor((t0 + duration)·sr)]
        2. Sweep 2048-sample windows with a 1024-sample hop
        3. RMS gate + pitch tracker per window → Frame
        4. advance() the OpenNote state machine; collect ClosedNotes
        5. finish() at the slice end
        6. Convert sample indices to seconds → NoteEvent

    Args:
        buffer: Mono float samples of the whole recording. A 2-D
            (n, channels) array is averaged to mono.
        sample_rate: Sampling rate in Hz.
        start_time_offset: Segment start in seconds (absolute media time).
        duration: Segment length in seconds; capped at config.max_segment_sec.
        config: Segmentation policy constants.
        pitch_config: Pitch tracker thresholds.

    Returns:
        NoteEvents sorted by start_time. Empty for empty, too short, silent
        or malformed input.
    """
    if not sample_rate or not math.isfinite(sample_rate) or sample_rate <= 0:
        return []
    if not math.isfinite(start_time_offset) or not math.isfinite(duration):
        return []
    if duration <= 0:
        return []

    y = _to_mono(buffer)
    if y.size == 0:
        return []

    start_time_offset = max(0.0, start_time_offset)
    if start_time_offset >= y.size / sample_rate:
        return []
    duration = min(duration, config.max_segment_sec)
    start_sample = math.floor(start_time_offset * sample_rate)
    # min() first: an end past the buffer may overflow to inf.
    end_sample = math.floor(min(float(y.size), (start_time_offset + duration) * sample_rate))
    segment = y[start_sample:end_sample]
    if segment.size <= config.window_size:
        return []
    # NaN/inf samples would poison every window they touch.
    segment = np.nan_to_num(segment, nan=0.0, posinf=0.0, neginf=0.0)

    closed_notes: list[ClosedNote] = []
    note: OpenNote | None = None
    for frame in iter_frames(segment, sample_rate, config=config, pitch_config=pitch_config):
        note, closed = advance(note, frame, config=config)
        if closed is not None:
            closed_notes.append(closed)

    last = finish(note, segment.size, config=config)
    if last is not None:
        closed_notes.append(last)

    return [
        _to_event(closed, order, sample_rate, start_time_offset, config)
        for order, closed in enumerate(closed_notes)
    ]
