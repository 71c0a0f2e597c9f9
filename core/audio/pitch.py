"""
core/audio/pitch.py — Single-frame fundamental frequency estimation.

Time-domain autocorrelation pitch tracker for short monophonic frames
(~46 ms at 44.1 kHz). Used by core/audio/segmentation.py once per window.

Algorithm:
    1. RMS gate — quiet frames are unvoiced.
    2. Edge trim — drop the loud leading/trailing run before the first
       near-zero sample on each side, so the frame starts and ends near a
       zero crossing.
    3. Unnormalized autocorrelation c[lag] = Σ x[j]·x[j+lag].
    4. Skip the zero-lag lobe: advance while c keeps decreasing.
    5. The strongest remaining lag is the period T0.
    6. f0 = sample_rate / T0.

The estimator never raises: any frame without usable energy or periodicity
returns None (the unvoiced sentinel).

Usage:
    from core.audio.pitch import estimate_pitch
    f0 = estimate_pitch(frame, 44100)   # 441.0, or None if unvoiced
"""

from __future__ import annotations

import math
from collections.abc import Sequence

import numpy as np

from core.config import DEFAULT_PITCH_CONFIG, PitchTrackerConfig

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

A4_HZ: float = 440.0
"""Reference tuning. A4 = 440 Hz = MIDI 69."""

A4_MIDI: int = 69

NO_PEAK: float = -1.0
"""Autocorrelation peaks must exceed this value to define a period."""


# ---------------------------------------------------------------------------
# Pitch conversion utilities (pure math)
# ---------------------------------------------------------------------------


def hz_to_midi(hz: float) -> int:
    """Convert frequency in Hz to the nearest MIDI note number.

    Formula: midi = round(69 + 12 × log₂(hz / 440))

    Args:
        hz: Frequency in Hz. Must be > 0.

    Returns:
        MIDI note number clamped to [0, 127].

    Raises:
        ValueError: If hz ≤ 0.
    """
    if hz <= 0.0:
        raise ValueError(f"Hz must be > 0, got {hz}")
    midi_raw = A4_MIDI + 12.0 * math.log2(hz / A4_HZ)
    return max(0, min(127, round(midi_raw)))


def midi_to_hz(midi: float) -> float:
    """Convert a MIDI pitch to frequency in Hz (equal temperament, A4 = 440)."""
    return A4_HZ * 2.0 ** ((float(midi) - A4_MIDI) / 12.0)


def frame_rms(frame: np.ndarray) -> float:
    """Root-mean-square amplitude of a frame. 0.0 for an empty frame."""
    if frame.size == 0:
        return 0.0
    return float(np.sqrt(np.mean(np.square(frame, dtype=np.float64))))


# ---------------------------------------------------------------------------
# Autocorrelation steps
# ---------------------------------------------------------------------------


def _trim_edges(frame: np.ndarray, threshold: float) -> tuple[int, int]:
    """Return (r1, r2) bounds of the sub-frame used for autocorrelation.

    r1 is the first index in the first half with |x| < threshold (0 if none);
    r2 is the last index in the second half, scanning backwards from
    n - 1, with |x| < threshold (n - 1 if none). The sub-frame is x[r1:r2].
    """
    size = frame.size
    half = size / 2
    quiet = np.abs(frame) < threshold

    r1 = 0
    for i in range(size):
        if i >= half:
            break
        if quiet[i]:
            r1 = i
            break

    r2 = size - 1
    for i in range(1, size):
        if i >= half:
            break
        if quiet[size - i]:
            r2 = size - i
            break

    return r1, r2


def _autocorrelation(x: np.ndarray) -> np.ndarray:
    """Unnormalized autocorrelation for lags 0..len(x)-1.

    c[lag] = Σ_{j < n - lag} x[j] · x[j + lag]
    """
    n = x.size
    return np.correlate(x, x, mode="full")[n - 1 :]


def _first_rising_lag(c: np.ndarray) -> int:
    """First lag at which the autocorrelation stops decreasing."""
    d = 0
    last = c.size - 1
    while d < last and c[d] > c[d + 1]:
        d += 1
    return d


def _period_lag(c: np.ndarray) -> int | None:
    """Lag of the autocorrelation peak after the first rising lag.

    Peaks at or below NO_PEAK count as no period, as does lag 0.
    """
    d = _first_rising_lag(c)
    t0 = d + int(np.argmax(c[d:]))
    if t0 <= 0 or c[t0] <= NO_PEAK:
        return None
    return t0


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def estimate_pitch(
    frame: Sequence[float] | np.ndarray,
    sample_rate: float,
    *,
    config: PitchTrackerConfig = DEFAULT_PITCH_CONFIG,
) -> float | None:
    """Estimate the fundamental frequency of one audio frame.

    Args:
        frame: Mono float samples, nominally in [-1, 1].
        sample_rate: Sampling rate in Hz.
        config: Thresholds (RMS gate, trim threshold).

    Returns:
        Frequency in Hz, or None when the frame is unvoiced (too quiet, too
        short, non-finite, or without a resolvable period).

    Examples:
        >>> t = np.arange(2048) / 44100
        >>> round(estimate_pitch(np.sin(2 * np.pi * 440 * t), 44100))
        441
    """
    if not sample_rate or not math.isfinite(sample_rate) or sample_rate <= 0:
        return None

    x = np.asarray(frame, dtype=np.float64).reshape(-1)
    if x.size < 2 or not np.all(np.isfinite(x)):
        return None

    if frame_rms(x) < config.rms_gate:
        return None

    r1, r2 = _trim_edges(x, config.trim_threshold)
    sub = x[r1:r2]
    if sub.size < 2:
        return None

    t0 = _period_lag(_autocorrelation(sub))
    if t0 is None:
        return None

    return float(sample_rate) / t0
