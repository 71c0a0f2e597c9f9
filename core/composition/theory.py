"""
core/composition/theory.py — Fixed music-theory tables for the generator.

Exports:
    SCALE_INTERVALS     semitone offsets of the two modes the generator uses
    PROGRESSIONS        the four candidate 4-bar progressions (scale degrees)
    ROMAN_NUMERALS      roman numeral labels per degree, per mode
    TRIAD_DEGREES       chord tones as scale-degree offsets (root, 3rd, 5th)

    degree_to_midi(root, intervals, degree, octave) → int
    progression_label(progression, mode) → str
    root_name(midi) → str
"""

from __future__ import annotations

from collections.abc import Sequence

# ---------------------------------------------------------------------------
# Chromatic pitch classes
# ---------------------------------------------------------------------------

NOTE_NAMES: tuple[str, ...] = (
    "C",
    "C#",
    "D",
    "D#",
    "E",
    "F",
    "F#",
    "G",
    "G#",
    "A",
    "A#",
    "B",
)

# ---------------------------------------------------------------------------
# Scale formulas (semitone intervals from root)
# ---------------------------------------------------------------------------

SCALE_INTERVALS: dict[str, tuple[int, ...]] = {
    "major": (0, 2, 4, 5, 7, 9, 11),
    "minor": (0, 2, 3, 5, 7, 8, 10),
}

ROMAN_NUMERALS: dict[str, tuple[str, ...]] = {
    "major": ("I", "ii", "iii", "IV", "V", "vi", "vii°"),
    "minor": ("i", "ii°", "III", "iv", "v", "VI", "VII"),
}

# ---------------------------------------------------------------------------
# Chord progressions (0-based scale degrees, one chord per bar)
# ---------------------------------------------------------------------------

PROGRESSIONS: tuple[tuple[int, int, int, int], ...] = (
    (0, 4, 5, 3),  # I V vi IV   (pop)
    (1, 4, 0, 5),  # ii V I vi   (jazz turnaround)
    (0, 5, 3, 4),  # I vi IV V   (ballad)
    (5, 3, 0, 4),  # vi IV I V
)

TRIAD_DEGREES: tuple[int, int, int] = (0, 2, 4)
"""Root, third and fifth as offsets in scale degrees."""

FIFTH: int = 4
"""Scale-degree offset of the fifth above a chord root."""


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def degree_to_midi(
    root: int,
    intervals: Sequence[int],
    degree: int,
    octave: int = 0,
) -> int:
    """Map a (possibly negative or >7) scale degree to a MIDI pitch.

    Formula:
        midi = root + octave·12 + floor(degree / len)·12 + intervals[degree mod len]

    Python's floor division and modulo already round toward -inf, so negative
    degrees wrap into the octave below.

    Args:
        root:      MIDI pitch of scale degree 0 at octave 0.
        intervals: Semitone offsets of the scale (e.g. major = 0,2,4,5,7,9,11).
        degree:    Scale-degree index; 7 is the root one octave up.
        octave:    Additional octave shift (-2 = two octaves down).

    Returns:
        MIDI pitch number (not clamped).

    Examples:
        >>> degree_to_midi(60, SCALE_INTERVALS["major"], 4)
        67
        >>> degree_to_midi(60, SCALE_INTERVALS["major"], -1)
        59
        >>> degree_to_midi(60, SCALE_INTERVALS["major"], 0, octave=-2)
        36
    """
    size = len(intervals)
    return root + octave * 12 + (degree // size) * 12 + intervals[degree % size]


def progression_label(progression: Sequence[int], mode: str) -> str:
    """Roman numeral summary of a progression, e.g. 'I–V–vi–IV'.

    Raises:
        KeyError: If mode is not 'major' or 'minor'.
    """
    numerals = ROMAN_NUMERALS[mode]
    return "–".join(numerals[d % len(numerals)] for d in progression)


def root_name(midi: int) -> str:
    """Pitch-class name of a MIDI note, e.g. 69 → 'A'."""
    return NOTE_NAMES[midi % 12]
