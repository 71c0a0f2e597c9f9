"""
core/notation.py — Pitch labels for the notation view.

Turns a MIDI number into the text drawn above a note head. Three naming
styles are supported:

    scientific  'C#4'   note name + octave
    note_only   'C#'    note name, octave never shown
    solfege     'Di4'   fixed-do syllables (C = Do regardless of key)

Accidentals are spelled with sharps (rendered ♯), flats (rendered ♭) or the
double-sharp style, which writes a sharp as 'x'. Real double-sharp spelling
needs key-signature context, so 'x' is a display substitution only.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

LabelStyle = Literal["scientific", "note_only", "solfege"]
AccidentalStyle = Literal["sharp", "flat", "double_sharp"]

_SHARP_NAMES: tuple[str, ...] = ("C", "C#", "D", "D#", "E", "F", "F#", "G", "G#", "A", "A#", "B")
_FLAT_NAMES: tuple[str, ...] = ("C", "Db", "D", "Eb", "E", "F", "Gb", "G", "Ab", "A", "Bb", "B")
_SOLFEGE_NAMES: tuple[str, ...] = (
    "Do",
    "Di",
    "Re",
    "Ri",
    "Mi",
    "Fa",
    "Fi",
    "Sol",
    "Si",
    "La",
    "Li",
    "Ti",
)

# Chromatic (raised) syllables in fixed-do
_SOLFEGE_ACCIDENTALS: frozenset[str] = frozenset({"Di", "Ri", "Fi", "Si", "Li"})


@dataclass(frozen=True)
class PitchLabel:
    """Display text for one pitch."""

    display: str
    is_accidental: bool
    octave: int


def midi_octave(midi: int) -> int:
    """Scientific octave number: 60 → 4, 21 → 0."""
    return midi // 12 - 1


def format_pitch(
    midi: int,
    *,
    style: LabelStyle = "scientific",
    accidentals: AccidentalStyle = "sharp",
    show_octave: bool = True,
) -> PitchLabel:
    """Format a MIDI pitch for display.

    Args:
        midi: MIDI note number (0–127).
        style: Naming style.
        accidentals: Accidental spelling.
        show_octave: Append the octave (ignored for 'note_only').

    Returns:
        PitchLabel with display text, accidental flag and octave.

    Raises:
        ValueError: If midi is out of range or an option is unknown.

    Examples:
        >>> format_pitch(61).display
        'C♯4'
        >>> format_pitch(70, accidentals="flat").display
        'B♭4'
        >>> format_pitch(61, style="solfege").display
        'Di4'
    """
    if not (0 <= midi <= 127):
        raise ValueError(f"MIDI pitch {midi} out of range [0, 127]")
    if style not in ("scientific", "note_only", "solfege"):
        raise ValueError(f"Unknown label style {style!r}")
    if accidentals not in ("sharp", "flat", "double_sharp"):
        raise ValueError(f"Unknown accidental style {accidentals!r}")

    octave = midi_octave(midi)
    pitch_class = midi % 12

    if style == "solfege":
        name = _SOLFEGE_NAMES[pitch_class]
        is_accidental = name in _SOLFEGE_ACCIDENTALS
    else:
        names = _FLAT_NAMES if accidentals == "flat" else _SHARP_NAMES
        name = names[pitch_class]
        is_accidental = len(name) == 2
        if is_accidental:
            if accidentals == "double_sharp":
                name = name.replace("#", "x")
            elif accidentals == "flat":
                name = name.replace("b", "♭")
            else:
                name = name.replace("#", "♯")

    display = name
    if show_octave and style != "note_only":
        display += str(octave)

    return PitchLabel(display=display, is_accidental=is_accidental, octave=octave)


def pitch_name(midi: int) -> str:
    """Plain ASCII scientific name, e.g. 69 → 'A4', 61 → 'C#4'."""
    return f"{_SHARP_NAMES[midi % 12]}{midi_octave(midi)}"
