"""
core/audio — Pure audio analysis for the analytical note path.

All functions are pure: they take (samples, sample_rate) and return plain
values or NoteEvents. No file I/O and no decoding — callers hand in PCM that
has already been decoded elsewhere.

Architecture note:
    numpy is the only DSP dependency. The autocorrelation tracker is small
    enough that librosa's pYIN machinery is not needed here.

Public API:
    Pitch:         estimate_pitch, hz_to_midi, midi_to_hz
    Segmentation:  detect_notes, OpenNote, Frame
"""

from core.audio.pitch import estimate_pitch, hz_to_midi, midi_to_hz
from core.audio.segmentation import Frame, OpenNote, detect_notes

__all__ = [
    "estimate_pitch",
    "hz_to_midi",
    "midi_to_hz",
    "detect_notes",
    "Frame",
    "OpenNote",
]
