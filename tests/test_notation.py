"""Tests for core/notation.py — pitch labels for the notation view."""

import pytest

from core.notation import PitchLabel, format_pitch, midi_octave, pitch_name


class TestMidiOctave:
    @pytest.mark.parametrize(("midi", "octave"), [(60, 4), (69, 4), (21, 0), (0, -1), (127, 9)])
    def test_octaves(self, midi, octave):
        assert midi_octave(midi) == octave


class TestFormatPitch:
    def test_natural_scientific(self):
        assert format_pitch(60) == PitchLabel(display="C4", is_accidental=False, octave=4)

    def test_sharp_symbol(self):
        label = format_pitch(61)
        assert label.display == "C♯4"
        assert label.is_accidental

    def test_flat_spelling(self):
        assert format_pitch(70, accidentals="flat").display == "B♭4"

    def test_double_sharp_style(self):
        assert format_pitch(66, accidentals="double_sharp").display == "Fx4"

    def test_note_only_never_shows_octave(self):
        assert format_pitch(61, style="note_only").display == "C♯"
        assert format_pitch(61, style="note_only", show_octave=True).display == "C♯"

    def test_hide_octave(self):
        assert format_pitch(69, show_octave=False).display == "A"

    def test_solfege_natural(self):
        label = format_pitch(67, style="solfege")
        assert label.display == "Sol4"
        assert not label.is_accidental

    def test_solfege_accidental(self):
        label = format_pitch(61, style="solfege")
        assert label.display == "Di4"
        assert label.is_accidental

    def test_solfege_ignores_accidental_style(self):
        assert format_pitch(70, style="solfege", accidentals="flat").display == "Li4"

    @pytest.mark.parametrize("midi", [-1, 128])
    def test_out_of_range(self, midi):
        with pytest.raises(ValueError, match="out of range"):
            format_pitch(midi)

    def test_unknown_style(self):
        with pytest.raises(ValueError, match="label style"):
            format_pitch(60, style="jianpu")  # type: ignore[arg-type]

    def test_unknown_accidentals(self):
        with pytest.raises(ValueError, match="accidental"):
            format_pitch(60, accidentals="natural")  # type: ignore[arg-type]

    def test_every_pitch_class_accidental_flag(self):
        accidentals = [pc for pc in range(12) if format_pitch(60 + pc).is_accidental]
        assert accidentals == [1, 3, 6, 8, 10]


class TestPitchName:
    def test_ascii(self):
        assert pitch_name(69) == "A4"
        assert pitch_name(61) == "C#4"
        assert pitch_name(36) == "C2"
