"""
Tests for core/audio/segmentation.py — frame-to-note state machine and sweep.

Tests cover:
    - advance()/finish() transitions on hand-built Frames
    - detect_notes() on silence, pure tones, tone changes and offsets
    - Fail-soft handling of short, empty, stereo and malformed input
"""

import numpy as np
import pytest

from core.audio.pitch import hz_to_midi
from core.audio.segmentation import (
    ClosedNote,
    Frame,
    OpenNote,
    advance,
    detect_notes,
    finish,
    iter_frames,
)
from core.config import SegmenterConfig

SR = 44_100
A4 = 440.0
E5 = 660.0


def _tone(freq: float, seconds: float, amplitude: float = 0.5) -> np.ndarray:
    t = np.arange(int(seconds * SR)) / SR
    return amplitude * np.sin(2 * np.pi * freq * t)


def _silence(seconds: float) -> np.ndarray:
    return np.zeros(int(seconds * SR))


def _voiced(index: int, freq: float = A4) -> Frame:
    return Frame(index=index, rms=0.3, frequency=freq)


def _silent(index: int) -> Frame:
    return Frame(index=index, rms=0.0, frequency=None)


def _held(frames: int, pitch: int = 69) -> OpenNote:
    return OpenNote(start_index=0, pitch=pitch, frames=frames)


# ---------------------------------------------------------------------------
# State machine
# ---------------------------------------------------------------------------


class TestAdvance:
    def test_voiced_frame_opens_note(self):
        note, closed = advance(None, _voiced(1024))
        assert note == OpenNote(start_index=1024, pitch=69, frames=1)
        assert closed is None

    def test_same_pitch_extends(self):
        note, closed = advance(_held(3), _voiced(4096))
        assert note == OpenNote(start_index=0, pitch=69, frames=4)
        assert closed is None

    def test_one_semitone_drift_is_vibrato(self):
        """A#4 (466 Hz) is within ±1 semitone of A4 → extend, keep the held pitch."""
        note, closed = advance(_held(2), _voiced(2048, freq=466.16))
        assert note.pitch == 69
        assert note.frames == 3
        assert closed is None

    def test_pitch_jump_closes_with_change_confidence(self):
        note, closed = advance(_held(5), _voiced(5120, freq=E5))
        assert closed == ClosedNote(start_index=0, end_index=5120, pitch=69, confidence=0.85)
        assert note == OpenNote(start_index=5120, pitch=76, frames=1)

    def test_pitch_jump_discards_short_note(self):
        note, closed = advance(_held(4), _voiced(4096, freq=E5))
        assert closed is None
        assert note.pitch == 76

    def test_silence_closes_with_silence_confidence(self):
        note, closed = advance(_held(5), _silent(6144))
        assert note is None
        assert closed is not None
        assert closed.confidence == 0.8
        assert closed.end_index == 6144

    def test_silence_discards_note_of_exactly_four_frames(self):
        """Emission requires MORE than 4 frames."""
        note, closed = advance(_held(4), _silent(4096))
        assert note is None
        assert closed is None

    def test_silence_without_open_note(self):
        assert advance(None, _silent(0)) == (None, None)

    def test_unvoiced_gap_keeps_state(self):
        held = _held(3)
        note, closed = advance(held, Frame(index=3072, rms=0.3, frequency=None))
        assert note is held
        assert closed is None

    def test_custom_tolerance(self):
        cfg = SegmenterConfig(semitone_tolerance=0, min_note_frames=0)
        _, closed = advance(_held(1), _voiced(1024, freq=466.16), config=cfg)
        assert closed is not None


class TestFinish:
    def test_force_close_long_note(self):
        closed = finish(_held(6), 10_000)
        assert closed == ClosedNote(start_index=0, end_index=10_000, pitch=69, confidence=0.85)

    def test_short_note_dropped(self):
        assert finish(_held(4), 10_000) is None

    def test_nothing_open(self):
        assert finish(None, 10_000) is None


class TestIterFrames:
    def test_window_starts(self):
        frames = list(iter_frames(_silence(0.1), SR))
        # 4410 samples: starts 0, 1024, 2048 satisfy i < 4410 - 2048
        assert [f.index for f in frames] == [0, 1024, 2048]

    def test_silent_frames_skip_pitch_tracking(self):
        frames = list(iter_frames(_silence(0.1), SR))
        assert all(f.frequency is None for f in frames)

    def test_voiced_frames_have_frequency(self):
        frames = list(iter_frames(_tone(A4, 0.2), SR))
        assert frames
        assert all(f.frequency is not None and hz_to_midi(f.frequency) == 69 for f in frames)


# ---------------------------------------------------------------------------
# detect_notes
# ---------------------------------------------------------------------------


class TestDetectNotes:
    def test_all_zero_buffer_returns_empty(self):
        assert detect_notes(_silence(2.0), SR, 0.0, 2.0) == []

    def test_single_tone(self):
        notes = detect_notes(_tone(A4, 1.0), SR, 0.0, 1.0)
        assert len(notes) == 1
        note = notes[0]
        assert note.midi_pitch == 69
        assert note.start_time == 0.0
        assert note.velocity == 0.7
        assert note.confidence == 0.85
        assert note.id == "evt_real_0_0"
        assert 0.9 < note.duration <= 1.0

    def test_two_tones(self):
        buffer = np.concatenate([_tone(A4, 1.0), _tone(E5, 1.0)])
        notes = detect_notes(buffer, SR, 0.0, 2.0)
        pitches = [n.midi_pitch for n in notes]
        assert pitches[0] == 69
        assert 76 in pitches
        assert notes[0].confidence == 0.85

    def test_tone_then_silence(self):
        buffer = np.concatenate([_tone(A4, 1.0), _silence(1.0)])
        notes = detect_notes(buffer, SR, 0.0, 2.0)
        assert notes[0].midi_pitch == 69
        assert notes[-1].start_time < 1.0

    def test_output_sorted_with_min_duration(self):
        buffer = np.concatenate([_tone(A4, 0.5), _silence(0.3), _tone(E5, 0.5)])
        notes = detect_notes(buffer, SR, 0.0, 1.3)
        starts = [n.start_time for n in notes]
        assert starts == sorted(starts)
        assert all(n.duration >= 0.1 for n in notes)
        assert len({n.id for n in notes}) == len(notes)

    def test_start_offset_is_absolute_time(self):
        buffer = np.concatenate([_silence(2.0), _tone(A4, 1.0)])
        notes = detect_notes(buffer, SR, 1.0, 2.0)
        assert notes
        assert notes[0].start_time == pytest.approx(2.0, abs=0.1)
        assert notes[0].id.startswith("evt_real_")

    def test_duration_capped_at_90_seconds(self):
        """A tone after the 90 s cap is never reached."""
        buffer = np.concatenate([_silence(95.0), _tone(A4, 1.0)])
        assert detect_notes(buffer, SR, 0.0, 120.0) == []

    def test_segment_past_end_of_buffer(self):
        assert detect_notes(_tone(A4, 1.0), SR, 5.0, 1.0) == []

    def test_huge_offset_does_not_overflow(self):
        """An offset whose sample index overflows to inf yields no notes."""
        assert detect_notes(_silence(0.25), SR, 1e305, 1.0) == []
        assert detect_notes(_tone(A4, 1.0), SR, 1e305, 1.0) == []

    def test_huge_sample_rate_does_not_overflow(self):
        notes = detect_notes(_tone(A4, 1.0), 1e307, 0.0, 90.0)
        assert all(0 <= n.midi_pitch <= 127 for n in notes)

    def test_buffer_shorter_than_window(self):
        assert detect_notes(_tone(A4, 0.04), SR, 0.0, 1.0) == []

    def test_empty_buffer(self):
        assert detect_notes(np.array([]), SR, 0.0, 1.0) == []

    @pytest.mark.parametrize("sample_rate", [0, -1, float("nan"), float("inf")])
    def test_bad_sample_rate(self, sample_rate):
        assert detect_notes(_tone(A4, 1.0), sample_rate, 0.0, 1.0) == []

    def test_non_finite_window(self):
        assert detect_notes(_tone(A4, 1.0), SR, float("nan"), 1.0) == []
        assert detect_notes(_tone(A4, 1.0), SR, 0.0, float("inf")) == []

    def test_non_positive_duration(self):
        assert detect_notes(_tone(A4, 1.0), SR, 0.0, 0.0) == []

    def test_stereo_input_averaged(self):
        mono = _tone(A4, 1.0)
        stereo = np.stack([mono, mono], axis=1)
        assert detect_notes(stereo, SR, 0.0, 1.0) == detect_notes(mono, SR, 0.0, 1.0)

    def test_nan_samples_do_not_raise(self):
        buffer = _tone(A4, 1.0)
        buffer[100:200] = np.nan
        notes = detect_notes(buffer, SR, 0.0, 1.0)
        assert all(n.midi_pitch == 69 for n in notes)

    def test_deterministic(self):
        buffer = np.concatenate([_tone(A4, 0.5), _tone(E5, 0.5)])
        assert detect_notes(buffer, SR, 0.0, 1.0) == detect_notes(buffer, SR, 0.0, 1.0)
