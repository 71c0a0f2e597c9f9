"""
Tests for core/composition/generator.py — deterministic seeded composition.

Tests cover:
    - derive_context() draw order and parameter ranges
    - Layer rules: bass, harmony, melody
    - compose_notes() determinism, seed diversity, window filtering
    - Window consistency: overlapping windows agree on shared bars
    - Optional swing
"""

import math

import pytest

from core.composition.generator import (
    GeneratorContext,
    compose_bar,
    compose_notes,
    derive_context,
)
from core.composition.seed_stream import SeedState, draw_many
from core.composition.theory import PROGRESSIONS
from core.config import ComposerConfig

SEEDS = ["test", "dQw4w9WgXcQ", "", "9bZkp7q19f0", "a", "kJQP7kiw5Fk"]


def _ctx(**overrides) -> GeneratorContext:
    fields = {
        "bpm": 100,
        "swing": False,
        "minor": False,
        "root_pitch": 60,
        "progression": (0, 4, 5, 3),
        "setup_cursor": 1234,
    }
    fields.update(overrides)
    return GeneratorContext(**fields)


def _by_prefix(notes, prefix):
    return [n for n in notes if n.id.startswith(prefix)]


# ---------------------------------------------------------------------------
# Context
# ---------------------------------------------------------------------------


class TestDeriveContext:
    def test_matches_manual_draws(self):
        draws, state = draw_many(SeedState.from_text("test"), 5)
        ctx = derive_context("test")
        assert ctx.bpm == 80 + math.floor(draws[0] * 50)
        assert ctx.swing == (draws[1] > 0.6)
        assert ctx.minor == (draws[2] > 0.5)
        assert ctx.root_pitch == 58 + math.floor(draws[3] * 12)
        assert ctx.progression == PROGRESSIONS[math.floor(draws[4] * 4)]
        assert ctx.setup_cursor == state.cursor

    @pytest.mark.parametrize("seed", SEEDS)
    def test_ranges(self, seed):
        ctx = derive_context(seed)
        assert 80 <= ctx.bpm <= 129
        assert 58 <= ctx.root_pitch <= 69
        assert ctx.progression in PROGRESSIONS

    def test_empty_seed_accepted(self):
        assert derive_context("") == derive_context("")

    def test_durations(self):
        ctx = _ctx(bpm=100)
        assert ctx.beat_duration == pytest.approx(0.6)
        assert ctx.bar_duration == pytest.approx(2.4)

    def test_scale_follows_mode(self):
        assert _ctx(minor=True).scale_intervals == (0, 2, 3, 5, 7, 8, 10)
        assert _ctx(minor=False).mode == "major"

    def test_describe(self):
        info = _ctx().describe()
        assert info["bpm"] == 100
        assert info["mode"] == "major"
        assert info["root_name"] == "C"
        assert info["progression"] == [0, 4, 5, 3]
        assert info["progression_label"] == "I–V–vi–IV"
        assert info["bar_duration"] == pytest.approx(2.4)

    def test_bar_states_are_distinct(self):
        ctx = _ctx()
        cursors = {ctx.bar_state(bar).cursor for bar in range(64)}
        assert len(cursors) == 64


# ---------------------------------------------------------------------------
# Layers
# ---------------------------------------------------------------------------


class TestBass:
    def test_bass_at_time_zero(self):
        ctx = derive_context("test")
        notes = compose_notes("test", 0.0, 4.0)
        bass = [n for n in notes if n.id == "bass_0_1"]
        assert len(bass) == 1
        assert bass[0].start_time == 0.0
        assert bass[0].midi_pitch == ctx.pitch(ctx.progression[0], -2)
        assert bass[0].velocity == 0.85
        assert bass[0].confidence == 0.98

    def test_tonic_bar_bass_is_root_minus_24(self):
        ctx = _ctx(root_pitch=62, progression=(0, 4, 5, 3))
        notes, _ = compose_bar(ctx, 0)
        first = next(n for n in notes if n.id == "bass_0_1")
        assert first.midi_pitch == 62 - 24
        assert first.duration == pytest.approx(1.2 * ctx.beat_duration)

    @pytest.mark.parametrize("seed", SEEDS)
    def test_chord_degrees_follow_progression(self, seed):
        ctx = derive_context(seed)
        notes = compose_notes(seed, 0.0, 8 * ctx.bar_duration)
        for bar in range(8):
            root = next(n for n in notes if n.id == f"bass_{bar}_1")
            assert root.midi_pitch == ctx.pitch(ctx.progression[bar % 4], -2)
            assert root.start_time == pytest.approx(bar * ctx.bar_duration)

    def test_second_note_is_fifth_or_octave(self):
        ctx = _ctx()
        seen = 0
        for bar in range(32):
            notes, _ = compose_bar(ctx, bar)
            chord = ctx.chord_degree(bar)
            for note in _by_prefix(notes, f"bass_{bar}_3"):
                seen += 1
                assert note.midi_pitch in (ctx.pitch(chord + 4, -2), ctx.pitch(chord + 7, -2))
                assert note.start_time == pytest.approx(bar * ctx.bar_duration + 2 * 0.6)
                assert note.duration == pytest.approx(0.6)
                assert (note.velocity, note.confidence) == (0.75, 0.90)
        assert seen > 0


class TestHarmony:
    def test_triad_rules(self):
        ctx = _ctx()
        seen = 0
        for bar in range(32):
            notes, _ = compose_bar(ctx, bar)
            harmony = _by_prefix(notes, f"harm_{bar}_")
            if not harmony:
                continue
            seen += 1
            chord = ctx.chord_degree(bar)
            assert [n.id for n in harmony] == [f"harm_{bar}_{i}" for i in range(3)]
            for idx, (note, tone) in enumerate(zip(harmony, (0, 2, 4))):
                assert note.midi_pitch == ctx.pitch(chord + tone, -1)
                assert note.start_time == pytest.approx(
                    bar * ctx.bar_duration + ctx.beat_duration + idx * 0.03
                )
                assert note.duration == pytest.approx(2 * ctx.beat_duration)
                assert 0.46 <= note.velocity <= 0.6
                assert note.confidence == 0.85
            assert len({n.velocity for n in harmony}) == 1
        assert seen > 0


class TestMelody:
    @pytest.mark.parametrize("seed", SEEDS)
    def test_range_and_constants(self, seed):
        melody = _by_prefix(compose_notes(seed, 0.0, 60.0), "mel_")
        assert melody
        for note in melody:
            assert 60 <= note.midi_pitch <= 84
            assert note.confidence == 0.95
            assert note.velocity in (0.9, 0.7)

    def test_downbeat_always_sounds(self):
        ctx = _ctx()
        for bar in range(16):
            notes, _ = compose_bar(ctx, bar)
            downbeat = [n for n in notes if n.id == f"mel_{bar}_0"]
            assert len(downbeat) == 1
            assert downbeat[0].velocity == 0.9

    def test_durations_are_articulated_slots(self):
        ctx = _ctx()
        allowed = [pytest.approx(s * ctx.beat_duration * 0.9) for s in (0.5, 1.0, 2.0)]
        for bar in range(8):
            notes, _ = compose_bar(ctx, bar)
            for note in _by_prefix(notes, "mel_"):
                assert note.duration in allowed

    def test_narrow_custom_range(self):
        cfg = ComposerConfig(melody_low=72, melody_high=84)
        ctx = _ctx()
        for bar in range(8):
            notes, _ = compose_bar(ctx, bar, config=cfg)
            assert all(72 <= n.midi_pitch <= 84 for n in _by_prefix(notes, "mel_"))

    def test_returns_last_degree(self):
        ctx = _ctx()
        _, last = compose_bar(ctx, 0)
        assert isinstance(last, int)
        notes, _ = compose_bar(ctx, 1, last)
        assert _by_prefix(notes, "mel_")


# ---------------------------------------------------------------------------
# compose_notes
# ---------------------------------------------------------------------------


class TestComposeNotes:
    @pytest.mark.parametrize("seed", SEEDS)
    def test_deterministic(self, seed):
        assert compose_notes(seed, 0.0, 30.0) == compose_notes(seed, 0.0, 30.0)

    def test_seed_diversity(self):
        outputs = {
            tuple((n.id, n.midi_pitch, n.start_time) for n in compose_notes(s, 0.0, 20.0))
            for s in SEEDS
        }
        assert len(outputs) > 1

    @pytest.mark.parametrize("seed", SEEDS)
    def test_window_filter_sorted_unique(self, seed):
        notes = compose_notes(seed, 5.0, 25.0)
        assert notes
        assert all(5.0 <= n.start_time < 25.0 for n in notes)
        starts = [n.start_time for n in notes]
        assert starts == sorted(starts)
        assert len({n.id for n in notes}) == len(notes)

    def test_empty_window(self):
        assert compose_notes("test", 10.0, 10.0) == []
        assert compose_notes("test", 10.0, 5.0) == []

    def test_non_finite_window(self):
        assert compose_notes("test", float("nan"), 10.0) == []
        assert compose_notes("test", 0.0, float("inf")) == []

    def test_negative_start_clamped(self):
        assert compose_notes("test", -5.0, 10.0) == compose_notes("test", 0.0, 10.0)

    def test_long_window_truncated(self):
        """Windows longer than max_window_sec stop at start + max_window_sec."""
        notes = compose_notes("test", 10.0, 86_400.0)
        assert notes == compose_notes("test", 10.0, 100.0)
        assert max(n.start_time for n in notes) < 100.0

    def test_custom_max_window(self):
        cfg = ComposerConfig(max_window_sec=5.0)
        notes = compose_notes("test", 0.0, 60.0, config=cfg)
        assert notes == compose_notes("test", 0.0, 5.0)

    @pytest.mark.parametrize("seed", SEEDS)
    def test_overlapping_windows_agree(self, seed):
        first = compose_notes(seed, 0.0, 20.0)
        second = compose_notes(seed, 7.3, 40.0)
        shared_a = [n for n in first if 7.3 <= n.start_time < 20.0]
        shared_b = [n for n in second if n.start_time < 20.0]
        assert shared_a == shared_b

    @pytest.mark.parametrize("seed", SEEDS)
    def test_mid_cycle_window_matches_full_render(self, seed):
        ctx = derive_context(seed)
        start = 5 * ctx.bar_duration
        full = compose_notes(seed, 0.0, 60.0)
        part = compose_notes(seed, start, 60.0)
        assert part == [n for n in full if n.start_time >= start]

    def test_segments_concatenate_to_whole(self):
        whole = compose_notes("dQw4w9WgXcQ", 0.0, 90.0)
        pieces = (
            compose_notes("dQw4w9WgXcQ", 0.0, 30.0)
            + compose_notes("dQw4w9WgXcQ", 30.0, 60.0)
            + compose_notes("dQw4w9WgXcQ", 60.0, 90.0)
        )
        assert sorted(pieces, key=lambda n: n.id) == sorted(whole, key=lambda n: n.id)


class TestSwing:
    def test_off_by_default(self):
        swung_ctx = _ctx(swing=True)
        straight_ctx = _ctx(swing=False)
        for bar in range(4):
            assert compose_bar(swung_ctx, bar)[0] == compose_bar(straight_ctx, bar)[0]

    def test_offbeat_eighths_delayed(self):
        cfg = ComposerConfig(apply_swing=True, swing_ratio=0.6)
        swung_ctx = _ctx(swing=True)
        straight_ctx = _ctx(swing=False)
        delay = 0.1 * swung_ctx.beat_duration
        delayed = 0
        for bar in range(16):
            swung = {n.id: n for n in compose_bar(swung_ctx, bar, config=cfg)[0]}
            straight = {n.id: n for n in compose_bar(straight_ctx, bar, config=cfg)[0]}
            assert swung.keys() == straight.keys()
            for note_id, note in swung.items():
                shift = note.start_time - straight[note_id].start_time
                if shift:
                    delayed += 1
                    assert note_id.startswith("mel_")
                    assert note_id.endswith(".5")
                    assert shift == pytest.approx(delay)
                    assert note.end_time == pytest.approx(straight[note_id].end_time)
        assert delayed > 0
