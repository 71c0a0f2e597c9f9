"""
core/composition/generator.py — Deterministic seeded composition (procedural path).

compose_notes() fabricates a plausible three-layer part for a time window when
no audio samples are available (e.g. an embedded video whose waveform cannot be
read). The only input is an opaque identifier: the same identifier always
yields the same music.

Algorithm:
    1. Seed a SeedState from the identifier's character codes.
    2. Draw the global parameters in a fixed order:
         BPM (80–129) → swing (40%) → mode (50% minor) → root (MIDI 58–69)
         → one of four 4-bar progressions
    3. For every bar overlapping [start, end):
         a. Re-seed a bar cursor from (setup cursor, bar index)
         b. Bass    — chord root 2 octaves down on beat 1; 60% chance of a
                      5th/octave on beat 3
         c. Harmony — if the bar's intensity draw > 0.3, a strummed triad
                      one octave down on beat 2
         d. Melody  — stepwise random walk over eighth/quarter/half slots,
                      pulled toward chord tones on strong beats, ending each
                      even bar on the 5th ("question") and each odd bar on
                      the root ("answer"), kept in [60, 84]
    4. Filter to [start, end), sort by start_time.

Window consistency:
    All draws of a bar come from that bar's own cursor and are made whether or
    not the note lands inside the requested window. Melodic voice leading is
    carried bar to bar inside a progression cycle and restarts on the root at
    each cycle start, so the generator can warm up from the cycle start.
    Result: two calls whose windows share a bar produce identical notes for
    that bar, whatever the rest of either window looks like.

Design decisions:
    - Pure: no I/O, no global mutable state; SeedState is threaded explicitly
    - Fail-soft: any seed string is accepted ("" seeds 0); malformed windows
      return []
    - Note ids are stable per (layer, bar, position), so callers can merge
      overlapping windows by id
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any

from core.composition.seed_stream import MASK32, SeedState
from core.composition.theory import (
    FIFTH,
    PROGRESSIONS,
    SCALE_INTERVALS,
    TRIAD_DEGREES,
    degree_to_midi,
    progression_label,
    root_name,
)
from core.config import DEFAULT_COMPOSER_CONFIG, ComposerConfig
from core.types import NoteEvent, sort_events

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

BASE_BPM: int = 80
BPM_RANGE: int = 50  # 80–129 BPM
SWING_THRESHOLD: float = 0.6  # draw > 0.6 → swing (40%)
MINOR_THRESHOLD: float = 0.5
BASE_ROOT: int = 58  # A#3 / Bb3
ROOT_RANGE: int = 12  # 58–69
BEATS_PER_BAR: int = 4
SCALE_LENGTH: int = 7

BAR_STRIDE: int = 0x9E3779B9
"""Cursor distance between consecutive bars (golden-ratio increment).
Far larger than the draws a bar consumes, so bar streams never overlap."""

PHRASE_BARS: int = len(PROGRESSIONS[0])
"""Melodic voice leading restarts at the start of each progression cycle."""

# Bass layer
_BASS_OCTAVE: int = -2
_BASS_DURATION_BEATS: float = 1.2
_BASS_VELOCITY: float = 0.85
_BASS_CONFIDENCE: float = 0.98
_BASS_SECOND_THRESHOLD: float = 0.4  # draw > 0.4 → second note (60%)
_BASS_SECOND_BEAT: float = 2.0  # "beat 3" in 1-based counting
_BASS_SECOND_VELOCITY: float = 0.75
_BASS_SECOND_CONFIDENCE: float = 0.90

# Harmony layer
_HARMONY_OCTAVE: int = -1
_HARMONY_THRESHOLD: float = 0.3
_HARMONY_BEAT: float = 1.0  # "beat 2"
_HARMONY_STRUM_SEC: float = 0.03
_HARMONY_DURATION_BEATS: float = 2.0
_HARMONY_CONFIDENCE: float = 0.85

# Melody layer
_EIGHTH_THRESHOLD: float = 0.3  # draw < 0.3 → eighth
_HALF_THRESHOLD: float = 0.7  # draw > 0.7 → half (acts as a pause)
_PLAY_THRESHOLD: float = 0.3  # off-downbeat slots sound when draw > 0.3
_ARTICULATION: float = 0.9
_ACCENT_VELOCITY: float = 0.9
_WEAK_VELOCITY: float = 0.7
_MELODY_CONFIDENCE: float = 0.95


# ---------------------------------------------------------------------------
# Context
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class GeneratorContext:
    """Global musical parameters derived once from the seed.

    Attributes:
        bpm:          Tempo, 80–129.
        swing:        Whether the piece has a swing feel.
        minor:        Natural minor (True) or major (False).
        root_pitch:   MIDI pitch of scale degree 0 in the melody octave, 58–69.
        progression:  Four scale degrees, one chord per bar, repeating.
        setup_cursor: Cursor after the setup draws; bar cursors derive from it.
    """

    bpm: int
    swing: bool
    minor: bool
    root_pitch: int
    progression: tuple[int, ...]
    setup_cursor: int

    @property
    def mode(self) -> str:
        return "minor" if self.minor else "major"

    @property
    def scale_intervals(self) -> tuple[int, ...]:
        return SCALE_INTERVALS[self.mode]

    @property
    def beat_duration(self) -> float:
        """Seconds per beat."""
        return 60.0 / self.bpm

    @property
    def bar_duration(self) -> float:
        """Seconds per 4/4 bar."""
        return self.beat_duration * BEATS_PER_BAR

    def chord_degree(self, bar: int) -> int:
        """Scale degree of the chord root in ``bar``."""
        return self.progression[bar % len(self.progression)]

    def pitch(self, degree: int, octave: int = 0) -> int:
        """MIDI pitch of a scale degree relative to the root."""
        return degree_to_midi(self.root_pitch, self.scale_intervals, degree, octave)

    def bar_state(self, bar: int) -> SeedState:
        """Fresh cursor for one bar — a pure function of (seed, bar)."""
        return SeedState((self.setup_cursor + bar * BAR_STRIDE) & MASK32)

    def describe(self) -> dict[str, Any]:
        """Human-readable summary (for API responses and logs)."""
        return {
            "bpm": self.bpm,
            "swing": self.swing,
            "mode": self.mode,
            "root_pitch": self.root_pitch,
            "root_name": root_name(self.root_pitch),
            "progression": list(self.progression),
            "progression_label": progression_label(self.progression, self.mode),
            "bar_duration": self.bar_duration,
        }


def derive_context(seed: str) -> GeneratorContext:
    """Draw the global parameters for ``seed`` in their fixed order.

    Args:
        seed: Opaque identifier (e.g. a video id). Any string, including "".

    Returns:
        GeneratorContext for the seed.
    """
    state = SeedState.from_text(seed)
    bpm_draw, state = state.next()
    swing_draw, state = state.next()
    mode_draw, state = state.next()
    root_draw, state = state.next()
    progression_draw, state = state.next()

    return GeneratorContext(
        bpm=BASE_BPM + math.floor(bpm_draw * BPM_RANGE),
        swing=swing_draw > SWING_THRESHOLD,
        minor=mode_draw > MINOR_THRESHOLD,
        root_pitch=BASE_ROOT + math.floor(root_draw * ROOT_RANGE),
        progression=PROGRESSIONS[math.floor(progression_draw * len(PROGRESSIONS))],
        setup_cursor=state.cursor,
    )


# ---------------------------------------------------------------------------
# Layers
# ---------------------------------------------------------------------------


def _bass(
    ctx: GeneratorContext, bar: int, state: SeedState
) -> tuple[list[NoteEvent], SeedState]:
    """Root on beat 1, optional 5th or octave on beat 3."""
    bar_start = bar * ctx.bar_duration
    chord = ctx.chord_degree(bar)
    notes = [
        NoteEvent(
            id=f"bass_{bar}_1",
            start_time=bar_start,
            duration=ctx.beat_duration * _BASS_DURATION_BEATS,
            midi_pitch=ctx.pitch(chord, _BASS_OCTAVE),
            velocity=_BASS_VELOCITY,
            confidence=_BASS_CONFIDENCE,
        )
    ]

    second, state = state.next()
    if second > _BASS_SECOND_THRESHOLD:
        coin, state = state.next()
        offset = FIFTH if coin > 0.5 else SCALE_LENGTH
        notes.append(
            NoteEvent(
                id=f"bass_{bar}_3",
                start_time=bar_start + ctx.beat_duration * _BASS_SECOND_BEAT,
                duration=ctx.beat_duration,
                midi_pitch=ctx.pitch(chord + offset, _BASS_OCTAVE),
                velocity=_BASS_SECOND_VELOCITY,
                confidence=_BASS_SECOND_CONFIDENCE,
            )
        )
    return notes, state


def _harmony(
    ctx: GeneratorContext, bar: int, state: SeedState
) -> tuple[list[NoteEvent], SeedState]:
    """Strummed triad pad on beat 2 when the bar's intensity is high enough."""
    intensity, state = state.next()
    if intensity <= _HARMONY_THRESHOLD:
        return [], state

    bar_start = bar * ctx.bar_duration
    chord = ctx.chord_degree(bar)
    notes = [
        NoteEvent(
            id=f"harm_{bar}_{idx}",
            start_time=bar_start + ctx.beat_duration * _HARMONY_BEAT + idx * _HARMONY_STRUM_SEC,
            duration=ctx.beat_duration * _HARMONY_DURATION_BEATS,
            midi_pitch=ctx.pitch(chord + tone, _HARMONY_OCTAVE),
            velocity=0.4 + intensity * 0.2,
            confidence=_HARMONY_CONFIDENCE,
        )
        for idx, tone in enumerate(TRIAD_DEGREES)
    ]
    return notes, state


def _slot_length(roll: float) -> float:
    if roll > _HALF_THRESHOLD:
        return 2.0
    if roll < _EIGHTH_THRESHOLD:
        return 0.5
    return 1.0


def _melody(
    ctx: GeneratorContext,
    bar: int,
    state: SeedState,
    last_degree: int,
    config: ComposerConfig,
) -> tuple[list[NoteEvent], int]:
    """Stepwise melodic walk over one bar. Returns (notes, last degree)."""
    bar_start = bar * ctx.bar_duration
    chord = ctx.chord_degree(bar)
    is_question = bar % 2 == 0
    swing_delay = 0.0
    if config.apply_swing and ctx.swing:
        swing_delay = (config.swing_ratio - 0.5) * ctx.beat_duration

    notes: list[NoteEvent] = []
    beat = 0.0
    while beat < BEATS_PER_BAR:
        roll, state = state.next()
        slot = _slot_length(roll)

        play = True
        if beat != 0:
            draw, state = state.next()
            play = draw > _PLAY_THRESHOLD

        if play:
            tone_coin, state = state.next()
            chord_tone = chord + (0 if tone_coin > 0.5 else 2)
            step_coin, state = state.next()
            degree = last_degree + (1 if step_coin > 0.5 else -1)

            # Strong beats gravitate one step toward the chord tone.
            if beat % 2 == 0:
                if degree < chord_tone:
                    degree += 1
                elif degree > chord_tone:
                    degree -= 1

            # Phrase ending: question bars hang on the 5th, answer bars resolve.
            if beat >= 3 and slot >= 1:
                degree = chord + FIFTH if is_question else chord

            while ctx.pitch(degree) > config.melody_high:
                degree -= SCALE_LENGTH
            while ctx.pitch(degree) < config.melody_low:
                degree += SCALE_LENGTH

            last_degree = degree

            start = bar_start + beat * ctx.beat_duration
            duration = slot * ctx.beat_duration * _ARTICULATION
            if swing_delay and slot == 0.5 and beat % 1 == 0.5:
                start += swing_delay
                duration -= swing_delay

            notes.append(
                NoteEvent(
                    id=f"mel_{bar}_{beat:g}",
                    start_time=start,
                    duration=duration,
                    midi_pitch=ctx.pitch(degree),
                    velocity=_ACCENT_VELOCITY if beat % 2 == 0 else _WEAK_VELOCITY,
                    confidence=_MELODY_CONFIDENCE,
                )
            )

        beat += slot

    return notes, last_degree


def compose_bar(
    ctx: GeneratorContext,
    bar: int,
    last_degree: int = 0,
    *,
    config: ComposerConfig = DEFAULT_COMPOSER_CONFIG,
) -> tuple[list[NoteEvent], int]:
    """Generate all three layers of one bar.

    Args:
        ctx:         Global parameters from derive_context().
        bar:         Bar index (0 = media start).
        last_degree: Melody degree the previous bar ended on.
        config:      Melody range and swing options.

    Returns:
        (notes of the bar in layer order, melody degree the bar ends on).
    """
    state = ctx.bar_state(bar)
    bass, state = _bass(ctx, bar, state)
    harmony, state = _harmony(ctx, bar, state)
    melody, last_degree = _melody(ctx, bar, state, last_degree, config)
    return bass + harmony + melody, last_degree


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def compose_notes(
    seed: str,
    start_time: float,
    end_time: float,
    *,
    config: ComposerConfig = DEFAULT_COMPOSER_CONFIG,
) -> list[NoteEvent]:
    """Compose the notes of ``seed`` that start inside [start_time, end_time).

    Args:
        seed:       Opaque identifier; any string.
        start_time: Window start in seconds (negative values clamp to 0).
        end_time:   Window end in seconds (exclusive); at most
                    start_time + config.max_window_sec is composed.
        config:     Melody range, swing and window options.

    Returns:
        NoteEvents sorted by start_time. Empty for an empty or malformed window.

    Examples:
        >>> notes = compose_notes("dQw4w9WgXcQ", 0.0, 10.0)
        >>> notes == compose_notes("dQw4w9WgXcQ", 0.0, 10.0)
        True
    """
    if not math.isfinite(start_time) or not math.isfinite(end_time):
        return []
    start_time = max(0.0, start_time)
    end_time = min(end_time, start_time + config.max_window_sec)
    if end_time <= start_time:
        return []

    ctx = derive_context(seed)
    start_bar = math.floor(start_time / ctx.bar_duration)
    end_bar = math.ceil(end_time / ctx.bar_duration)
    warmup_bar = start_bar - start_bar % PHRASE_BARS

    notes: list[NoteEvent] = []
    last_degree = 0
    for bar in range(warmup_bar, end_bar):
        if bar % PHRASE_BARS == 0:
            last_degree = 0
        bar_notes, last_degree = compose_bar(ctx, bar, last_degree, config=config)
        if bar < start_bar:
            continue
        notes.extend(n for n in bar_notes if start_time <= n.start_time < end_time)

    return sort_events(notes)
