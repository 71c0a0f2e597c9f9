"""
ingestion/midi_export.py — Convert NoteEvent sequences to MIDI files using mido.

This module is the file-format output boundary of both note producers:
    audio → detect_notes (core/audio/) → notes_to_midi
    seed  → compose_notes (core/composition/) → notes_to_midi

Usage:
    from ingestion.midi_export import notes_to_midi, midi_to_bytes

MIDI structure:
    Type 1, Track 0 = meta (tempo, 4/4), Track 1 = notes (channel 0)

NoteEvent velocity is normalized 0.0–1.0; MIDI velocity is 1–127 for a
sounding note_on, so velocity maps to round(v × 127) clamped to [1, 127].
"""

from __future__ import annotations

import io
from collections.abc import Sequence
from pathlib import Path

import mido

from core.types import NoteEvent

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

DEFAULT_TICKS_PER_BEAT: int = 480
"""Standard MIDI ticks per quarter note. 480 gives 1 ms resolution at 120 BPM."""

MIDI_CHANNEL: int = 0
"""MIDI channel for note events (0-indexed = channel 1 in DAW)."""


# ---------------------------------------------------------------------------
# Conversion utilities
# ---------------------------------------------------------------------------


def _sec_to_ticks(
    seconds: float,
    bpm: float,
    ticks_per_beat: int,
) -> int:
    """Convert a time in seconds to MIDI ticks.

    Formula: ticks = seconds × (BPM / 60) × ticks_per_beat

    Args:
        seconds: Time in seconds. Negative values map to 0.
        bpm: Tempo in beats per minute.
        ticks_per_beat: MIDI resolution (ticks per quarter note).

    Returns:
        Non-negative integer tick count.
    """
    if seconds < 0:
        return 0
    beats_per_sec = bpm / 60.0
    return max(0, round(seconds * beats_per_sec * ticks_per_beat))


def _bpm_to_tempo_us(bpm: float) -> int:
    """Convert BPM to MIDI tempo (microseconds per beat).

    120 BPM = 500,000 μs/beat. Non-positive BPM falls back to 120.
    """
    if bpm <= 0:
        bpm = 120.0
    return max(1, round(60_000_000.0 / bpm))


def _velocity_to_midi(velocity: float) -> int:
    """Normalized 0.0–1.0 velocity → MIDI 1–127."""
    return max(1, min(127, round(velocity * 127)))


# ---------------------------------------------------------------------------
# Export
# ---------------------------------------------------------------------------


def notes_to_midi(
    notes: Sequence[NoteEvent],
    *,
    bpm: float = 120.0,
    output_path: str | Path | None = None,
    ticks_per_beat: int = DEFAULT_TICKS_PER_BEAT,
) -> mido.MidiFile:
    """Convert a sequence of NoteEvents to a MIDI file.

    Delta time encoding:
        Absolute tick positions are computed for every note_on/note_off,
        sorted (note_off first at equal ticks), then turned into deltas.

    Args:
        notes: NoteEvents from either producer. Must not be empty.
        bpm: Tempo written to the file and used for seconds → ticks.
        output_path: If provided, saves the MIDI file to this path.
        ticks_per_beat: MIDI resolution (default: 480).

    Returns:
        mido.MidiFile object.

    Raises:
        ValueError: If notes is empty.
        OSError: If output_path is not writable.
    """
    if not notes:
        raise ValueError("notes sequence must not be empty")

    midi = mido.MidiFile(type=1, ticks_per_beat=ticks_per_beat)

    meta_track = mido.MidiTrack()
    midi.tracks.append(meta_track)
    meta_track.append(mido.MetaMessage("set_tempo", tempo=_bpm_to_tempo_us(bpm), time=0))
    meta_track.append(
        mido.MetaMessage(
            "time_signature",
            numerator=4,
            denominator=4,
            clocks_per_click=24,
            notated_32nd_notes_per_beat=8,
            time=0,
        )
    )
    meta_track.append(mido.MetaMessage("end_of_track", time=0))

    note_track = mido.MidiTrack()
    midi.tracks.append(note_track)

    # (absolute_tick, event_type, pitch, velocity); event_type 0 = note_off, 1 = note_on
    events: list[tuple[int, int, int, int]] = []
    for note in notes:
        on_tick = _sec_to_ticks(note.start_time, bpm, ticks_per_beat)
        off_tick = _sec_to_ticks(note.end_time, bpm, ticks_per_beat)
        if off_tick <= on_tick:
            off_tick = on_tick + 1
        events.append((on_tick, 1, note.midi_pitch, _velocity_to_midi(note.velocity)))
        events.append((off_tick, 0, note.midi_pitch, 0))

    events.sort(key=lambda e: (e[0], e[1]))

    current_tick = 0
    for abs_tick, event_type, pitch, velocity in events:
        delta = abs_tick - current_tick
        current_tick = abs_tick
        kind = "note_on" if event_type == 1 else "note_off"
        note_track.append(
            mido.Message(kind, channel=MIDI_CHANNEL, note=pitch, velocity=velocity, time=delta)
        )

    note_track.append(mido.MetaMessage("end_of_track", time=0))

    if output_path is not None:
        midi.save(str(output_path))

    return midi


def midi_to_bytes(midi: mido.MidiFile) -> bytes:
    """Serialize a MidiFile to Standard MIDI File bytes."""
    buffer = io.BytesIO()
    midi.save(file=buffer)
    return buffer.getvalue()


# ---------------------------------------------------------------------------
# Round-trip parser (MIDI → NoteEvents)
# ---------------------------------------------------------------------------


def midi_to_notes(midi_file: mido.MidiFile) -> list[NoteEvent]:
    """Parse a MIDI file written by notes_to_midi() back into NoteEvents.

    Ids are 'midi_<n>' in onset order; confidence is 1.0 (the file is the
    ground truth). Overlapping notes of the same pitch are matched first in,
    first out.

    Args:
        midi_file: A mido.MidiFile object.

    Returns:
        NoteEvents sorted by start_time. Empty list if no note events found.
    """
    tempo_us = 500_000
    if midi_file.tracks:
        for msg in midi_file.tracks[0]:
            if msg.type == "set_tempo":
                tempo_us = msg.tempo
                break

    bpm = 60_000_000.0 / tempo_us
    ticks_per_beat = midi_file.ticks_per_beat

    def ticks_to_sec(ticks: int) -> float:
        return ticks / ticks_per_beat / (bpm / 60.0)

    if len(midi_file.tracks) < 2:
        return []

    abs_tick = 0
    pending: dict[int, list[tuple[int, int]]] = {}
    parsed: list[tuple[float, float, int, int]] = []

    for msg in midi_file.tracks[1]:
        abs_tick += msg.time
        if msg.type == "note_on" and msg.velocity > 0:
            pending.setdefault(msg.note, []).append((abs_tick, msg.velocity))
        elif msg.type == "note_off" or (msg.type == "note_on" and msg.velocity == 0):
            queue = pending.get(msg.note)
            if queue:
                on_tick, velocity = queue.pop(0)
                parsed.append(
                    (
                        ticks_to_sec(on_tick),
                        max(0.001, ticks_to_sec(abs_tick - on_tick)),
                        msg.note,
                        velocity,
                    )
                )

    parsed.sort(key=lambda p: p[0])
    return [
        NoteEvent(
            id=f"midi_{i}",
            start_time=start,
            duration=duration,
            midi_pitch=pitch,
            velocity=velocity / 127,
            confidence=1.0,
        )
        for i, (start, duration, pitch, velocity) in enumerate(parsed)
    ]
