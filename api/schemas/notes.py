"""
api/schemas/notes.py — Pydantic request/response schemas for note endpoints.

Covers:
    /notes/detect       — DetectRequest / DetectResponse
    /notes/compose      — ComposeRequest / ComposeResponse
    /notes/segment      — SegmentRequest / SegmentResponse
    /notes/export/midi  — ExportRequest (binary response)
    /notes/label/{midi} — LabelOut
"""

from typing import Literal

from pydantic import BaseModel, Field, model_validator

from core.config import DEFAULT_COMPOSER_CONFIG
from core.segments import DEFAULT_MIN_CONFIDENCE, DEFAULT_SEGMENT_SEC

MAX_COMPOSE_WINDOW_SEC: float = DEFAULT_COMPOSER_CONFIG.max_window_sec

# ---------------------------------------------------------------------------
# Shared sub-schemas
# ---------------------------------------------------------------------------


class NoteIn(BaseModel):
    """A NoteEvent as sent by a client (e.g. for MIDI export)."""

    id: str = Field(..., min_length=1)
    start_time: float = Field(..., ge=0.0)
    duration: float = Field(..., gt=0.0)
    midi_pitch: int = Field(..., ge=0, le=127)
    velocity: float = Field(..., ge=0.0, le=1.0)
    confidence: float = Field(1.0, ge=0.0, le=1.0)


class NoteOut(NoteIn):
    """A NoteEvent plus its display name."""

    pitch_name: str


class ContextOut(BaseModel):
    """Global parameters the generator derived from a seed."""

    bpm: int
    swing: bool
    mode: str
    root_pitch: int
    root_name: str
    progression: list[int]
    progression_label: str
    bar_duration: float


# ---------------------------------------------------------------------------
# /notes/detect
# ---------------------------------------------------------------------------


class DetectRequest(BaseModel):
    """Request body for POST /notes/detect.

    Exactly one of ``samples`` (JSON floats) or ``samples_b64`` (base64 of
    little-endian float32 PCM) must be provided.
    """

    samples: list[float] | None = None
    samples_b64: str | None = None
    sample_rate: float = Field(44_100.0, gt=0.0, le=384_000.0)
    start_time: float = Field(0.0, ge=0.0)
    duration: float = Field(30.0, gt=0.0, le=90.0)
    min_confidence: float = Field(DEFAULT_MIN_CONFIDENCE, ge=0.0, le=1.0)

    @model_validator(mode="after")
    def _one_sample_field(self) -> "DetectRequest":
        if (self.samples is None) == (self.samples_b64 is None):
            raise ValueError("Provide exactly one of 'samples' or 'samples_b64'")
        return self


class DetectResponse(BaseModel):
    """Response for POST /notes/detect."""

    notes: list[NoteOut]
    count: int
    start_time: float
    duration: float
    cached: bool = False


# ---------------------------------------------------------------------------
# /notes/compose
# ---------------------------------------------------------------------------


class ComposeRequest(BaseModel):
    """Request body for POST /notes/compose.

    Exactly one of ``seed`` or ``video_url`` must be provided. The empty
    string is a valid seed.
    """

    seed: str | None = None
    video_url: str | None = None
    start_time: float = Field(0.0, ge=0.0)
    end_time: float = Field(30.0, gt=0.0, le=86_400.0)
    min_confidence: float = Field(DEFAULT_MIN_CONFIDENCE, ge=0.0, le=1.0)

    @model_validator(mode="after")
    def _one_seed_field(self) -> "ComposeRequest":
        if (self.seed is None) == (self.video_url is None):
            raise ValueError("Provide exactly one of 'seed' or 'video_url'")
        if self.end_time - self.start_time > MAX_COMPOSE_WINDOW_SEC:
            raise ValueError(
                f"Window end_time - start_time must be at most {MAX_COMPOSE_WINDOW_SEC:g} s"
            )
        return self


class ComposeResponse(BaseModel):
    """Response for POST /notes/compose."""

    seed: str
    context: ContextOut
    notes: list[NoteOut]
    count: int
    cached: bool = False


# ---------------------------------------------------------------------------
# /notes/segment
# ---------------------------------------------------------------------------


class SegmentRequest(BaseModel):
    """Request body for POST /notes/segment.

    The segment containing ``position`` is composed through the shared
    segment cache, so scrubbing back over it is served from memory.
    """

    seed: str | None = None
    video_url: str | None = None
    media_duration: float = Field(..., gt=0.0, le=86_400.0)
    position: float = Field(0.0, ge=0.0)
    segment_sec: Literal[30, 60, 90] = DEFAULT_SEGMENT_SEC
    min_confidence: float = Field(DEFAULT_MIN_CONFIDENCE, ge=0.0, le=1.0)

    @model_validator(mode="after")
    def _one_seed_field(self) -> "SegmentRequest":
        if (self.seed is None) == (self.video_url is None):
            raise ValueError("Provide exactly one of 'seed' or 'video_url'")
        return self


class SegmentResponse(BaseModel):
    """Response for POST /notes/segment."""

    seed: str
    segment_index: int
    segment_count: int
    start_time: float
    end_time: float
    notes: list[NoteOut]
    count: int


# ---------------------------------------------------------------------------
# /notes/export/midi
# ---------------------------------------------------------------------------


class ExportRequest(BaseModel):
    """Request body for POST /notes/export/midi."""

    notes: list[NoteIn] = Field(..., min_length=1)
    bpm: float = Field(120.0, gt=0.0, le=300.0)


# ---------------------------------------------------------------------------
# /notes/label/{midi}
# ---------------------------------------------------------------------------

LabelStyleParam = Literal["scientific", "note_only", "solfege"]
AccidentalParam = Literal["sharp", "flat", "double_sharp"]


class LabelOut(BaseModel):
    """Display label for one MIDI pitch."""

    midi: int
    display: str
    is_accidental: bool
    octave: int
