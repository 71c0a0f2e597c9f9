"""
api/routes/notes.py — Note producer endpoints.

Endpoints:
    POST /notes/detect       — Notes from PCM samples (autocorrelation path)
    POST /notes/compose      — Notes from a seed or video URL (seeded path)
    POST /notes/segment      — One playback segment through the shared segment cache
    POST /notes/export/midi  — Standard MIDI File from a note list
    GET  /notes/label/{midi} — Display label for a MIDI pitch

Both producers are deterministic, so detect/compose responses are cached in
Redis keyed by their parameters.
"""

from __future__ import annotations

import base64
import binascii
import hashlib
import logging
from typing import Any

import numpy as np
from fastapi import APIRouter, HTTPException, Path
from fastapi.responses import Response

from api.deps import get_note_cache, get_response_cache
from api.schemas.notes import (
    AccidentalParam,
    ComposeRequest,
    ComposeResponse,
    ContextOut,
    DetectRequest,
    DetectResponse,
    ExportRequest,
    LabelOut,
    LabelStyleParam,
    NoteOut,
    SegmentRequest,
    SegmentResponse,
)
from core.audio.segmentation import detect_notes
from core.composition.generator import compose_notes, derive_context
from core.notation import format_pitch, pitch_name
from core.segments import filter_confident, segment_window
from core.sources import parse_video_id
from core.types import NoteEvent, Producer
from infrastructure.metrics import record_cache_hit, record_cache_miss
from ingestion.midi_export import midi_to_bytes, notes_to_midi
from ingestion.note_engine import NoteEngine, VideoSource, run_producer

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/notes", tags=["notes"])


def _note_out(note: NoteEvent) -> NoteOut:
    return NoteOut(**note.to_dict(), pitch_name=pitch_name(note.midi_pitch))


def _resolve_seed(seed: str | None, video_url: str | None) -> str:
    """Return the explicit seed, or the video id parsed from ``video_url``.

    Raises:
        HTTPException: 422 when video_url carries no recognisable video id.
    """
    if seed is not None:
        return seed
    video_id = parse_video_id(video_url or "")
    if video_id is None:
        raise HTTPException(
            status_code=422,
            detail=f"Could not extract a video id from {video_url!r}",
        )
    return video_id


def _decode_samples(request: DetectRequest) -> np.ndarray:
    """Return the request PCM as a float64 array.

    Raises:
        ValueError: If samples_b64 is not valid base64 of float32 data.
    """
    if request.samples is not None:
        return np.asarray(request.samples, dtype=np.float64)
    try:
        raw = base64.b64decode(request.samples_b64 or "", validate=True)
    except binascii.Error as exc:
        raise ValueError(f"samples_b64 is not valid base64: {exc}") from exc
    if len(raw) % 4 != 0:
        raise ValueError(f"samples_b64 must hold float32 data, got {len(raw)} bytes")
    return np.frombuffer(raw, dtype="<f4").astype(np.float64)


# ---------------------------------------------------------------------------
# POST /notes/detect
# ---------------------------------------------------------------------------


@router.post("/detect", response_model=DetectResponse)
def detect(request: DetectRequest) -> DetectResponse:
    """Detect monophonic notes in a PCM segment.

    Args:
        request: DetectRequest with samples, sample_rate and the segment window.

    Returns:
        DetectResponse with notes at or above min_confidence.

    Raises:
        422: Malformed sample payload.
    """
    try:
        samples = _decode_samples(request)
    except ValueError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc

    cache = get_response_cache()
    params: dict[str, Any] = {
        "samples_sha256": hashlib.sha256(samples.tobytes()).hexdigest(),
        "sample_rate": request.sample_rate,
        "start_time": request.start_time,
        "duration": request.duration,
        "min_confidence": request.min_confidence,
    }
    hit = cache.get("detect", params)
    if hit is not None:
        record_cache_hit()
        return DetectResponse(**hit, cached=True)
    record_cache_miss()

    notes = run_producer(
        Producer.ANALYSIS,
        lambda: detect_notes(samples, request.sample_rate, request.start_time, request.duration),
        start=request.start_time,
        end=request.start_time + request.duration,
    )
    visible = filter_confident(notes, request.min_confidence)

    response = DetectResponse(
        notes=[_note_out(n) for n in visible],
        count=len(visible),
        start_time=request.start_time,
        duration=request.duration,
    )
    cache.set("detect", params, response.model_dump(exclude={"cached"}))
    return response


# ---------------------------------------------------------------------------
# POST /notes/compose
# ---------------------------------------------------------------------------


@router.post("/compose", response_model=ComposeResponse)
def compose(request: ComposeRequest) -> ComposeResponse:
    """Compose the seeded notes of a time window.

    Args:
        request: ComposeRequest with seed (or video_url) and the window.

    Returns:
        ComposeResponse with the generator context and notes.

    Raises:
        422: video_url carries no recognisable video id.
    """
    seed = _resolve_seed(request.seed, request.video_url)

    cache = get_response_cache()
    params: dict[str, Any] = {
        "seed": seed,
        "start_time": request.start_time,
        "end_time": request.end_time,
        "min_confidence": request.min_confidence,
    }
    hit = cache.get("compose", params)
    if hit is not None:
        record_cache_hit()
        return ComposeResponse(**hit, cached=True)
    record_cache_miss()

    notes = run_producer(
        Producer.COMPOSITION,
        lambda: compose_notes(seed, request.start_time, request.end_time),
        start=request.start_time,
        end=request.end_time,
    )
    visible = filter_confident(notes, request.min_confidence)

    response = ComposeResponse(
        seed=seed,
        context=ContextOut(**derive_context(seed).describe()),
        notes=[_note_out(n) for n in visible],
        count=len(visible),
    )
    cache.set("compose", params, response.model_dump(exclude={"cached"}))
    return response


# ---------------------------------------------------------------------------
# POST /notes/segment
# ---------------------------------------------------------------------------


@router.post("/segment", response_model=SegmentResponse)
def segment(request: SegmentRequest) -> SegmentResponse:
    """Compose the segment that holds a playback position.

    Segments are memoized in the process-wide NoteCache, keyed by
    (video, segment length, index), and reported by /cache/stats.

    Args:
        request: SegmentRequest with seed (or video_url), media length,
            playback position and segment length.

    Returns:
        SegmentResponse with the segment bounds and its notes.

    Raises:
        422: video_url carries no recognisable video id.
    """
    seed = _resolve_seed(request.seed, request.video_url)
    engine = NoteEngine(
        VideoSource(video_id=seed, duration=request.media_duration),
        segment_sec=request.segment_sec,
        cache=get_note_cache(),
        min_confidence=request.min_confidence,
    )
    index = engine.segment_at(request.position)
    if index is None:
        raise HTTPException(status_code=422, detail="media_duration holds no segment")

    engine.analyze_segment(index)
    start, end = segment_window(index, request.segment_sec, request.media_duration)
    visible = engine.visible_notes()
    return SegmentResponse(
        seed=seed,
        segment_index=index,
        segment_count=engine.segment_count,
        start_time=start,
        end_time=end,
        notes=[_note_out(n) for n in visible],
        count=len(visible),
    )


# ---------------------------------------------------------------------------
# POST /notes/export/midi
# ---------------------------------------------------------------------------


@router.post("/export/midi")
def export_midi(request: ExportRequest) -> Response:
    """Render a note list as a Type 1 Standard MIDI File.

    Raises:
        422: Notes that violate the NoteEvent contract.
    """
    try:
        notes = [NoteEvent(**n.model_dump()) for n in request.notes]
        midi = notes_to_midi(notes, bpm=request.bpm)
    except ValueError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc

    logger.info("Exported %d notes to MIDI at %.1f BPM", len(notes), request.bpm)
    return Response(
        content=midi_to_bytes(midi),
        media_type="audio/midi",
        headers={"Content-Disposition": 'attachment; filename="notes.mid"'},
    )


# ---------------------------------------------------------------------------
# GET /notes/label/{midi}
# ---------------------------------------------------------------------------


@router.get("/label/{midi}", response_model=LabelOut)
def label(
    midi: int = Path(..., ge=0, le=127),
    style: LabelStyleParam = "scientific",
    accidentals: AccidentalParam = "sharp",
    show_octave: bool = True,
) -> LabelOut:
    """Return the notation label for a MIDI pitch."""
    try:
        result = format_pitch(
            midi, style=style, accidentals=accidentals, show_octave=show_octave
        )
    except ValueError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc
    return LabelOut(
        midi=midi,
        display=result.display,
        is_accidental=result.is_accidental,
        octave=result.octave,
    )
