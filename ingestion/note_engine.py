"""
ingestion/note_engine.py — Segment-by-segment orchestrator for both note paths.

NoteEngine wires a media source to the matching producer:

    AudioSource (decoded PCM)
        └─ detect_notes()     [core/audio/segmentation.py — autocorrelation path]

    VideoSource (video id, no waveform)
        └─ compose_notes()    [core/composition/generator.py — seeded path]

Long media is processed one segment (30/60/90 s) at a time. Each segment's
result is memoized in a NoteCache and merged into the session note list
(duplicate ids dropped, sorted by start time).

This module is in `ingestion/` because it owns mutable session state and
emits logs and metrics. Everything it calls in `core/` is pure.

Usage:
    engine = NoteEngine(VideoSource.from_url("https://youtu.be/dQw4w9WgXcQ", 212.0))
    engine.analyze_at(42.0)
    for note in engine.visible_notes():
        print(note.start_time, note.midi_pitch)
"""

from __future__ import annotations

import hashlib
import logging
from collections.abc import Callable
from dataclasses import dataclass, field

import numpy as np

from core.audio.segmentation import detect_notes
from core.composition.generator import compose_notes
from core.config import (
    DEFAULT_COMPOSER_CONFIG,
    DEFAULT_SEGMENTER_CONFIG,
    ComposerConfig,
    SegmenterConfig,
)
from core.segments import (
    DEFAULT_MIN_CONFIDENCE,
    DEFAULT_SEGMENT_SEC,
    filter_confident,
    merge_notes,
    segment_count,
    segment_index_at,
    segment_window,
    validate_segment_duration,
)
from core.sources import SourceType, parse_video_id
from core.types import NoteEvent, Producer
from infrastructure.metrics import LatencyTimer, record_producer, record_segment_cache_hit
from ingestion.cache import NoteCache, SegmentKey

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Sources
# ---------------------------------------------------------------------------


@dataclass(eq=False)
class AudioSource:
    """Decoded mono PCM for the analytical path.

    Attributes:
        samples:     Float samples, 1-D (or 2-D (n, channels), averaged later).
        sample_rate: Sampling rate in Hz.
        name:        Display name, e.g. the uploaded file name.
        fingerprint: SHA-1 of the sample bytes; keys the segment cache.
    """

    samples: np.ndarray
    sample_rate: float
    name: str = "audio"
    fingerprint: str = field(init=False)

    def __post_init__(self) -> None:
        if self.sample_rate <= 0:
            raise ValueError(f"sample_rate must be positive, got {self.sample_rate}")
        self.samples = np.asarray(self.samples, dtype=np.float64)
        self.fingerprint = hashlib.sha1(self.samples.tobytes()).hexdigest()

    @property
    def source_type(self) -> SourceType:
        return SourceType.FILE

    @property
    def duration(self) -> float:
        """Length in seconds."""
        return self.samples.shape[0] / self.sample_rate

    @property
    def key(self) -> str:
        return f"file:{self.fingerprint}"


@dataclass(frozen=True)
class VideoSource:
    """Streaming video for the procedural path.

    Attributes:
        video_id: Opaque id used as the composition seed.
        duration: Video length in seconds (reported by the player).
    """

    video_id: str
    duration: float

    def __post_init__(self) -> None:
        if self.duration < 0:
            raise ValueError(f"duration must be >= 0, got {self.duration}")

    @classmethod
    def from_url(cls, url: str, duration: float) -> VideoSource:
        """Build a source from a pasted video URL.

        Raises:
            ValueError: If no video id can be extracted from ``url``.
        """
        video_id = parse_video_id(url)
        if video_id is None:
            raise ValueError(f"Could not extract a video id from {url!r}")
        return cls(video_id=video_id, duration=duration)

    @property
    def source_type(self) -> SourceType:
        return SourceType.VIDEO

    @property
    def key(self) -> str:
        return f"video:{self.video_id}"


Source = AudioSource | VideoSource


# ---------------------------------------------------------------------------
# NoteEngine
# ---------------------------------------------------------------------------


class NoteEngine:
    """Runs the producer for one media source, segment by segment.

    Args:
        source:          AudioSource or VideoSource.
        segment_sec:     Segment length, one of 30/60/90 seconds.
        cache:           Segment cache; a private NoteCache when omitted.
        segmenter_config: Policy constants for the analytical path.
        composer_config: Options for the procedural path.
        min_confidence:  Display threshold for visible_notes().

    Raises:
        ValueError: If segment_sec is not an allowed segment length.
    """

    def __init__(
        self,
        source: Source,
        *,
        segment_sec: int = DEFAULT_SEGMENT_SEC,
        cache: NoteCache | None = None,
        segmenter_config: SegmenterConfig = DEFAULT_SEGMENTER_CONFIG,
        composer_config: ComposerConfig = DEFAULT_COMPOSER_CONFIG,
        min_confidence: float = DEFAULT_MIN_CONFIDENCE,
    ) -> None:
        """Initialise the engine for ``source``."""
        validate_segment_duration(segment_sec)
        self._source = source
        self._segment_sec = segment_sec
        self._cache = cache if cache is not None else NoteCache()
        self._segmenter_config = segmenter_config
        self._composer_config = composer_config
        self._min_confidence = min_confidence
        self._processed: set[int] = set()
        self._notes: list[NoteEvent] = []

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def source(self) -> Source:
        return self._source

    @property
    def producer(self) -> Producer:
        if isinstance(self._source, AudioSource):
            return Producer.ANALYSIS
        return Producer.COMPOSITION

    @property
    def segment_sec(self) -> int:
        return self._segment_sec

    @property
    def segment_count(self) -> int:
        return segment_count(self._source.duration, self._segment_sec)

    @property
    def notes(self) -> list[NoteEvent]:
        """All merged notes of the session, sorted by start_time."""
        return list(self._notes)

    @property
    def processed_segments(self) -> frozenset[int]:
        return frozenset(self._processed)

    def is_processed(self, index: int) -> bool:
        return index in self._processed

    def visible_notes(self, min_confidence: float | None = None) -> list[NoteEvent]:
        """Merged notes at or above the display confidence threshold."""
        threshold = self._min_confidence if min_confidence is None else min_confidence
        return filter_confident(self._notes, threshold)

    # ------------------------------------------------------------------
    # Segment control
    # ------------------------------------------------------------------

    def set_segment_duration(self, segment_sec: int) -> None:
        """Switch segment length.

        Segment indices change meaning, so the processed set is cleared. Notes
        already merged are kept; re-analysis merges without duplicates
        because ids are stable.

        Raises:
            ValueError: If segment_sec is not an allowed segment length.
        """
        validate_segment_duration(segment_sec)
        if segment_sec == self._segment_sec:
            return
        logger.info(
            "NoteEngine: segment length %ds → %ds for %s",
            self._segment_sec,
            segment_sec,
            self._source.key,
        )
        self._segment_sec = segment_sec
        self._processed.clear()

    def reset(self) -> None:
        """Start over: forget processed segments, merged notes and cached segments."""
        dropped = self._cache.invalidate_source(self._source.key)
        logger.info("NoteEngine: reset %s (%d cached segments dropped)", self._source.key, dropped)
        self._processed.clear()
        self._notes = []

    # ------------------------------------------------------------------
    # Analysis
    # ------------------------------------------------------------------

    def analyze_segment(self, index: int) -> list[NoteEvent]:
        """Produce the notes of segment ``index`` and merge them into the session.

        Args:
            index: Segment index in [0, segment_count).

        Returns:
            Notes of this segment, sorted by start_time.

        Raises:
            ValueError: If index is out of range.
        """
        start, end = segment_window(index, self._segment_sec, self._source.duration)
        cache_key = SegmentKey(self._source.key, self._segment_sec, index)

        cached = self._cache.get(cache_key)
        if cached is not None:
            record_segment_cache_hit()
            logger.debug("NoteEngine: segment cache hit %s", cache_key)
            notes = list(cached)
        else:
            notes = self._produce(start, end)
            self._cache.put(cache_key, tuple(notes))

        self._processed.add(index)
        self._notes = merge_notes(self._notes, notes)
        return notes

    def segment_at(self, time_sec: float) -> int | None:
        """Index of the segment holding ``time_sec``; None for empty media.

        Positions past the end map to the last segment.
        """
        count = self.segment_count
        if count == 0:
            return None
        return min(segment_index_at(time_sec, self._segment_sec), count - 1)

    def analyze_at(self, time_sec: float) -> list[NoteEvent]:
        """Analyze the segment containing playback position ``time_sec``.

        Returns [] for empty media.
        """
        index = self.segment_at(time_sec)
        if index is None:
            return []
        return self.analyze_segment(index)

    def analyze_all(self) -> list[NoteEvent]:
        """Analyze every unprocessed segment; return the merged session notes."""
        for index in range(self.segment_count):
            if index not in self._processed:
                self.analyze_segment(index)
        return self.notes

    def _produce(self, start: float, end: float) -> list[NoteEvent]:
        if isinstance(self._source, AudioSource):
            source = self._source
            return run_producer(
                Producer.ANALYSIS,
                lambda: detect_notes(
                    source.samples,
                    source.sample_rate,
                    start,
                    end - start,
                    config=self._segmenter_config,
                ),
                start=start,
                end=end,
            )
        video_id = self._source.video_id
        return run_producer(
            Producer.COMPOSITION,
            lambda: compose_notes(video_id, start, end, config=self._composer_config),
            start=start,
            end=end,
        )


# ---------------------------------------------------------------------------
# Instrumented producer call
# ---------------------------------------------------------------------------


def run_producer(
    producer: Producer,
    call: Callable[[], list[NoteEvent]],
    *,
    start: float,
    end: float,
) -> list[NoteEvent]:
    """Invoke a producer with latency, status and note-count metrics.

    Args:
        producer: Which path ``call`` runs (metric label).
        call:     Zero-argument callable returning the producer output.
        start:    Window start in seconds (log context only).
        end:      Window end in seconds (log context only).

    Returns:
        The producer output unchanged.

    Raises:
        Exception: Whatever ``call`` raises, after recording an error.
    """
    try:
        with LatencyTimer() as timer:
            notes = call()
    except Exception:
        record_producer(producer=producer.value, status="error", latency_seconds=0.0)
        logger.exception("%s producer failed on [%.1f, %.1f)", producer.value, start, end)
        raise

    record_producer(
        producer=producer.value,
        status="success" if notes else "empty",
        latency_seconds=timer.elapsed,
        notes=len(notes),
    )
    logger.info(
        "%s [%.1f, %.1f) → %d notes in %.1f ms",
        producer.value,
        start,
        end,
        len(notes),
        timer.elapsed * 1000,
    )
    return notes
