"""Prometheus metrics for tonetrace.

Labels carry the producer (analysis / composition) so dashboards can tell the
two note paths apart, not just generic HTTP stats.

Metrics:
    tonetrace_producer_requests_total    Counter by producer and status (success/empty/error)
    tonetrace_producer_latency_seconds   Histogram of producer wall-clock time
    tonetrace_notes_emitted_total        Counter of NoteEvents emitted per producer
    tonetrace_cache_hits_total           Response cache hits (Redis)
    tonetrace_cache_misses_total         Response cache misses (Redis)
    tonetrace_segment_cache_hits_total   Segment cache hits (in-memory)

Usage::

    from infrastructure.metrics import LatencyTimer, record_producer

    with LatencyTimer() as t:
        notes = detect_notes(...)
    record_producer(producer="analysis", status="success",
                    latency_seconds=t.elapsed, notes=len(notes))
"""

from __future__ import annotations

import logging
import time

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    Counter,
    Histogram,
    generate_latest,
)

logger = logging.getLogger(__name__)

_REGISTRY = CollectorRegistry()

producer_requests_total = Counter(
    "tonetrace_producer_requests_total",
    "Producer invocations by producer and status",
    ["producer", "status"],
    registry=_REGISTRY,
)

producer_latency_seconds = Histogram(
    "tonetrace_producer_latency_seconds",
    "Producer wall-clock latency in seconds",
    ["producer"],
    buckets=[0.005, 0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0],
    registry=_REGISTRY,
)

notes_emitted_total = Counter(
    "tonetrace_notes_emitted_total",
    "NoteEvents emitted by producer",
    ["producer"],
    registry=_REGISTRY,
)

cache_hits_total = Counter(
    "tonetrace_cache_hits_total",
    "Response cache hits (Redis)",
    registry=_REGISTRY,
)

cache_misses_total = Counter(
    "tonetrace_cache_misses_total",
    "Response cache misses (Redis)",
    registry=_REGISTRY,
)

segment_cache_hits_total = Counter(
    "tonetrace_segment_cache_hits_total",
    "Segment note cache hits (in-memory)",
    registry=_REGISTRY,
)

logger.info("Prometheus metrics registry initialized")


# ---------------------------------------------------------------------------
# Public helpers
# ---------------------------------------------------------------------------


def record_producer(
    *,
    producer: str,
    status: str,
    latency_seconds: float,
    notes: int = 0,
) -> None:
    """Record one producer invocation.

    Args:
        producer: "analysis" or "composition".
        status: One of "success", "empty", "error".
        latency_seconds: Wall-clock time of the call in seconds.
        notes: Number of NoteEvents returned.
    """
    producer_requests_total.labels(producer=producer, status=status).inc()
    producer_latency_seconds.labels(producer=producer).observe(latency_seconds)
    if notes:
        notes_emitted_total.labels(producer=producer).inc(notes)


def record_cache_hit() -> None:
    """Increment response cache hit counter."""
    cache_hits_total.inc()


def record_cache_miss() -> None:
    """Increment response cache miss counter."""
    cache_misses_total.inc()


def record_segment_cache_hit() -> None:
    """Increment segment (in-memory) cache hit counter."""
    segment_cache_hits_total.inc()


def get_metrics_response() -> tuple[bytes, str]:
    """Generate Prometheus text exposition format.

    Returns:
        Tuple of (body_bytes, content_type_string).
    """
    return generate_latest(_REGISTRY), CONTENT_TYPE_LATEST


class LatencyTimer:
    """Context manager for measuring latency.

    Usage::

        with LatencyTimer() as t:
            notes = compose_notes(seed, 0.0, 30.0)
        record_producer(producer="composition", status="success",
                        latency_seconds=t.elapsed)
    """

    def __init__(self) -> None:
        """Initialize timer."""
        self._start: float = 0.0
        self.elapsed: float = 0.0

    def __enter__(self) -> LatencyTimer:
        """Start timing."""
        self._start = time.perf_counter()
        return self

    def __exit__(self, *_: object) -> None:
        """Stop timing and record elapsed."""
        self.elapsed = time.perf_counter() - self._start
