"""
FastAPI dependency providers.

Provides process-wide singletons so the Redis connection and the segment
cache are created once and reused across requests.
"""

from infrastructure.cache import ResponseCache
from ingestion.cache import NoteCache

_response_cache: ResponseCache | None = None


def get_response_cache() -> ResponseCache:
    """Return a cached ResponseCache singleton (Redis-backed).

    Falls back gracefully to a no-op cache if Redis is unavailable.
    """
    global _response_cache  # noqa: PLW0603
    if _response_cache is None:
        _response_cache = ResponseCache()
    return _response_cache


_note_cache: NoteCache | None = None


def get_note_cache() -> NoteCache:
    """Return the shared in-memory segment cache behind POST /notes/segment."""
    global _note_cache  # noqa: PLW0603
    if _note_cache is None:
        _note_cache = NoteCache()
    return _note_cache
