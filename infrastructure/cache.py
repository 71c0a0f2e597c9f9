"""Redis-backed response cache for tonetrace.

Two cache tiers:
    1. Segment cache (in-memory, ingestion/cache.py) — fast, per-process.
    2. Response cache (Redis) — shared across workers, survives restarts.

Both producers are deterministic, so a response is fully determined by its
request parameters. Response cache key = SHA-256(kind + canonical JSON of the
parameters). Entries are stored as JSON with a TTL.

Usage::

    from infrastructure.cache import ResponseCache

    cache = ResponseCache()
    params = {"seed": "dQw4w9WgXcQ", "start_time": 0.0, "end_time": 30.0}
    hit = cache.get("compose", params)
    if hit:
        return hit
    result = ... # run producer
    cache.set("compose", params, result)
"""

from __future__ import annotations

import hashlib
import json
import logging
import os
from typing import Any

import redis as redis_lib

logger = logging.getLogger(__name__)

# Cache TTL: 24 hours. Producer output for fixed parameters never changes.
_DEFAULT_TTL_SECONDS = 86_400
# Redis key namespace
_NS = "tonetrace:resp:"


def _default_ttl() -> int:
    """TTL from TONETRACE_CACHE_TTL, falling back to 24h on a bad value."""
    raw = os.environ.get("TONETRACE_CACHE_TTL")
    if raw is None:
        return _DEFAULT_TTL_SECONDS
    try:
        ttl = int(raw)
    except ValueError:
        logger.warning("Ignoring non-integer TONETRACE_CACHE_TTL=%r", raw)
        return _DEFAULT_TTL_SECONDS
    return ttl if ttl > 0 else _DEFAULT_TTL_SECONDS


def _make_key(kind: str, params: dict[str, Any]) -> str:
    """Deterministic cache key from request parameters.

    Args:
        kind: Request kind, e.g. "detect" or "compose".
        params: JSON-serializable request parameters.

    Returns:
        Namespaced Redis key string.
    """
    raw = f"{kind}|{json.dumps(params, sort_keys=True, separators=(',', ':'))}"
    digest = hashlib.sha256(raw.encode()).hexdigest()
    return f"{_NS}{digest}"


class ResponseCache:
    """Redis-backed cache for /notes responses.

    Falls back gracefully to a no-op if Redis is unavailable — the API
    continues working, just without caching.

    Args:
        redis_url: Redis connection URL (default: from REDIS_URL env var or
            ``redis://localhost:6379/0``).
        ttl_seconds: Cache TTL in seconds (default: TONETRACE_CACHE_TTL or 86400).
        client: Pre-built Redis client (tests inject a MagicMock here).
    """

    def __init__(
        self,
        redis_url: str | None = None,
        ttl_seconds: int | None = None,
        *,
        client: Any = None,
    ) -> None:
        """Initialize Redis connection (fails gracefully)."""
        self._ttl = ttl_seconds if ttl_seconds is not None else _default_ttl()
        self._client: Any = client
        if client is not None:
            return
        url = redis_url or os.environ.get("REDIS_URL", "redis://localhost:6379/0")
        try:
            self._client = redis_lib.from_url(url, decode_responses=True, socket_timeout=0.5)
            self._client.ping()
            logger.info("ResponseCache: connected to Redis at %s", url)
        except Exception as exc:  # noqa: BLE001
            logger.warning("ResponseCache: Redis unavailable (%s) — caching disabled", exc)
            self._client = None

    @property
    def available(self) -> bool:
        """True if Redis is reachable."""
        return self._client is not None

    def get(self, kind: str, params: dict[str, Any]) -> dict[str, Any] | None:
        """Return cached response dict or None on miss / error.

        Args:
            kind: Request kind.
            params: Request parameters.

        Returns:
            Cached response dict if found and valid, None otherwise.
        """
        if not self._client:
            return None
        key = _make_key(kind, params)
        try:
            raw = self._client.get(key)
            if raw is None:
                return None
            data: dict[str, Any] = json.loads(raw)
            logger.debug("ResponseCache HIT: %s %s", kind, key[-12:])
            return data
        except Exception as exc:  # noqa: BLE001
            logger.warning("ResponseCache.get error: %s", exc)
            return None

    def set(self, kind: str, params: dict[str, Any], response: dict[str, Any]) -> None:
        """Store a response in the cache.

        Args:
            kind: Request kind.
            params: Request parameters.
            response: Full response dict to cache.
        """
        if not self._client:
            return
        key = _make_key(kind, params)
        try:
            self._client.setex(key, self._ttl, json.dumps(response))
            logger.debug("ResponseCache SET: %s %s", kind, key[-12:])
        except Exception as exc:  # noqa: BLE001
            logger.warning("ResponseCache.set error: %s", exc)

    def flush(self) -> int:
        """Delete all response cache entries (not the segment cache).

        Returns:
            Number of keys deleted.
        """
        if not self._client:
            return 0
        try:
            keys = list(self._client.scan_iter(f"{_NS}*"))
            if not keys:
                return 0
            deleted = self._client.delete(*keys)
            logger.info("ResponseCache: flushed %d keys", deleted)
            return int(deleted)
        except Exception as exc:  # noqa: BLE001
            logger.warning("ResponseCache.flush error: %s", exc)
            return 0

    def stats(self) -> dict[str, Any]:
        """Return basic cache statistics.

        Returns:
            Dict with keys: available, response_keys, ttl_seconds.
        """
        if not self._client:
            return {"available": False, "response_keys": 0, "ttl_seconds": self._ttl}
        try:
            resp_keys = sum(1 for _ in self._client.scan_iter(f"{_NS}*"))
            return {"available": True, "response_keys": resp_keys, "ttl_seconds": self._ttl}
        except Exception as exc:  # noqa: BLE001
            logger.warning("ResponseCache.stats error: %s", exc)
            return {"available": False, "response_keys": 0, "ttl_seconds": self._ttl}
