"""
Shared fixtures for the test suite.

Centralizes reusable signal and API fixtures so individual test files
don't need to repeat synthesis/mock boilerplate.
"""

from unittest.mock import MagicMock, patch

import numpy as np
import pytest
from fastapi.testclient import TestClient

from api.main import app

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

SR: int = 44_100
"""Sample rate used by every synthetic signal."""


# ---------------------------------------------------------------------------
# Signal fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def sr() -> int:
    return SR


@pytest.fixture()
def sine_440() -> np.ndarray:
    """One second of a 440 Hz sine at half amplitude, 44.1 kHz."""
    t = np.arange(SR) / SR
    return 0.5 * np.sin(2 * np.pi * 440.0 * t)


# ---------------------------------------------------------------------------
# FastAPI test client fixture
# ---------------------------------------------------------------------------


@pytest.fixture()
def response_cache() -> MagicMock:
    """Stand-in for the Redis ResponseCache: always misses by default."""
    cache = MagicMock()
    cache.get.return_value = None
    return cache


@pytest.fixture()
def api_client(response_cache: MagicMock):
    """FastAPI ``TestClient`` with the Redis response cache mocked out.

    The cache mock is accessible as ``client._cache_mock``.
    """
    with (
        patch("api.routes.notes.get_response_cache", return_value=response_cache),
        TestClient(app) as c,
    ):
        c._cache_mock = response_cache  # type: ignore[attr-defined]
        yield c
