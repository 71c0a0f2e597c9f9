"""
core/composition/seed_stream.py — Reproducible pseudo-random stream.

A 32-bit integer cursor mixed with the mulberry32 finalizer. Each draw is a
pure function of the cursor; the caller receives the value AND the next
state, so no generator object carries hidden mutable state between calls.

    value, state = state.next()

Bit-exactness matters: the same identifier must yield the same composition in
every implementation that consumes these streams, so all arithmetic wraps at
32 bits exactly like the reference mixer:

    t = cursor + 0x6D2B79F5
    t = (t ^ (t >>> 15)) * (t | 1)
    t = t ^ (t + ((t ^ (t >>> 7)) * (t | 61)))
    value = (t ^ (t >>> 14)) / 2^32

The cursor then advances by exactly 1 (not re-derived from the output).
"""

from __future__ import annotations

from dataclasses import dataclass

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

MASK32: int = 0xFFFFFFFF
_INCREMENT: int = 0x6D2B79F5
_TWO_POW_32: float = 4294967296.0


def _mix(cursor: int) -> float:
    """mulberry32 finalizer: 32-bit cursor → float in [0, 1)."""
    t = (cursor + _INCREMENT) & MASK32
    t = ((t ^ (t >> 15)) * (t | 1)) & MASK32
    t = (t ^ ((t + (((t ^ (t >> 7)) * (t | 61)) & MASK32)) & MASK32)) & MASK32
    return ((t ^ (t >> 14)) & MASK32) / _TWO_POW_32


def text_seed(text: str) -> int:
    """Initial cursor for a text identifier.

    Sum of the UTF-16 code units of ``text``, wrapped to 32 bits. The empty
    string seeds 0.

    Examples:
        >>> text_seed("test")
        448
        >>> text_seed("")
        0
    """
    units = text.encode("utf-16-le", errors="surrogatepass")
    total = sum(int.from_bytes(units[i : i + 2], "little") for i in range(0, len(units), 2))
    return total & MASK32


@dataclass(frozen=True)
class SeedState:
    """Immutable cursor of the pseudo-random stream."""

    cursor: int = 0

    def __post_init__(self) -> None:
        if not (0 <= self.cursor <= MASK32):
            # Normalize out-of-range cursors instead of rejecting them.
            object.__setattr__(self, "cursor", self.cursor & MASK32)

    @classmethod
    def from_text(cls, text: str) -> SeedState:
        """Seed a stream from an opaque identifier (e.g. a video id)."""
        return cls(text_seed(text))

    def next(self) -> tuple[float, SeedState]:
        """Draw one value in [0, 1) and return it with the advanced state."""
        return _mix(self.cursor), SeedState((self.cursor + 1) & MASK32)

    def skip(self, draws: int) -> SeedState:
        """State after ``draws`` draws, without computing the values."""
        return SeedState((self.cursor + draws) & MASK32)


def draw_many(state: SeedState, count: int) -> tuple[list[float], SeedState]:
    """Draw ``count`` consecutive values. Returns (values, next state)."""
    values: list[float] = []
    for _ in range(count):
        value, state = state.next()
        values.append(value)
    return values, state
