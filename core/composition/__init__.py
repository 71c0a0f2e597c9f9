"""
core/composition/ — Deterministic seeded composition engine.

Exports:
    Stream:     SeedState, text_seed
    Theory:     SCALE_INTERVALS, PROGRESSIONS, degree_to_midi
    Generator:  compose_notes, compose_bar, derive_context, GeneratorContext
"""

from core.composition.generator import (
    GeneratorContext,
    compose_bar,
    compose_notes,
    derive_context,
)
from core.composition.seed_stream import SeedState, text_seed
from core.composition.theory import PROGRESSIONS, SCALE_INTERVALS, degree_to_midi

__all__ = [
    # Stream
    "SeedState",
    "text_seed",
    # Theory
    "SCALE_INTERVALS",
    "PROGRESSIONS",
    "degree_to_midi",
    # Generator
    "GeneratorContext",
    "compose_bar",
    "compose_notes",
    "derive_context",
]
