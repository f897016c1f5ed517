"""Runtime lookup facades over finished collections."""

from __future__ import annotations

from .lookup import (
    SpellingRegistry,
    TermListRegistry,
    TermLookup,
    UnifiedRecordRegistry,
    build_registry,
)

__all__ = [
    "SpellingRegistry",
    "TermListRegistry",
    "TermLookup",
    "UnifiedRecordRegistry",
    "build_registry",
]
