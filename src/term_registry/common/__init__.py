"""Shared infrastructure for the term registry toolchain."""

from __future__ import annotations

from .errors import FatalInputError, LookupMiss, ValidationWarning
from .types import DEFAULT_PROJECT_CODES, LOCALES, SourceKind

__all__ = [
    "DEFAULT_PROJECT_CODES",
    "FatalInputError",
    "LOCALES",
    "LookupMiss",
    "SourceKind",
    "ValidationWarning",
]
