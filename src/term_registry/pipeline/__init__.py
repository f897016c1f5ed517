"""Key, shape and ordering passes that build the canonical collection."""

from __future__ import annotations

from .keys import canonicalize, to_template
from .merge import ChangeReport, MergeResult, merge_sources
from .models import LocaleText, SpellingRecord, TermVariant, UnifiedRecord
from .refs import sort_collection, sort_term_refs
from .validate import ValidationReport, validate_collections

__all__ = [
    "ChangeReport",
    "LocaleText",
    "MergeResult",
    "SpellingRecord",
    "TermVariant",
    "UnifiedRecord",
    "ValidationReport",
    "canonicalize",
    "merge_sources",
    "sort_collection",
    "sort_term_refs",
    "to_template",
    "validate_collections",
]
