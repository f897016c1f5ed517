"""Shared type definitions for raw collections and source kinds."""
from __future__ import annotations

from enum import Enum
from typing import Mapping, NotRequired, TypeAlias, TypedDict

LOCALES: tuple[str, ...] = ("en", "es", "fr", "ne")
DEFAULT_PROJECT_CODES: tuple[str, ...] = ("N", "n", "E", "G", "R", "T", "K")


class SourceKind(str, Enum):
    """Shape tag of an upstream collection."""

    PLACENAMES = "placenames"
    TERMS = "terms"
    MERGEKEYS = "mergekeys"
    UNIFIED = "unified"
    SPELLINGS = "spellings"


# Locale objects arrive either as {"en": ..., "es": ...} or as a bare string.
RawLocaleText: TypeAlias = "dict[str, str | None] | str | None"


class RawTermVariant(TypedDict):
    termId: str
    transliteration: NotRequired[str]
    refs: NotRequired[list[str]]


class RawPlacename(TypedDict):
    termId: NotRequired[str]
    transliteration: NotRequired[str]
    refs: NotRequired[list[str]]
    gloss: NotRequired[RawLocaleText]
    context: NotRequired[RawLocaleText]
    altTermIds: NotRequired[list[str] | str]


class RawMergeKey(TypedDict):
    mapxKey: NotRequired[str]
    lblTemplate: NotRequired[str]
    gloss: NotRequired[RawLocaleText]
    context: NotRequired[RawLocaleText]
    altTermIds: NotRequired[list[str] | str]


class RawUnified(TypedDict):
    gloss: NotRequired[RawLocaleText]
    context: NotRequired[RawLocaleText]
    terms: NotRequired[list[RawTermVariant]]
    altTermIds: NotRequired[list[str] | str]
    lblTemplate: NotRequired[str]
    mapxKey: NotRequired[str]


RawRecord: TypeAlias = "RawPlacename | RawMergeKey | RawUnified | dict[str, object]"
RawCollection: TypeAlias = "Mapping[str, RawRecord]"


__all__ = [
    "DEFAULT_PROJECT_CODES",
    "LOCALES",
    "RawCollection",
    "RawLocaleText",
    "RawMergeKey",
    "RawPlacename",
    "RawRecord",
    "RawTermVariant",
    "RawUnified",
    "SourceKind",
]
