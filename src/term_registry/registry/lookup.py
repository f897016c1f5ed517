"""Read-only lookup facades over finished collections.

Every facade implements :class:`TermLookup`; which one is built depends on the
schema of the backing collection (its :class:`SourceKind`). A facade is an
ordinary value: construct it once and hand it to whatever needs lookups.
"""
from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass
from types import MappingProxyType
from typing import (
    Any,
    ClassVar,
    Dict,
    Iterable,
    Iterator,
    Mapping,
    Optional,
    Protocol,
    Sequence,
    Tuple,
    runtime_checkable,
)

from term_registry.common.errors import LookupMiss
from term_registry.common.types import LOCALES, SourceKind
from term_registry.pipeline.merge import normalize_record
from term_registry.pipeline.models import LocaleText, SpellingRecord, UnifiedRecord, parse_spelling

logger = logging.getLogger(__name__)

MAX_TRACKED_MISSES = 1000


@runtime_checkable
class TermLookup(Protocol):
    """The four read accessors exposed to the rendering UI."""

    kind: SourceKind

    def get_gloss(self, term_id: str, locale: str = "en") -> str:
        ...

    def get_definition(self, term_id: str, locale: str = "en") -> str:
        ...

    def get_transliteration(self, term_id: str, locale: str = "en") -> str:
        ...

    def get_refs(self, term_id: str, locale: str = "en") -> Tuple[str, ...]:
        ...


@dataclass(frozen=True)
class TermEntry:
    gloss: Mapping[str, str]
    definition: Mapping[str, str]
    transliteration: str = ""
    refs: Tuple[str, ...] = ()

    @classmethod
    def build(
        cls,
        gloss: LocaleText,
        definition: LocaleText,
        transliteration: str = "",
        refs: Iterable[str] = (),
    ) -> "TermEntry":
        return cls(
            gloss=MappingProxyType({locale: gloss.get(locale) for locale in LOCALES}),
            definition=MappingProxyType({locale: definition.get(locale) for locale in LOCALES}),
            transliteration=transliteration,
            refs=tuple(refs),
        )


class IndexedTermLookup:
    """Immutable term-id index with miss accounting.

    Misses never raise: text accessors return ``""`` and :meth:`get_refs`
    returns an empty tuple. Each miss is logged at debug level and counted;
    per-miss detail is kept for at most ``max_tracked_misses`` distinct misses.
    """

    kind: ClassVar[SourceKind]

    def __init__(self, entries: Mapping[str, TermEntry], *, max_tracked_misses: int = MAX_TRACKED_MISSES):
        self._entries: Mapping[str, TermEntry] = MappingProxyType(dict(entries))
        self._misses: Counter[LookupMiss] = Counter()
        self._max_tracked_misses = max_tracked_misses
        self._miss_count = 0

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, term_id: object) -> bool:
        return term_id in self._entries

    def __iter__(self) -> Iterator[str]:
        return iter(self._entries)

    @property
    def misses(self) -> Dict[LookupMiss, int]:
        return dict(self._misses)

    @property
    def miss_count(self) -> int:
        """All misses, including those past the per-miss tracking limit."""

        return self._miss_count

    def _entry(self, term_id: str, accessor: str, locale: str) -> Optional[TermEntry]:
        entry = self._entries.get(term_id)
        if entry is None:
            miss = LookupMiss(term_id=term_id, accessor=accessor, locale=locale)
            self._miss_count += 1
            if miss in self._misses or len(self._misses) < self._max_tracked_misses:
                self._misses[miss] += 1
            logger.debug(f"TermId {term_id!r} not found in {self.kind.value} registry ({accessor})")
        return entry

    def get_gloss(self, term_id: str, locale: str = "en") -> str:
        entry = self._entry(term_id, "get_gloss", locale)
        return entry.gloss.get(locale, "") if entry else ""

    def get_definition(self, term_id: str, locale: str = "en") -> str:
        entry = self._entry(term_id, "get_definition", locale)
        return entry.definition.get(locale, "") if entry else ""

    def get_transliteration(self, term_id: str, locale: str = "en") -> str:
        entry = self._entry(term_id, "get_transliteration", locale)
        return entry.transliteration if entry else ""

    def get_refs(self, term_id: str, locale: str = "en") -> Tuple[str, ...]:
        entry = self._entry(term_id, "get_refs", locale)
        return entry.refs if entry else ()


class UnifiedRecordRegistry(IndexedTermLookup):
    """Lookups over a canonical collection.

    Indexed by each variant's ``termId``, then by ``altTermIds`` and finally by
    the record key; the first claim on an id wins. Alias and record-key lookups
    answer with the record's first (lowest-ref) variant.
    """

    kind = SourceKind.UNIFIED

    @classmethod
    def from_records(cls, records: Mapping[str, UnifiedRecord]) -> "UnifiedRecordRegistry":
        by_variant: Dict[str, TermEntry] = {}
        by_alias: Dict[str, TermEntry] = {}
        for key, record in records.items():
            for term in record.terms:
                if term.term_id and term.term_id not in by_variant:
                    by_variant[term.term_id] = TermEntry.build(
                        record.gloss, record.context, term.transliteration, term.refs
                    )
            first = record.terms[0] if record.terms else None
            primary = TermEntry.build(
                record.gloss,
                record.context,
                first.transliteration if first else "",
                first.refs if first else (),
            )
            for alias in [*record.alt_term_ids, key]:
                by_alias.setdefault(alias, primary)

        entries = dict(by_alias)
        entries.update(by_variant)
        return cls(entries)

    @classmethod
    def from_collection(
        cls, data: Mapping[str, Mapping[str, Any]], kind: SourceKind = SourceKind.UNIFIED
    ) -> "UnifiedRecordRegistry":
        return cls.from_records({key: normalize_record(kind, key, raw) for key, raw in data.items()})


class TermListRegistry(IndexedTermLookup):
    """Lookups over a flat term list keyed by term id."""

    kind = SourceKind.TERMS

    @classmethod
    def from_collection(cls, data: Mapping[str, Mapping[str, Any]]) -> "TermListRegistry":
        entries: Dict[str, TermEntry] = {}
        for term_id, raw in data.items():
            record = normalize_record(SourceKind.TERMS, term_id, raw)
            term = record.find_term(raw.get("termId") or term_id) or (record.terms[0] if record.terms else None)
            entries[term_id] = TermEntry.build(
                record.gloss,
                record.context,
                term.transliteration if term else "",
                term.refs if term else (),
            )
        return cls(entries)


class SpellingRegistry(IndexedTermLookup):
    """Lookups over spelling records; gloss and definition exist in English only."""

    kind = SourceKind.SPELLINGS

    @classmethod
    def from_records(cls, records: Iterable[SpellingRecord]) -> "SpellingRegistry":
        entries: Dict[str, TermEntry] = {}
        for record in records:
            if not record.id or record.id in entries:
                continue
            entries[record.id] = TermEntry.build(
                LocaleText(en=record.gloss),
                LocaleText(en=record.definition),
                record.transliteration,
                record.references,
            )
        return cls(entries)


def build_registry(
    kind: SourceKind,
    data: Mapping[str, Any] | Sequence[Mapping[str, Any]],
    *,
    project_codes: Optional[Sequence[str]] = None,
) -> IndexedTermLookup:
    """Construct the lookup facade matching the schema of ``data``."""

    if kind is SourceKind.SPELLINGS:
        items = data.values() if isinstance(data, Mapping) else data
        codes = list(project_codes) if project_codes else None
        return SpellingRegistry.from_records(parse_spelling(dict(item), codes) for item in items)
    if not isinstance(data, Mapping):
        raise ValueError(f"{kind.value} collections must be JSON objects")
    if kind is SourceKind.TERMS:
        return TermListRegistry.from_collection(data)
    return UnifiedRecordRegistry.from_collection(data, kind)


__all__ = [
    "IndexedTermLookup",
    "SpellingRegistry",
    "TermEntry",
    "TermListRegistry",
    "TermLookup",
    "UnifiedRecordRegistry",
    "build_registry",
]
