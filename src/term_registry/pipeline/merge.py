"""Fold heterogeneous source collections into one canonical collection.

Each source kind has its own record shape (see ``common.types``). Records are
normalized into :class:`UnifiedRecord`, grouped by canonical key and merged in
ascending priority order so that higher-priority sources win, but only with
non-empty values.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from pydantic import ValidationError
from tqdm import tqdm

from term_registry.common.errors import FatalInputError, ValidationWarning
from term_registry.common.io import ensure_collection, load_collection, load_json
from term_registry.common.types import SourceKind

from .keys import canonicalize, to_template
from .models import UnifiedRecord, parse_spelling
from .refs import sort_collection

logger = logging.getLogger(__name__)

THIN_MESSAGE = "no gloss, context, transliteration or refs"


@dataclass
class ChangeReport:
    """Keys whose merged value differs from the previously published collection."""

    added: List[str] = field(default_factory=list)
    changed: List[str] = field(default_factory=list)
    removed: List[str] = field(default_factory=list)

    def is_empty(self) -> bool:
        return not (self.added or self.changed or self.removed)


@dataclass
class MergeResult:
    records: Dict[str, UnifiedRecord]
    thin: List[ValidationWarning] = field(default_factory=list)
    warnings: List[ValidationWarning] = field(default_factory=list)
    reordered: List[str] = field(default_factory=list)
    changes: Optional[ChangeReport] = None

    def to_json(self) -> Dict[str, Any]:
        return {key: record.to_json() for key, record in self.records.items()}


@dataclass
class _Group:
    raw_key: str
    rank: int
    record: UnifiedRecord


def _flat_variant(raw_key: str, raw: Mapping[str, Any], *, key_is_term_id: bool) -> List[Dict[str, Any]]:
    term_id = raw.get("termId") or (raw_key if key_is_term_id else "")
    variant = {
        "termId": term_id,
        "transliteration": raw.get("transliteration"),
        "refs": raw.get("refs"),
    }
    if not (term_id or variant["transliteration"] or variant["refs"]):
        return []
    return [variant]


def normalize_record(
    kind: SourceKind,
    raw_key: str,
    raw: Mapping[str, Any],
    *,
    project_codes: Optional[Sequence[str]] = None,
) -> UnifiedRecord:
    """Convert one raw record of the given source kind into a UnifiedRecord."""

    if kind is SourceKind.UNIFIED or (kind in (SourceKind.PLACENAMES, SourceKind.TERMS) and "terms" in raw):
        return UnifiedRecord.model_validate(dict(raw))

    if kind in (SourceKind.PLACENAMES, SourceKind.TERMS):
        return UnifiedRecord.model_validate(
            {
                "gloss": raw.get("gloss"),
                "context": raw.get("context"),
                "terms": _flat_variant(raw_key, raw, key_is_term_id=kind is SourceKind.TERMS),
                "altTermIds": raw.get("altTermIds"),
            }
        )

    if kind is SourceKind.MERGEKEYS:
        return UnifiedRecord.model_validate(
            {
                "gloss": raw.get("gloss"),
                "context": raw.get("context"),
                "altTermIds": raw.get("altTermIds"),
                "lblTemplate": raw.get("lblTemplate"),
                "mapxKey": raw.get("mapxKey"),
            }
        )

    if kind is SourceKind.SPELLINGS:
        spelling = parse_spelling(dict(raw), list(project_codes) if project_codes else None)
        term_id = spelling.id or raw_key
        return UnifiedRecord.model_validate(
            {
                "gloss": {"en": spelling.gloss},
                "context": {"en": spelling.definition},
                "terms": [
                    {
                        "termId": term_id,
                        "transliteration": spelling.transliteration,
                        "refs": spelling.references,
                    }
                ],
            }
        )

    raise FatalInputError(f"unsupported source kind {kind!r}")


def merge_into(target: UnifiedRecord, incoming: UnifiedRecord) -> None:
    """Additively merge ``incoming`` (higher priority) into ``target``."""

    target.gloss.overlay(incoming.gloss)
    target.context.overlay(incoming.context)
    if incoming.lbl_template:
        target.lbl_template = incoming.lbl_template
    if incoming.mapx_key:
        target.mapx_key = incoming.mapx_key

    for alt in incoming.alt_term_ids:
        if alt not in target.alt_term_ids:
            target.alt_term_ids.append(alt)

    for variant in incoming.terms:
        existing = target.find_term(variant.term_id) if variant.term_id else None
        if existing is None:
            target.terms.append(variant.model_copy(deep=True))
            continue
        if variant.transliteration:
            existing.transliteration = variant.transliteration
        for ref in variant.refs:
            if ref not in existing.refs:
                existing.refs.append(ref)


def diff_against(
    records: Mapping[str, UnifiedRecord], published: Mapping[str, Any]
) -> ChangeReport:
    """Compare merged records with a previously published canonical collection."""

    report = ChangeReport()
    previous: Dict[str, Dict[str, Any]] = {}
    for key, raw in published.items():
        try:
            previous[key] = UnifiedRecord.model_validate(raw).to_json()
        except ValidationError as exc:
            raise FatalInputError(f"published record {key!r} is malformed ({exc})") from exc

    for key, record in records.items():
        if key not in previous:
            report.added.append(key)
        elif record.to_json() != previous[key]:
            report.changed.append(key)
    report.removed = [key for key in previous if key not in records]
    return report


def merge_sources(
    sources: Mapping[SourceKind, Mapping[str, Mapping[str, Any]]],
    *,
    priority: Sequence[SourceKind],
    published: Optional[Mapping[str, Any]] = None,
    project_codes: Optional[Sequence[str]] = None,
    progress: bool = False,
) -> MergeResult:
    """Merge raw collections into a canonical collection keyed by raw key.

    ``priority`` lists source kinds lowest first. The outer key of each merged
    record is the raw key from its highest-priority contributor; ``lblTemplate``
    holds the canonical template unless a source supplied one.
    """

    rank = {kind: index for index, kind in enumerate(priority)}
    unranked = [kind.value for kind in sources if kind not in rank]
    if unranked:
        raise FatalInputError("source kinds missing from priority: " + ", ".join(unranked))

    groups: Dict[str, _Group] = {}
    thin: List[ValidationWarning] = []

    for kind in sorted(sources, key=rank.__getitem__):
        kind_rank = rank[kind]
        collection = sources[kind]
        for raw_key, raw in tqdm(
            collection.items(),
            desc=f"Merging {kind.value}",
            unit="record",
            disable=not progress,
        ):
            try:
                incoming = normalize_record(kind, raw_key, raw, project_codes=project_codes)
            except ValidationError as exc:
                raise FatalInputError(
                    f"{kind.value} record {raw_key!r} does not match its schema ({exc})"
                ) from exc

            if incoming.is_thin():
                thin.append(ValidationWarning(raw_key, THIN_MESSAGE, kind.value))

            canonical = canonicalize(raw_key)
            group = groups.get(canonical)
            if group is None:
                # Seeded empty so duplicate termIds in the first record collapse too.
                group = groups[canonical] = _Group(
                    raw_key=raw_key, rank=kind_rank, record=UnifiedRecord()
                )
            merge_into(group.record, incoming)
            if kind_rank > group.rank:
                group.raw_key = raw_key
                group.rank = kind_rank

    records: Dict[str, UnifiedRecord] = {}
    for group in groups.values():
        if not group.record.lbl_template:
            group.record.lbl_template = to_template(group.raw_key)
        records[group.raw_key] = group.record

    result = MergeResult(records=records, thin=thin)
    result.warnings.extend(thin)
    result.reordered = sort_collection(records)
    if published is not None:
        result.changes = diff_against(records, published)

    logger.info(
        "Merged sources",
        extra={
            "sources": len(sources),
            "records": len(records),
            "thin": len(thin),
        },
    )
    return result


def _key_spellings(
    entries: Iterable[Any], path: Path
) -> Tuple[Dict[str, Dict[str, Any]], List[ValidationWarning]]:
    keyed: Dict[str, Dict[str, Any]] = {}
    warnings: List[ValidationWarning] = []
    for index, entry in enumerate(entries):
        if not isinstance(entry, dict):
            raise FatalInputError(f"spelling entry #{index} is not a JSON object", path=path)
        term_id = str(entry.get("Id") or "").strip()
        if not term_id:
            warnings.append(
                ValidationWarning(f"#{index}", "spelling entry has no Id; skipped", SourceKind.SPELLINGS.value)
            )
            continue
        keyed[term_id] = entry
    return keyed, warnings


def load_source(kind: SourceKind, path: Path) -> Tuple[Dict[str, Dict[str, Any]], List[ValidationWarning]]:
    """Read one configured source file. Missing or malformed files are fatal."""

    if kind is SourceKind.SPELLINGS:
        payload = load_json(path)
        if isinstance(payload, list):
            return _key_spellings(payload, path)
        return ensure_collection(payload, path), []
    return load_collection(path), []


def load_sources(
    configured: Iterable[Tuple[SourceKind, Path]]
) -> Tuple[Dict[SourceKind, Dict[str, Dict[str, Any]]], List[ValidationWarning]]:
    """Read every configured source before any merging starts."""

    sources: Dict[SourceKind, Dict[str, Dict[str, Any]]] = {}
    warnings: List[ValidationWarning] = []
    for kind, path in configured:
        records, source_warnings = load_source(kind, path)
        sources[kind] = records
        warnings.extend(source_warnings)
        logger.info(
            "Loaded source collection",
            extra={"kind": kind.value, "path": str(path), "records": len(records)},
        )
    return sources, warnings


__all__ = [
    "ChangeReport",
    "MergeResult",
    "diff_against",
    "load_source",
    "load_sources",
    "merge_into",
    "merge_sources",
    "normalize_record",
]
