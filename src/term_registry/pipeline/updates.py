"""Targeted edits to a published collection, driven by reviewer spreadsheets.

All functions return new collections; their inputs are left untouched so the
published file stays the source of truth until the operator promotes the result.
"""
from __future__ import annotations

import copy
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from term_registry.common.errors import ValidationWarning
from term_registry.common.types import LOCALES

from .keys import unwrap_template
from .models import UnifiedRecord

logger = logging.getLogger(__name__)

Collection = Dict[str, Dict[str, Any]]


@dataclass(frozen=True)
class LabelChange:
    """One reviewer decision: retire ``old_place_name`` in favour of a new template."""

    new_label_template: str
    old_place_name: str
    english_context: str = ""
    english_gloss: str = ""

    @classmethod
    def from_row(cls, row: Mapping[str, str]) -> "LabelChange":
        return cls(
            new_label_template=(row.get("newLabelTemplate") or "").strip(),
            old_place_name=(row.get("oldPlaceName") or "").strip(),
            english_context=row.get("englishContext") or "",
            english_gloss=row.get("englishGloss") or "",
        )


def apply_context_updates(
    records: Mapping[str, Mapping[str, Any]],
    updates: Mapping[str, str],
    *,
    locale: str = "en",
) -> Tuple[Collection, List[str], List[ValidationWarning]]:
    """Replace one locale of ``context`` for each listed key.

    Returns ``(new_records, updated_keys, warnings)``; keys absent from the
    collection are reported, not raised.
    """

    if locale not in LOCALES:
        raise ValueError(f"Unsupported locale {locale!r}; expected one of {', '.join(LOCALES)}")

    result: Collection = copy.deepcopy(dict(records))
    updated: List[str] = []
    warnings: List[ValidationWarning] = []
    for key, new_context in updates.items():
        record = result.get(key)
        if record is None:
            warnings.append(ValidationWarning(key, "not found in collection", "context-update"))
            continue
        context = record.get("context")
        if not isinstance(context, dict):
            context = {"en": context} if isinstance(context, str) and context else {}
            record["context"] = context
        context[locale] = new_context
        updated.append(key)

    logger.info(
        "Applied context updates",
        extra={"updated": len(updated), "not_found": len(warnings)},
    )
    return result, updated, warnings


def _find_by_template(mergekeys: Mapping[str, Mapping[str, Any]], template: str) -> Optional[str]:
    for key, value in mergekeys.items():
        if value.get("lblTemplate") == template:
            return key
    return None


def apply_label_changes(
    placenames: Mapping[str, Mapping[str, Any]],
    mergekeys: Mapping[str, Mapping[str, Any]],
    changes: Sequence[LabelChange],
) -> Tuple[Collection, Collection, List[str], List[ValidationWarning]]:
    """Move gloss/context of retired place names onto their merge-key entries.

    For each change, the merge key whose ``lblTemplate`` is ``{oldPlaceName}``
    receives the new template plus the place name's gloss and context, and the
    place name is removed. When the English context differs from the stored
    one, the other locales of the context are cleared for re-translation.
    A change is applied entirely or not at all.
    """

    new_places: Collection = copy.deepcopy(dict(placenames))
    new_mergekeys: Collection = copy.deepcopy(dict(mergekeys))
    processed: List[str] = []
    warnings: List[ValidationWarning] = []

    for change in changes:
        old_name = unwrap_template(change.old_place_name)
        place = new_places.get(old_name)
        if place is None:
            warnings.append(ValidationWarning(old_name, "not found in placenames", "label-change"))
            continue

        template = "{" + old_name + "}"
        merge_key = _find_by_template(new_mergekeys, template)
        if merge_key is None:
            warnings.append(
                ValidationWarning(old_name, f"no mergekey has lblTemplate {template}", "label-change")
            )
            continue

        saved = UnifiedRecord.model_validate(place)
        del new_places[old_name]

        entry = new_mergekeys[merge_key]
        entry["lblTemplate"] = change.new_label_template
        entry["gloss"] = saved.gloss.model_dump()
        if saved.context.en != change.english_context:
            entry["context"] = {locale: "" for locale in LOCALES}
            entry["context"]["en"] = change.english_context
        else:
            entry["context"] = saved.context.model_dump()
        alt_ids = UnifiedRecord.model_validate({"altTermIds": entry.get("altTermIds")}).alt_term_ids
        if merge_key not in alt_ids:
            alt_ids.append(merge_key)
        entry["altTermIds"] = alt_ids
        processed.append(merge_key)

    logger.info(
        "Applied label changes",
        extra={"changes": len(changes), "processed": len(processed), "warnings": len(warnings)},
    )
    return new_places, new_mergekeys, processed, warnings


def records_without_refs(records: Mapping[str, Mapping[str, Any]]) -> List[Tuple[str, str, str]]:
    """``(key, english gloss, english context)`` for records with a ref-less variant."""

    rows: List[Tuple[str, str, str]] = []
    for key, raw in records.items():
        record = UnifiedRecord.model_validate(raw)
        if any(not term.refs for term in record.terms):
            rows.append((key, record.gloss.en, record.context.en))
    return rows


__all__ = [
    "LabelChange",
    "apply_context_updates",
    "apply_label_changes",
    "records_without_refs",
]
