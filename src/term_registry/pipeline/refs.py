"""Deterministic ordering of scripture references inside unified records.

References are expected in a zero-padded, lexicographically sortable form such
as ``"066027027"``; this module orders them but never rewrites their text.
"""
from __future__ import annotations

import logging
from typing import List, Mapping, Tuple

from .models import TermVariant, UnifiedRecord

logger = logging.getLogger(__name__)


def _variant_sort_key(term: TermVariant) -> Tuple[int, str]:
    # Variants without refs always sort last; equal keys keep their input order.
    if not term.refs:
        return (1, "")
    return (0, term.refs[0])


def sort_term_refs(record: UnifiedRecord) -> UnifiedRecord:
    """Sort refs within each variant, then variants by their lowest ref.

    Mutates and returns ``record``. Applying it twice is the same as once.
    """

    for term in record.terms:
        term.refs.sort()
    record.terms.sort(key=_variant_sort_key)
    return record


def sort_collection(records: Mapping[str, UnifiedRecord]) -> List[str]:
    """Sort every record in place; return the keys whose terms were reordered."""

    reordered: List[str] = []
    for key, record in records.items():
        before = [t.model_dump() for t in record.terms]
        sort_term_refs(record)
        if before != [t.model_dump() for t in record.terms]:
            reordered.append(key)
    logger.info(
        "Sorted term references",
        extra={"records": len(records), "reordered": len(reordered)},
    )
    return reordered


__all__ = ["sort_collection", "sort_term_refs"]
