"""Tab-separated export and import of registry data."""

from __future__ import annotations

from .codec import (
    LOCALE_HEADER,
    escape_cell,
    format_tsv,
    parse_tsv,
    rows_to_spellings,
    rows_to_texts,
    spelling_header,
    spellings_to_rows,
    texts_to_rows,
)

__all__ = [
    "LOCALE_HEADER",
    "escape_cell",
    "format_tsv",
    "parse_tsv",
    "rows_to_spellings",
    "rows_to_texts",
    "spelling_header",
    "spellings_to_rows",
    "texts_to_rows",
]
