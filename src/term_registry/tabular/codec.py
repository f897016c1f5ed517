"""Flat tab-separated tables for translator review.

Two table schemas are supported:

* locale table: ``key, en, es, fr, ne``; one row per key of a locale-keyed
  text field (``gloss`` or ``context``) of the canonical collection.
* spelling table: ``Id, Strong, Transliteration, Gloss, Definition, Category,
  Domain, References`` followed by ``spell-<code>`` then ``pc-<code>`` for each
  project code, in the configured code order.

Cells are escaped with a fixed, lossy rule: a tab becomes one space, a newline
becomes the two characters ``\\n`` and a carriage return is dropped. Reading a
table never reverses this, so multi-line text does not survive the trip.
"""
from __future__ import annotations

import logging
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from term_registry.common.errors import FatalInputError, ValidationWarning
from term_registry.common.types import DEFAULT_PROJECT_CODES, LOCALES
from term_registry.pipeline.models import LocaleText, SpellingRecord, UnifiedRecord

logger = logging.getLogger(__name__)

Row = List[str]

LOCALE_HEADER: Tuple[str, ...] = ("key",) + LOCALES
SPELLING_BASE_COLUMNS: Tuple[str, ...] = (
    "Id",
    "Strong",
    "Transliteration",
    "Gloss",
    "Definition",
    "Category",
    "Domain",
    "References",
)
LOCALE_FIELDS = ("gloss", "context")

# Columns whose content is only partly representable in a single cell.
COLUMN_LIMITS: Dict[str, str] = {
    "References": (
        "refs joined by one space; a reference containing whitespace splits "
        "into several on import"
    ),
    "*": "tabs, newlines and carriage returns are escaped and never restored",
}


def escape_cell(value: object) -> str:
    if value is None or value == "":
        return ""
    return str(value).replace("\t", " ").replace("\n", "\\n").replace("\r", "")


def spelling_header(project_codes: Sequence[str] = DEFAULT_PROJECT_CODES) -> Tuple[str, ...]:
    return (
        SPELLING_BASE_COLUMNS
        + tuple(f"spell-{code}" for code in project_codes)
        + tuple(f"pc-{code}" for code in project_codes)
    )


def _check_header(rows: Sequence[Sequence[str]], expected: Sequence[str]) -> None:
    if not rows:
        raise FatalInputError("table is empty; a header row is required")
    header = list(rows[0])
    if header != list(expected):
        raise FatalInputError(
            f"invalid header. Expected: {', '.join(expected)}; got: {', '.join(header)}"
        )


def _check_width(rows: Sequence[Sequence[str]], width: int) -> None:
    for index, row in enumerate(rows[1:], start=2):
        if len(row) != width:
            raise FatalInputError(f"row {index} has {len(row)} columns, header has {width}")


# --- locale table -----------------------------------------------------------


def texts_to_rows(texts: Mapping[str, LocaleText]) -> List[Row]:
    """Header row followed by one escaped row per key."""

    rows: List[Row] = [list(LOCALE_HEADER)]
    for key, text in texts.items():
        rows.append([escape_cell(key)] + [escape_cell(text.get(locale)) for locale in LOCALES])
    return rows


def rows_to_texts(rows: Sequence[Sequence[str]]) -> Dict[str, LocaleText]:
    _check_header(rows, LOCALE_HEADER)
    _check_width(rows, len(LOCALE_HEADER))
    texts: Dict[str, LocaleText] = {}
    for row in rows[1:]:
        key, *values = row
        texts[key] = LocaleText.model_validate(dict(zip(LOCALES, values)))
    return texts


def export_locale_table(records: Mapping[str, UnifiedRecord], field: str = "gloss") -> List[Row]:
    if field not in LOCALE_FIELDS:
        raise ValueError(f"Unsupported field {field!r}; expected one of {', '.join(LOCALE_FIELDS)}")
    return texts_to_rows({key: getattr(record, field) for key, record in records.items()})


def apply_locale_table(
    records: Mapping[str, UnifiedRecord],
    rows: Sequence[Sequence[str]],
    field: str = "gloss",
) -> Tuple[Dict[str, UnifiedRecord], List[str], List[ValidationWarning]]:
    """Return copies of ``records`` with ``field`` replaced from the table rows.

    A row replaces the whole locale object for its key; keys not present in the
    collection are reported as warnings.
    """

    if field not in LOCALE_FIELDS:
        raise ValueError(f"Unsupported field {field!r}; expected one of {', '.join(LOCALE_FIELDS)}")
    texts = rows_to_texts(rows)
    updated_records = {key: record.model_copy(deep=True) for key, record in records.items()}
    updated: List[str] = []
    warnings: List[ValidationWarning] = []
    for key, text in texts.items():
        record = updated_records.get(key)
        if record is None:
            warnings.append(ValidationWarning(key, "not found in collection", f"import-{field}"))
            continue
        setattr(record, field, text)
        updated.append(key)
    return updated_records, updated, warnings


# --- spelling table ---------------------------------------------------------


def spellings_to_rows(
    records: Iterable[SpellingRecord],
    project_codes: Sequence[str] = DEFAULT_PROJECT_CODES,
) -> List[Row]:
    rows: List[Row] = [list(spelling_header(project_codes))]
    for record in records:
        base = [
            record.id,
            record.strong,
            record.transliteration,
            record.gloss,
            record.definition,
            record.category,
            record.domain,
            " ".join(record.references),
        ]
        spell = [record.spell.get(code, "") for code in project_codes]
        pc = [record.pc.get(code) or "0" for code in project_codes]
        rows.append([escape_cell(value) for value in base + spell + pc])
    return rows


def rows_to_spellings(
    rows: Sequence[Sequence[str]],
    project_codes: Sequence[str] = DEFAULT_PROJECT_CODES,
) -> List[SpellingRecord]:
    header = spelling_header(project_codes)
    _check_header(rows, header)
    _check_width(rows, len(header))
    context = {"project_codes": list(project_codes)}
    return [
        SpellingRecord.model_validate(dict(zip(header, row)), context=context)
        for row in rows[1:]
    ]


# --- TSV text ---------------------------------------------------------------


def format_tsv(rows: Sequence[Sequence[str]]) -> str:
    """Join rows into TSV text; every row must have the header's width."""

    if not rows:
        return ""
    width = len(rows[0])
    for index, row in enumerate(rows[1:], start=2):
        if len(row) != width:
            raise ValueError(f"row {index} has {len(row)} columns, header has {width}")
    return "\n".join("\t".join(row) for row in rows) + "\n"


def parse_tsv(
    text: str, expected_header: Optional[Sequence[str]] = None
) -> Tuple[List[Row], List[ValidationWarning]]:
    """Split TSV text into rows normalized to the header width.

    Blank lines are skipped. Short rows are dropped with a warning; surplus
    cells are folded into the last column with a single space.
    """

    lines = [line.rstrip("\r") for line in text.split("\n")]
    lines = [line for line in lines if line.strip()]
    if not lines:
        raise FatalInputError("table is empty; a header row is required")

    header = lines[0].split("\t")
    if expected_header is not None and header != list(expected_header):
        raise FatalInputError(
            f"invalid header. Expected: {', '.join(expected_header)}; got: {', '.join(header)}"
        )

    width = len(header)
    rows: List[Row] = [header]
    warnings: List[ValidationWarning] = []
    for line_no, line in enumerate(lines[1:], start=2):
        cells = line.split("\t")
        if len(cells) < width:
            warnings.append(
                ValidationWarning(
                    cells[0], f"row {line_no} has {len(cells)} columns, expected {width}; skipped", "tsv"
                )
            )
            continue
        if len(cells) > width:
            cells = cells[: width - 1] + [" ".join(cells[width - 1:])]
        rows.append(cells)

    if warnings:
        logger.warning("Skipped malformed TSV rows", extra={"skipped": len(warnings)})
    return rows, warnings


def parse_tsv_records(text: str) -> Tuple[List[Dict[str, str]], List[ValidationWarning]]:
    """Rows of a headed TSV as dicts keyed by column name."""

    rows, warnings = parse_tsv(text)
    header = [column.strip() for column in rows[0]]
    return [dict(zip(header, row)) for row in rows[1:]], warnings


__all__ = [
    "COLUMN_LIMITS",
    "LOCALE_HEADER",
    "SPELLING_BASE_COLUMNS",
    "apply_locale_table",
    "escape_cell",
    "export_locale_table",
    "format_tsv",
    "parse_tsv",
    "parse_tsv_records",
    "rows_to_spellings",
    "rows_to_texts",
    "spelling_header",
    "spellings_to_rows",
    "texts_to_rows",
]
