import pathlib
import sys

import pytest
from pydantic import ValidationError

PROJECT_ROOT = pathlib.Path(__file__).resolve().parents[2]
SRC_ROOT = PROJECT_ROOT / "src"
if str(SRC_ROOT) not in sys.path:
    sys.path.insert(0, str(SRC_ROOT))

from term_registry.pipeline.models import (  # noqa: E402
    LocaleText,
    UnifiedRecord,
    parse_spelling,
)


def test_locale_text_coercions():
    assert LocaleText.model_validate(None).is_empty()
    assert LocaleText.model_validate("Sea").en == "Sea"
    text = LocaleText.model_validate({"en": "Sea", "es": None, "de": "Meer"})
    assert text.es == ""
    assert text.get("de") == ""


def test_overlay_skips_empty_values():
    base = LocaleText(en="Sea", fr="Mer")
    base.overlay(LocaleText(en="", fr="La mer", ne="समुद्र"))

    assert base.model_dump() == {"en": "Sea", "es": "", "fr": "La mer", "ne": "समुद्र"}


def test_unified_record_normalizes_alt_ids_and_refs():
    record = UnifiedRecord.model_validate(
        {
            "altTermIds": "abc",
            "terms": [{"termId": " T1 ", "transliteration": None, "refs": "001 002"}],
        }
    )

    assert record.alt_term_ids == ["abc"]
    assert record.terms[0].term_id == "T1"
    assert record.terms[0].refs == ["001", "002"]
    assert record.is_thin() is False


def test_unified_record_rejects_bad_refs():
    with pytest.raises(ValidationError):
        UnifiedRecord.model_validate({"terms": [{"termId": "x", "refs": 12}]})


def test_to_json_omits_unset_optional_scalars():
    payload = UnifiedRecord.model_validate({"gloss": "Sea"}).to_json()

    assert "lblTemplate" not in payload
    assert "mapxKey" not in payload
    assert payload["altTermIds"] == []


def test_spelling_record_folds_project_columns_with_defaults():
    record = parse_spelling(
        {"Id": "G1", "spell-N": "Aron", "pc-N": "3", "pc-E": "", "References": "001 002"},
        ["N", "E"],
    )

    assert record.spell == {"N": "Aron", "E": ""}
    assert record.pc == {"N": "3", "E": "0"}
    assert record.references == ["001", "002"]
    assert record.to_json()["pc-E"] == "0"


def test_spelling_record_uses_default_project_codes():
    record = parse_spelling({"Id": "G2"})

    assert list(record.pc) == ["N", "n", "E", "G", "R", "T", "K"]
    assert set(record.pc.values()) == {"0"}
