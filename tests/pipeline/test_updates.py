import copy
import pathlib
import sys

import pytest

PROJECT_ROOT = pathlib.Path(__file__).resolve().parents[2]
SRC_ROOT = PROJECT_ROOT / "src"
if str(SRC_ROOT) not in sys.path:
    sys.path.insert(0, str(SRC_ROOT))

from term_registry.pipeline.updates import (  # noqa: E402
    LabelChange,
    apply_context_updates,
    apply_label_changes,
    records_without_refs,
)


def _collection():
    return {
        "jericho": {
            "gloss": {"en": "Jericho", "fr": "Jéricho"},
            "context": {"en": "city", "es": "ciudad"},
            "terms": [{"termId": "J1", "transliteration": "Yeriho", "refs": ["006002001"]}],
        },
        "gilgal": {
            "gloss": {"en": "Gilgal"},
            "context": "camp",
            "terms": [{"termId": "G1", "transliteration": "", "refs": []}],
        },
    }


def test_context_update_replaces_locale_and_leaves_input_untouched():
    records = _collection()
    snapshot = copy.deepcopy(records)

    updated, keys, warnings = apply_context_updates(
        records, {"jericho": "walled city", "missing": "x"}
    )

    assert records == snapshot
    assert keys == ["jericho"]
    assert updated["jericho"]["context"] == {"en": "walled city", "es": "ciudad"}
    assert [w.key for w in warnings] == ["missing"]


def test_context_update_promotes_flat_context():
    updated, keys, _ = apply_context_updates(_collection(), {"gilgal": "lieu"}, locale="fr")

    assert keys == ["gilgal"]
    assert updated["gilgal"]["context"] == {"en": "camp", "fr": "lieu"}


def test_context_update_rejects_unknown_locale():
    with pytest.raises(ValueError):
        apply_context_updates(_collection(), {"jericho": "x"}, locale="de")


def test_label_change_moves_gloss_and_resets_context():
    placenames = {
        "Bethany": {
            "gloss": {"en": "Bethany", "es": "Betania"},
            "context": {"en": "village", "es": "aldea", "fr": "village"},
        }
    }
    mergekeys = {"bethany_mk": {"lblTemplate": "{Bethany}", "altTermIds": ["B9"]}}
    change = LabelChange.from_row(
        {"newLabelTemplate": "{Bethany1}", "oldPlaceName": "{Bethany}", "englishContext": "village near Jerusalem"}
    )

    places, merged, processed, warnings = apply_label_changes(placenames, mergekeys, [change])

    assert warnings == []
    assert processed == ["bethany_mk"]
    assert "Bethany" not in places
    assert "Bethany" in placenames
    entry = merged["bethany_mk"]
    assert entry["lblTemplate"] == "{Bethany1}"
    assert entry["gloss"]["es"] == "Betania"
    assert entry["context"] == {"en": "village near Jerusalem", "es": "", "fr": "", "ne": ""}
    assert entry["altTermIds"] == ["B9", "bethany_mk"]


def test_label_change_keeps_context_when_english_matches():
    placenames = {"Nain": {"gloss": "Nain", "context": {"en": "town", "fr": "ville"}}}
    mergekeys = {"nain": {"lblTemplate": "{Nain}"}}
    change = LabelChange(new_label_template="{Nain}", old_place_name="Nain", english_context="town")

    _, merged, _, _ = apply_label_changes(placenames, mergekeys, [change])

    assert merged["nain"]["context"]["fr"] == "ville"


def test_label_change_without_mergekey_leaves_place_in_place():
    placenames = {"Emmaus": {"gloss": "Emmaus"}}

    places, merged, processed, warnings = apply_label_changes(
        placenames, {}, [LabelChange(new_label_template="{E}", old_place_name="Emmaus")]
    )

    assert "Emmaus" in places
    assert merged == {}
    assert processed == []
    assert len(warnings) == 1


def test_label_change_for_unknown_place_warns():
    _, _, processed, warnings = apply_label_changes(
        {}, {"x": {"lblTemplate": "{Zoar}"}}, [LabelChange(new_label_template="{Z}", old_place_name="Zoar")]
    )

    assert processed == []
    assert warnings[0].key == "Zoar"


def test_records_without_refs_lists_english_text():
    assert records_without_refs(_collection()) == [("gilgal", "Gilgal", "camp")]
