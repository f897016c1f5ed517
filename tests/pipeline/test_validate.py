import pathlib
import sys

PROJECT_ROOT = pathlib.Path(__file__).resolve().parents[2]
SRC_ROOT = PROJECT_ROOT / "src"
if str(SRC_ROOT) not in sys.path:
    sys.path.insert(0, str(SRC_ROOT))

from term_registry.pipeline.validate import (  # noqa: E402
    template_format_errors,
    template_placenames,
    validate_collections,
    validate_mergekeys,
)


def test_template_placenames_skip_refs_and_numbers():
    template = "{Jericho} {lbl#Gilgal} {r#JOS 6.1} {#12}"

    assert template_placenames(template) == ["Jericho", "Gilgal"]


def test_template_format_errors():
    assert template_format_errors("{r#JOS 6.1-3} {#1,200}") == []
    assert len(template_format_errors("{r#Joshua six} {#twelve}")) == 2


def test_mergekeys_checks():
    mergekeys = {
        "jericho": {"lblTemplate": "{Jericho}"},
        "no_template": {"gloss": "x"},
        "complex": {"lblTemplate": "{Jericho} ({r#JOS 6.1})"},
        "dangling": {"lblTemplate": "{Ai}"},
        "described": {
            "lblTemplate": "{Jericho} {#2}",
            "gloss": {"en": "Jericho 2"},
            "context": "walls",
        },
    }

    report, used = validate_mergekeys("maps", mergekeys, {"Jericho": {}}, None)

    flagged = sorted(w.key for w in report.errors)
    assert flagged == ["complex", "complex", "dangling", "no_template"]
    assert used == {"Jericho", "Ai"}
    assert all(w.source == "maps/mergekeys" for w in report.errors)


def test_core_placenames_satisfy_references():
    report, _ = validate_mergekeys("maps", {"ai": {"lblTemplate": "{Ai}"}}, None, {"Ai": {}})

    assert report.ok


def test_unused_placenames_are_warnings():
    collections = {
        "maps": ({"jericho": {"lblTemplate": "{Jericho}"}}, {"Jericho": {}, "Gilgal": {}}),
        "atlas": ({"ai": {"lblTemplate": "{Ai}"}}, None),
    }
    core = {"Ai": {}, "Bethel": {}}

    report = validate_collections(collections, core)

    assert report.ok
    assert [(w.source, w.key) for w in report.warnings] == [
        ("maps/placenames", "Gilgal"),
        ("core-placenames", "Bethel"),
    ]
