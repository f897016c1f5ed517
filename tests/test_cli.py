import json
import pathlib
import sys

import pytest

PROJECT_ROOT = pathlib.Path(__file__).resolve().parents[1]
SRC_ROOT = PROJECT_ROOT / "src"
if str(SRC_ROOT) not in sys.path:
    sys.path.insert(0, str(SRC_ROOT))

from term_registry import cli  # noqa: E402
from term_registry.common.config import CONFIG_ENV_VAR, DATA_DIR_ENV_VAR  # noqa: E402


@pytest.fixture(autouse=True)
def isolated_env(tmp_path, monkeypatch):
    monkeypatch.setenv(DATA_DIR_ENV_VAR, str(tmp_path / "data"))
    monkeypatch.delenv(CONFIG_ENV_VAR, raising=False)
    monkeypatch.chdir(tmp_path)


def _write_json(path, payload):
    path.write_text(json.dumps(payload, ensure_ascii=False), encoding="utf-8")
    return path


@pytest.fixture
def sources(tmp_path):
    placenames = _write_json(
        tmp_path / "placenames.json",
        {
            "adriatic_sea": {
                "termId": "X1",
                "transliteration": "Adria",
                "refs": ["66027027"],
                "gloss": {"en": "Adriatic Sea"},
            },
            "empty_place": {"termId": "E0"},
        },
    )
    mergekeys = _write_json(
        tmp_path / "mergekeys.json",
        {"adriatic_sea": {"gloss": {"en": ""}, "context": {"en": "sea east of Italy"}}},
    )
    return placenames, mergekeys


def test_merge_writes_collection_and_report(tmp_path, sources, capsys):
    placenames, mergekeys = sources
    out = tmp_path / "core.json"
    report = tmp_path / "report.txt"

    exit_code = cli.main(
        [
            "merge",
            "--source", f"placenames={placenames}",
            "--source", f"mergekeys={mergekeys}",
            "--out", str(out),
            "--report", str(report),
        ]
    )

    assert exit_code == 0
    merged = json.loads(out.read_text(encoding="utf-8"))
    assert merged["adriatic_sea"]["lblTemplate"] == "{AdriaticSea}"
    assert merged["adriatic_sea"]["gloss"]["en"] == "Adriatic Sea"
    assert merged["adriatic_sea"]["context"]["en"] == "sea east of Italy"
    assert "empty_place" in merged

    report_text = report.read_text(encoding="utf-8")
    assert "Thin records: 1" in report_text
    assert "No published collection to compare against." in report_text
    assert f"Wrote {out}" in capsys.readouterr().out


def test_merge_reads_sources_from_config(tmp_path, sources):
    placenames, _ = sources
    config = tmp_path / "registry.yml"
    config.write_text(
        "sources:\n  placenames: placenames.json\npriority: [placenames]\noutput: out/core.json\n",
        encoding="utf-8",
    )

    assert cli.main(["--config", str(config), "merge"]) == 0
    assert (tmp_path / "out" / "core.json").exists()


def test_merge_reports_changes_against_published(tmp_path, sources, capsys):
    placenames, _ = sources
    published = _write_json(tmp_path / "published.json", {"old_key": {"gloss": "Old"}})

    exit_code = cli.main(
        [
            "merge",
            "--source", f"placenames={placenames}",
            "--published", str(published),
            "--out", str(tmp_path / "new.json"),
        ]
    )

    assert exit_code == 0
    output = capsys.readouterr().out
    assert "Added: 2" in output
    assert "Removed: 1" in output


def test_merge_refuses_to_overwrite_published(tmp_path, sources, capsys):
    placenames, _ = sources
    published = _write_json(tmp_path / "published.json", {})

    exit_code = cli.main(
        [
            "merge",
            "--source", f"placenames={placenames}",
            "--published", str(published),
            "--out", str(published),
            "--overwrite",
        ]
    )

    assert exit_code == 2
    assert json.loads(published.read_text(encoding="utf-8")) == {}
    assert "refusing to replace an input" in capsys.readouterr().err


def test_merge_requires_overwrite_flag_for_existing_output(tmp_path, sources):
    placenames, _ = sources
    out = tmp_path / "core.json"
    out.write_text("keep", encoding="utf-8")
    argv = ["merge", "--source", f"placenames={placenames}", "--out", str(out)]

    assert cli.main(argv) == 2
    assert out.read_text(encoding="utf-8") == "keep"
    assert cli.main(argv + ["--overwrite"]) == 0
    assert "adriatic_sea" in json.loads(out.read_text(encoding="utf-8"))


def test_merge_with_malformed_source_writes_nothing(tmp_path, sources, capsys):
    placenames, _ = sources
    broken = tmp_path / "terms.json"
    broken.write_text("[1, 2", encoding="utf-8")
    out = tmp_path / "core.json"

    exit_code = cli.main(
        [
            "merge",
            "--source", f"placenames={placenames}",
            "--source", f"terms={broken}",
            "--out", str(out),
        ]
    )

    assert exit_code == 2
    assert not out.exists()
    assert "Error:" in capsys.readouterr().err


def test_locale_export_then_import(tmp_path):
    collection = _write_json(
        tmp_path / "core.json",
        {"sea": {"gloss": {"en": "Sea"}, "terms": []}},
    )
    table = tmp_path / "gloss.tsv"

    assert cli.main(["export-locale", "--input", str(collection), "--out", str(table)]) == 0
    assert table.read_text(encoding="utf-8") == "key\ten\tes\tfr\tne\nsea\tSea\t\t\t\n"

    table.write_text("key\ten\tes\tfr\tne\nsea\tSea\tMar\t\t\n", encoding="utf-8")
    out = tmp_path / "core-reviewed.json"
    assert cli.main(
        ["import-locale", "--input", str(collection), "--table", str(table), "--out", str(out)]
    ) == 0
    assert json.loads(out.read_text(encoding="utf-8"))["sea"]["gloss"]["es"] == "Mar"


def test_import_locale_rejects_bad_header(tmp_path):
    collection = _write_json(tmp_path / "core.json", {"sea": {}})
    table = tmp_path / "gloss.tsv"
    table.write_text("id\ten\nsea\tSea\n", encoding="utf-8")

    exit_code = cli.main(
        ["import-locale", "--input", str(collection), "--table", str(table), "--out", str(tmp_path / "o.json")]
    )

    assert exit_code == 2


def test_spellings_export_and_import(tmp_path):
    spellings = _write_json(
        tmp_path / "spellings.json",
        [{"Id": "G1", "Gloss": "Aaron", "References": ["001", "002"], "spell-N": "Aron"}],
    )
    table = tmp_path / "spellings.tsv"
    restored = tmp_path / "spellings-new.json"

    assert cli.main(["export-spellings", "--input", str(spellings), "--out", str(table)]) == 0
    assert cli.main(["import-spellings", "--table", str(table), "--out", str(restored)]) == 0

    records = json.loads(restored.read_text(encoding="utf-8"))
    assert records[0]["Id"] == "G1"
    assert records[0]["References"] == ["001", "002"]
    assert records[0]["spell-N"] == "Aron"
    assert records[0]["pc-K"] == "0"


def test_update_contexts(tmp_path, capsys):
    collection = _write_json(tmp_path / "core.json", {"sea": {"context": {"en": "old"}}})
    table = tmp_path / "contexts.tsv"
    table.write_text("key\tcontext\nsea\tnew\nmissing\tx\n", encoding="utf-8")
    out = tmp_path / "updated.json"

    assert cli.main(
        ["update-contexts", "--input", str(collection), "--table", str(table), "--out", str(out)]
    ) == 0
    assert json.loads(out.read_text(encoding="utf-8"))["sea"]["context"]["en"] == "new"
    output = capsys.readouterr().out
    assert "Contexts updated: 1" in output
    assert "Keys not found: 1" in output


def test_process_changes(tmp_path, capsys):
    placenames = _write_json(tmp_path / "placenames.json", {"Bethany": {"gloss": {"en": "Bethany"}}})
    mergekeys = _write_json(tmp_path / "mergekeys.json", {"bethany_mk": {"lblTemplate": "{Bethany}"}})
    changes = tmp_path / "changes.tsv"
    changes.write_text(
        "newLabelTemplate\toldPlaceName\tenglishGloss\tenglishContext\n{Bethany2}\tBethany\tBethany\tvillage\n",
        encoding="utf-8",
    )
    out_places = tmp_path / "placenames-new.json"
    out_mergekeys = tmp_path / "mergekeys-new.json"

    exit_code = cli.main(
        [
            "process-changes",
            "--placenames", str(placenames),
            "--mergekeys", str(mergekeys),
            "--changes", str(changes),
            "--out-placenames", str(out_places),
            "--out-mergekeys", str(out_mergekeys),
        ]
    )

    assert exit_code == 0
    assert json.loads(out_places.read_text(encoding="utf-8")) == {}
    entry = json.loads(out_mergekeys.read_text(encoding="utf-8"))["bethany_mk"]
    assert entry["lblTemplate"] == "{Bethany2}"
    assert entry["context"]["en"] == "village"
    assert "Successfully processed: 1" in capsys.readouterr().out


def test_list_no_refs(tmp_path, capsys):
    collection = _write_json(
        tmp_path / "core.json",
        {
            "a": {"gloss": "A", "terms": [{"termId": "1", "refs": []}]},
            "b": {"gloss": "B", "terms": [{"termId": "2", "refs": ["001"]}]},
        },
    )

    assert cli.main(["list-no-refs", "--input", str(collection)]) == 0
    output = capsys.readouterr().out
    assert "Found 1 items with no refs:" in output
    assert "a\tA\t" in output


def test_lookup_prints_fields_and_reports_miss(tmp_path, capsys):
    collection = _write_json(
        tmp_path / "core.json",
        {"sea": {"gloss": {"en": "Sea"}, "terms": [{"termId": "S1", "transliteration": "yam", "refs": ["1"]}]}},
    )

    assert cli.main(["lookup", "S1", "--input", str(collection)]) == 0
    output = capsys.readouterr().out
    assert "gloss: Sea" in output
    assert "transliteration: yam" in output

    assert cli.main(["lookup", "nope", "--input", str(collection)]) == 0
    assert "'nope' not found in unified registry" in capsys.readouterr().out


def test_source_argument_must_name_known_kind():
    with pytest.raises(SystemExit):
        cli._build_parser().parse_args(["merge", "--source", "bogus=x.json"])


def test_merge_with_unwritable_report_writes_nothing(tmp_path, sources, capsys):
    placenames, _ = sources
    out = tmp_path / "core.json"
    report_dir = tmp_path / "reports"
    report_dir.mkdir()

    exit_code = cli.main(
        [
            "merge",
            "--source", f"placenames={placenames}",
            "--out", str(out),
            "--report", str(report_dir),
        ]
    )

    assert exit_code == 2
    assert not out.exists()
    assert "is a directory" in capsys.readouterr().err


def test_validate_reports_dangling_place_names(tmp_path, capsys):
    folder = tmp_path / "maps"
    folder.mkdir()
    _write_json(folder / "mergekeys.json", {"jericho": {"lblTemplate": "{Jericho}"}, "ai": {"lblTemplate": "{Ai}"}})
    _write_json(folder / "placenames.json", {"Jericho": {}, "Gilgal": {}})
    core = _write_json(tmp_path / "core-placenames.json", {"Ai": {}})

    assert cli.main(["validate", "--collection", str(folder), "--core", str(core)]) == 0
    output = capsys.readouterr().out
    assert "Total errors: 0" in output
    assert "Gilgal" in output

    assert cli.main(["validate", "--collection", str(folder)]) == 1
    assert "Total errors: 1" in capsys.readouterr().out
