"""Command line interface for building and reviewing the term registry."""
from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Sequence

from .common.config import PipelineConfig, load_environment, resolve_config_path
from .common.errors import FatalInputError, ValidationWarning
from .common.io import (
    json_write,
    load_collection,
    load_json,
    read_text,
    text_write,
    write_all,
    write_json,
    write_text,
)
from .common.types import SourceKind
from .pipeline.merge import load_sources, merge_sources, normalize_record
from .pipeline.models import UnifiedRecord, parse_spelling
from .pipeline.refs import sort_collection
from .pipeline.report import render_merge_report, render_warnings
from .pipeline.updates import (
    LabelChange,
    apply_context_updates,
    apply_label_changes,
    records_without_refs,
)
from .pipeline.validate import validate_collections
from .registry.lookup import build_registry
from .tabular.codec import (
    LOCALE_FIELDS,
    LOCALE_HEADER,
    apply_locale_table,
    export_locale_table,
    format_tsv,
    parse_tsv,
    parse_tsv_records,
    rows_to_spellings,
    spelling_header,
    spellings_to_rows,
)

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"
logger = logging.getLogger(__name__)


def _configure_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(level=level, format=LOG_FORMAT)


def _same_file(a: Path, b: Path) -> bool:
    return a.expanduser().resolve() == b.expanduser().resolve()


def _guard_output(out: Path, *, inputs: Iterable[Optional[Path]], overwrite: bool) -> None:
    """Refuse to write over an input or, without ``--overwrite``, any existing file."""

    for source in inputs:
        if source is not None and _same_file(out, source):
            raise FatalInputError(
                "output must be a distinct file; refusing to replace an input", path=out
            )
    if out.is_dir():
        raise FatalInputError("output path is a directory", path=out)
    if out.exists() and not overwrite:
        raise FatalInputError(
            "refusing to overwrite existing file. Use --overwrite to replace it.", path=out
        )


def _parse_source(value: str) -> tuple[SourceKind, Path]:
    kind, sep, path = value.partition("=")
    if not sep or not path:
        raise argparse.ArgumentTypeError("expected KIND=PATH")
    try:
        return SourceKind(kind.strip()), Path(path.strip())
    except ValueError as exc:
        choices = ", ".join(k.value for k in SourceKind)
        raise argparse.ArgumentTypeError(f"unknown source kind {kind!r} (choose from {choices})") from exc


def _parse_priority(value: str) -> List[SourceKind]:
    try:
        return [SourceKind(item.strip()) for item in value.split(",") if item.strip()]
    except ValueError as exc:
        raise argparse.ArgumentTypeError(str(exc)) from exc


def _load_unified(path: Path) -> Dict[str, UnifiedRecord]:
    return {
        key: normalize_record(SourceKind.UNIFIED, key, raw)
        for key, raw in load_collection(path).items()
    }


def _dump_unified(records: Dict[str, UnifiedRecord]) -> Dict[str, Any]:
    return {key: record.to_json() for key, record in records.items()}


def _print_warnings(title: str, warnings: Sequence[ValidationWarning]) -> None:
    if warnings:
        print(render_warnings(title, warnings), end="")


def _run_merge(args: argparse.Namespace) -> None:
    config: PipelineConfig = args.pipeline_config
    sources = dict(config.sources)
    for kind, path in args.source or []:
        sources[kind] = path
    priority = args.priority or config.priority
    config = PipelineConfig.model_validate(
        {**config.model_dump(), "sources": sources, "priority": priority}
    )

    out = Path(args.out) if args.out else config.output
    if out is None:
        raise FatalInputError("no output path; pass --out or set 'output' in the config")
    published = Path(args.published) if args.published else config.published
    report_path = Path(args.report) if args.report else config.report
    if not sources:
        raise FatalInputError("no sources configured; pass --source KIND=PATH")

    _guard_output(out, inputs=[*sources.values(), published], overwrite=args.overwrite)
    if report_path is not None:
        _guard_output(report_path, inputs=[*sources.values(), published, out], overwrite=True)

    logger.info(
        "Running merge",
        extra={"sources": len(sources), "out": str(out), "published": str(published)},
    )
    raw_sources, load_warnings = load_sources(config.ordered_sources())
    prior = None
    if published is not None:
        if published.exists():
            prior = load_collection(published)
        else:
            logger.warning("Published collection not found; change report skipped", extra={"published": str(published)})

    result = merge_sources(
        raw_sources,
        priority=config.priority,
        published=prior,
        project_codes=config.project_codes,
        progress=args.progress,
    )
    result.warnings[:0] = load_warnings

    report_text = render_merge_report(result)
    writes = [json_write(out, result.to_json())]
    if report_path is not None:
        writes.insert(0, text_write(report_path, report_text))
    write_all(writes)
    print(report_text, end="")
    print(f"Wrote {out}")


def _run_sort_refs(args: argparse.Namespace) -> None:
    source = Path(args.input)
    out = Path(args.out)
    _guard_output(out, inputs=[source], overwrite=args.overwrite)
    records = _load_unified(source)
    reordered = sort_collection(records)
    write_json(out, _dump_unified(records))
    print(f"{len(reordered)} records had their terms reordered.")
    for key in reordered[:20]:
        print(f"  - {key}")
    if len(reordered) > 20:
        print(f"  ... and {len(reordered) - 20} more")
    print(f"Wrote {out}")


def _run_export_locale(args: argparse.Namespace) -> None:
    source = Path(args.input)
    out = Path(args.out)
    _guard_output(out, inputs=[source], overwrite=args.overwrite)
    rows = export_locale_table(_load_unified(source), args.field)
    write_text(out, format_tsv(rows))
    print(f"Wrote {len(rows) - 1} rows to {out}")


def _run_import_locale(args: argparse.Namespace) -> None:
    source = Path(args.input)
    table = Path(args.table)
    out = Path(args.out)
    _guard_output(out, inputs=[source, table], overwrite=args.overwrite)
    rows, parse_warnings = parse_tsv(read_text(table), LOCALE_HEADER)
    records, updated, warnings = apply_locale_table(_load_unified(source), rows, args.field)
    write_json(out, _dump_unified(records))
    _print_warnings("Warnings", [*parse_warnings, *warnings])
    print(f"Updated {args.field} for {len(updated)} records; wrote {out}")


def _run_export_spellings(args: argparse.Namespace) -> None:
    config: PipelineConfig = args.pipeline_config
    source = Path(args.input)
    out = Path(args.out)
    _guard_output(out, inputs=[source], overwrite=args.overwrite)
    payload = load_json(source)
    if not isinstance(payload, (list, dict)):
        raise FatalInputError("spellings must be a JSON list or object", path=source)
    items = payload.values() if isinstance(payload, dict) else payload
    records = []
    for item in items:
        if not isinstance(item, dict):
            raise FatalInputError("spelling entries must be JSON objects", path=source)
        records.append(parse_spelling(item, config.project_codes))
    rows = spellings_to_rows(records, config.project_codes)
    write_text(out, format_tsv(rows))
    print(f"Wrote {len(rows) - 1} rows to {out}")


def _run_import_spellings(args: argparse.Namespace) -> None:
    config: PipelineConfig = args.pipeline_config
    table = Path(args.table)
    out = Path(args.out)
    _guard_output(out, inputs=[table], overwrite=args.overwrite)
    rows, warnings = parse_tsv(read_text(table), spelling_header(config.project_codes))
    records = rows_to_spellings(rows, config.project_codes)
    write_json(out, [record.to_json() for record in records])
    _print_warnings("Warnings", warnings)
    print(f"Wrote {len(records)} spelling records to {out}")


def _run_update_contexts(args: argparse.Namespace) -> None:
    source = Path(args.input)
    table = Path(args.table)
    out = Path(args.out)
    _guard_output(out, inputs=[source, table], overwrite=args.overwrite)
    rows, parse_warnings = parse_tsv(read_text(table))
    updates = {row[0].strip(): (row[1].strip() if len(row) > 1 else "") for row in rows[1:]}
    records, updated, warnings = apply_context_updates(
        load_collection(source), updates, locale=args.locale
    )
    write_json(out, records)
    print(f"Contexts updated: {len(updated)}")
    print(f"Keys not found: {len(warnings)}")
    _print_warnings("Warnings", [*parse_warnings, *warnings])
    print(f"Wrote {out}")


def _run_process_changes(args: argparse.Namespace) -> None:
    placenames_path = Path(args.placenames)
    mergekeys_path = Path(args.mergekeys)
    changes_path = Path(args.changes)
    out_places = Path(args.out_placenames)
    out_mergekeys = Path(args.out_mergekeys)
    inputs = [placenames_path, mergekeys_path, changes_path]
    _guard_output(out_places, inputs=inputs, overwrite=args.overwrite)
    _guard_output(out_mergekeys, inputs=[*inputs, out_places], overwrite=args.overwrite)

    rows, parse_warnings = parse_tsv_records(read_text(changes_path))
    changes = [LabelChange.from_row(row) for row in rows]
    places, mergekeys, processed, warnings = apply_label_changes(
        load_collection(placenames_path), load_collection(mergekeys_path), changes
    )
    write_all([json_write(out_places, places), json_write(out_mergekeys, mergekeys)])

    print("=" * 60)
    print("SUMMARY:")
    print("=" * 60)
    print(f"Total changes in file: {len(changes)}")
    print(f"Successfully processed: {len(processed)}")
    print(f"Warnings: {len(warnings) + len(parse_warnings)}")
    _print_warnings("Warnings", [*parse_warnings, *warnings])
    print(f"Wrote {out_places}")
    print(f"Wrote {out_mergekeys}")


def _run_list_no_refs(args: argparse.Namespace) -> None:
    rows = records_without_refs(load_collection(Path(args.input)))
    print(f"Found {len(rows)} items with no refs:")
    for key, gloss, context in rows:
        print(f"{key}\t{gloss}\t{context}")


def _run_lookup(args: argparse.Namespace) -> None:
    config: PipelineConfig = args.pipeline_config
    kind = SourceKind(args.kind)
    registry = build_registry(kind, load_json(Path(args.input)), project_codes=config.project_codes)
    term_id = args.term_id
    print(f"gloss: {registry.get_gloss(term_id, args.locale)}")
    print(f"definition: {registry.get_definition(term_id, args.locale)}")
    print(f"transliteration: {registry.get_transliteration(term_id, args.locale)}")
    print(f"refs: {' '.join(registry.get_refs(term_id, args.locale))}")
    if registry.miss_count:
        print(f"'{term_id}' not found in {kind.value} registry")


def _run_validate(args: argparse.Namespace) -> int:
    collections = {}
    for folder in args.collection:
        folder = Path(folder)
        placenames_path = folder / "placenames.json"
        placenames = load_collection(placenames_path) if placenames_path.exists() else None
        collections[folder.name] = (load_collection(folder / "mergekeys.json"), placenames)
    core = load_collection(Path(args.core)) if args.core else None

    report = validate_collections(collections, core)
    _print_warnings("Errors", report.errors)
    _print_warnings("Warnings", report.warnings)
    print(f"Total errors: {len(report.errors)}")
    print(f"Total warnings: {len(report.warnings)}")
    return 0 if report.ok else 1


def _add_overwrite(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--overwrite", action="store_true", help="Allow overwriting the output file")


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="termreg",
        description="Build, export and query the canonical term & placename registry",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    parser.add_argument("--config", default=None, help="Pipeline config YAML (default: $TERM_REGISTRY_CONFIG)")
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging")

    subparsers = parser.add_subparsers(dest="command", required=True)

    merge = subparsers.add_parser("merge", help="Merge source collections into a canonical collection")
    merge.add_argument(
        "--source",
        action="append",
        type=_parse_source,
        metavar="KIND=PATH",
        help="Source collection; repeatable, overrides the config entry for KIND",
    )
    merge.add_argument(
        "--priority",
        type=_parse_priority,
        default=None,
        help="Comma-separated source kinds, lowest priority first",
    )
    merge.add_argument("--published", default=None, help="Previously published canonical collection")
    merge.add_argument("--out", default=None, help="Destination for the new canonical collection")
    merge.add_argument("--report", default=None, help="Optional path to save the merge report")
    merge.add_argument("--progress", action="store_true", help="Show progress bars")
    _add_overwrite(merge)
    merge.set_defaults(handler=_run_merge)

    sort_refs = subparsers.add_parser("sort-refs", help="Sort refs and terms of a canonical collection")
    sort_refs.add_argument("--input", required=True, help="Canonical collection JSON")
    sort_refs.add_argument("--out", required=True, help="Destination JSON")
    _add_overwrite(sort_refs)
    sort_refs.set_defaults(handler=_run_sort_refs)

    export_locale = subparsers.add_parser("export-locale", help="Export gloss or context to TSV")
    export_locale.add_argument("--input", required=True, help="Canonical collection JSON")
    export_locale.add_argument("--field", choices=LOCALE_FIELDS, default="gloss", help="Field to export")
    export_locale.add_argument("--out", required=True, help="Destination TSV")
    _add_overwrite(export_locale)
    export_locale.set_defaults(handler=_run_export_locale)

    import_locale = subparsers.add_parser("import-locale", help="Apply a reviewed locale TSV")
    import_locale.add_argument("--input", required=True, help="Canonical collection JSON")
    import_locale.add_argument("--table", required=True, help="Reviewed TSV")
    import_locale.add_argument("--field", choices=LOCALE_FIELDS, default="gloss", help="Field to replace")
    import_locale.add_argument("--out", required=True, help="Destination JSON")
    _add_overwrite(import_locale)
    import_locale.set_defaults(handler=_run_import_locale)

    export_spellings = subparsers.add_parser("export-spellings", help="Export spelling records to TSV")
    export_spellings.add_argument("--input", required=True, help="Spelling records JSON")
    export_spellings.add_argument("--out", required=True, help="Destination TSV")
    _add_overwrite(export_spellings)
    export_spellings.set_defaults(handler=_run_export_spellings)

    import_spellings = subparsers.add_parser("import-spellings", help="Convert a spelling TSV back to JSON")
    import_spellings.add_argument("--table", required=True, help="Spelling TSV")
    import_spellings.add_argument("--out", required=True, help="Destination JSON")
    _add_overwrite(import_spellings)
    import_spellings.set_defaults(handler=_run_import_spellings)

    update_contexts = subparsers.add_parser("update-contexts", help="Apply new contexts from a two-column TSV")
    update_contexts.add_argument("--input", required=True, help="Canonical collection JSON")
    update_contexts.add_argument("--table", required=True, help="TSV: key, new context")
    update_contexts.add_argument("--locale", default="en", help="Context locale to replace")
    update_contexts.add_argument("--out", required=True, help="Destination JSON")
    _add_overwrite(update_contexts)
    update_contexts.set_defaults(handler=_run_update_contexts)

    process_changes = subparsers.add_parser("process-changes", help="Apply reviewed label-template changes")
    process_changes.add_argument("--placenames", required=True, help="Place-name collection JSON")
    process_changes.add_argument("--mergekeys", required=True, help="Merge-key collection JSON")
    process_changes.add_argument(
        "--changes",
        required=True,
        help="TSV with newLabelTemplate, oldPlaceName, englishGloss, englishContext",
    )
    process_changes.add_argument("--out-placenames", required=True, help="Destination place-name JSON")
    process_changes.add_argument("--out-mergekeys", required=True, help="Destination merge-key JSON")
    _add_overwrite(process_changes)
    process_changes.set_defaults(handler=_run_process_changes)

    list_no_refs = subparsers.add_parser("list-no-refs", help="List records with a reference-less term")
    list_no_refs.add_argument("--input", required=True, help="Canonical collection JSON")
    list_no_refs.set_defaults(handler=_run_list_no_refs)

    lookup = subparsers.add_parser("lookup", help="Query a collection through the registry facade")
    lookup.add_argument("term_id", help="Term id to look up")
    lookup.add_argument("--input", required=True, help="Collection JSON")
    lookup.add_argument(
        "--kind",
        choices=[kind.value for kind in SourceKind],
        default=SourceKind.UNIFIED.value,
        help="Schema of the collection",
    )
    lookup.add_argument("--locale", default="en", help="Locale for gloss and definition")
    lookup.set_defaults(handler=_run_lookup)

    validate = subparsers.add_parser("validate", help="Cross-check mergekeys and placenames collections")
    validate.add_argument(
        "--collection",
        action="append",
        required=True,
        help="Folder holding mergekeys.json and optionally placenames.json; repeatable",
    )
    validate.add_argument("--core", default=None, help="Core place-name collection JSON")
    validate.set_defaults(handler=_run_validate)

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = _build_parser()
    try:
        args = parser.parse_args(argv)
    except SystemExit as exc:  # pragma: no cover - delegated to argparse
        return exc.code

    _configure_logging(args.verbose)
    load_environment()

    try:
        config_path = resolve_config_path(args.config)
        args.pipeline_config = PipelineConfig.load(config_path) if config_path else PipelineConfig()
        status = args.handler(args)
    except (FatalInputError, FileNotFoundError, OSError, ValueError) as error:
        logger.error("Command failed", exc_info=False, extra={"error": str(error)})
        print(f"Error: {error}", file=sys.stderr)
        return 2

    return status or 0


if __name__ == "__main__":
    sys.exit(main())
