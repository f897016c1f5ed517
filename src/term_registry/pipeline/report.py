from __future__ import annotations

from typing import List, Sequence

from term_registry.common.errors import ValidationWarning

from .merge import MergeResult


def _section(lines: List[str], title: str, items: Sequence[object], limit: int) -> None:
    lines.append(f"{title}: {len(items)}")
    for item in list(items)[:limit]:
        lines.append(f"  - {item}")
    if len(items) > limit:
        lines.append(f"  ... and {len(items) - limit} more")
    lines.append("")


def render_merge_report(result: MergeResult, *, limit: int = 200) -> str:
    """Human-readable audit of a merge run, for review before promotion."""

    lines = ["=== Merge Report ===", f"Records: {len(result.records)}", ""]
    if result.changes is None:
        lines.append("No published collection to compare against.")
        lines.append("")
    else:
        _section(lines, "Added", result.changes.added, limit)
        _section(lines, "Changed", result.changes.changed, limit)
        _section(lines, "Removed", result.changes.removed, limit)
    _section(lines, "Reordered terms", result.reordered, limit)
    _section(lines, "Thin records", result.thin, limit)
    other = [w for w in result.warnings if w not in result.thin]
    _section(lines, "Warnings", other, limit)
    return "\n".join(lines).rstrip() + "\n"


def render_warnings(title: str, warnings: Sequence[ValidationWarning]) -> str:
    lines: List[str] = []
    _section(lines, title, warnings, limit=len(warnings) or 1)
    return "\n".join(lines).rstrip() + "\n"


__all__ = ["render_merge_report", "render_warnings"]
