"""Structural cross-checks between merge-key and place-name collections.

A merge key's ``lblTemplate`` embeds place names in braces (``{Jericho}``,
``{lbl#Jericho}``), references (``{r#JOS 6.1}``) and numbers (``{#12}``).
Every embedded place name must exist in the collection's own place names or in
the core place names, and every place name should be used by some template.
"""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Any, List, Mapping, Optional, Set, Tuple

from term_registry.common.errors import ValidationWarning

from .models import LocaleText

logger = logging.getLogger(__name__)

TEMPLATE_TOKEN_RE = re.compile(r"\{([^}]+)\}")
SIMPLE_TEMPLATE_RE = re.compile(r"^\{[^#{\s]+\}\Z")
REFERENCE_TOKEN_RE = re.compile(r"^([A-Z1-4][A-Z]{2} )?\d+([\d.\-\u2013; ]*)\Z")
NUMBER_TOKEN_RE = re.compile(r"^\d+([\d.,]*)?\Z")

CORE_SOURCE = "core-placenames"

Collection = Mapping[str, Mapping[str, Any]]


@dataclass
class ValidationReport:
    """Errors make a collection unusable; warnings flag unused entries."""

    errors: List[ValidationWarning] = field(default_factory=list)
    warnings: List[ValidationWarning] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors

    def extend(self, other: "ValidationReport") -> None:
        self.errors.extend(other.errors)
        self.warnings.extend(other.warnings)


def template_placenames(template: str) -> List[str]:
    """Place names embedded in a label template, in order of appearance."""

    names: List[str] = []
    for token in TEMPLATE_TOKEN_RE.findall(template):
        if token.startswith("r#") or token.startswith("#"):
            continue
        if "#" in token:
            names.append(token.split("#")[1])
        else:
            names.append(token)
    return names


def template_format_errors(template: str) -> List[str]:
    problems: List[str] = []
    for token in TEMPLATE_TOKEN_RE.findall(template):
        if token.startswith("r#") and not REFERENCE_TOKEN_RE.match(token[2:]):
            problems.append(f"invalid reference format {token!r} in lblTemplate {template!r}")
        elif token.startswith("#") and not NUMBER_TOKEN_RE.match(token[1:]):
            problems.append(f"invalid number format {token!r} in lblTemplate {template!r}")
    return problems


def validate_mergekeys(
    name: str,
    mergekeys: Collection,
    placenames: Optional[Collection] = None,
    core_placenames: Optional[Collection] = None,
) -> Tuple[ValidationReport, Set[str]]:
    """Check one collection's merge keys; return the report and the place names used."""

    report = ValidationReport()
    used: Set[str] = set()
    source = f"{name}/mergekeys"
    local = placenames or {}
    core = core_placenames or {}

    for key, value in mergekeys.items():
        template = str(value.get("lblTemplate") or "")
        if not template:
            report.errors.append(ValidationWarning(key, "missing lblTemplate", source))
            continue

        if not SIMPLE_TEMPLATE_RE.match(template):
            if not LocaleText.model_validate(value.get("gloss")).en:
                report.errors.append(
                    ValidationWarning(key, f"complex lblTemplate {template!r} has no English gloss", source)
                )
            if not LocaleText.model_validate(value.get("context")).en:
                report.errors.append(
                    ValidationWarning(key, f"complex lblTemplate {template!r} has no English context", source)
                )

        for problem in template_format_errors(template):
            report.errors.append(ValidationWarning(key, problem, source))

        for placename in template_placenames(template):
            used.add(placename)
            if placename not in local and placename not in core:
                report.errors.append(
                    ValidationWarning(
                        key,
                        f"references place name {placename!r} missing from placenames and {CORE_SOURCE}",
                        source,
                    )
                )
    return report, used


def unused_placenames(placenames: Collection, used: Set[str], source: str) -> List[ValidationWarning]:
    return [
        ValidationWarning(key, "not used in any mergekeys lblTemplate", source)
        for key in placenames
        if key not in used
    ]


def validate_collections(
    collections: Mapping[str, Tuple[Collection, Optional[Collection]]],
    core_placenames: Optional[Collection] = None,
) -> ValidationReport:
    """Validate named ``(mergekeys, placenames)`` pairs against shared core place names.

    Core place names are only checked for use when ``core_placenames`` is given.
    """

    report = ValidationReport()
    used_anywhere: Set[str] = set()
    for name, (mergekeys, placenames) in collections.items():
        collection_report, used = validate_mergekeys(name, mergekeys, placenames, core_placenames)
        report.extend(collection_report)
        if placenames is not None:
            report.warnings.extend(unused_placenames(placenames, used, f"{name}/placenames"))
        used_anywhere |= used

    if core_placenames is not None:
        report.warnings.extend(unused_placenames(core_placenames, used_anywhere, CORE_SOURCE))

    logger.info(
        "Validated collections",
        extra={
            "collections": len(collections),
            "errors": len(report.errors),
            "warnings": len(report.warnings),
        },
    )
    return report


__all__ = [
    "ValidationReport",
    "template_format_errors",
    "template_placenames",
    "unused_placenames",
    "validate_collections",
    "validate_mergekeys",
]
