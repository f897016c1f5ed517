"""Raw record keys to canonical display tokens.

``adriatic_sea`` becomes ``AdriaticSea`` and, in template form, ``{AdriaticSea}``.
"""
from __future__ import annotations

import re

TESTAMENT_SUFFIX_RE = re.compile(r"_(nt|ot)\Z")


def _title(segment: str) -> str:
    return segment[0].upper() + segment[1:].lower()


def is_canonical(key: str) -> bool:
    """True for a single segment that does not start lower-case and is not all caps.

    All-caps keys (``ABC``) are raw and title-case to ``Abc``. A canonical key
    built only from one-letter segments (``a_b`` -> ``AB``) is indistinguishable
    from such a raw key and is therefore re-cased to ``Ab``.
    """

    if not key or "_" in key or key[0].islower():
        return False
    return not (len(key) > 1 and key.isupper())


def unwrap_template(key: str) -> str:
    if len(key) >= 2 and key.startswith("{") and key.endswith("}"):
        return key[1:-1]
    return key


def canonicalize(raw_key: str) -> str:
    """Return the canonical display token for ``raw_key``.

    Strips one trailing ``_nt``/``_ot``, splits on underscores, title-cases each
    non-empty segment and joins them. Keys that are already canonical (or already
    wrapped as a template) come back unchanged.
    """

    key = unwrap_template(raw_key or "")
    if not key or is_canonical(key):
        return key

    stripped = TESTAMENT_SUFFIX_RE.sub("", key)
    return "".join(_title(segment) for segment in stripped.split("_") if segment)


def to_template(raw_key: str) -> str:
    """Canonicalize ``raw_key`` and wrap it in one pair of braces."""

    canonical = canonicalize(raw_key)
    if not canonical:
        return ""
    return "{" + canonical + "}"


__all__ = ["canonicalize", "is_canonical", "to_template", "unwrap_template"]
