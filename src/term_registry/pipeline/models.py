from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from term_registry.common.types import DEFAULT_PROJECT_CODES, LOCALES

logger = logging.getLogger(__name__)


def _text(v: Any) -> str:
    if v is None:
        return ""
    return str(v)


class LocaleText(BaseModel):
    """Text keyed by locale code; absent and null entries both read as ``""``."""

    model_config = ConfigDict(extra="ignore")

    en: str = ""
    es: str = ""
    fr: str = ""
    ne: str = ""

    @model_validator(mode="before")
    @classmethod
    def coerce_raw(cls, data: Any) -> Any:
        if data is None:
            return {}
        if isinstance(data, str):
            return {"en": data}
        if isinstance(data, dict):
            unknown = [k for k in data if k not in LOCALES]
            if unknown:
                logger.debug(f"Dropping unrecognized locale(s) {unknown}")
            return {k: _text(v) for k, v in data.items() if k in LOCALES}
        return data

    def get(self, locale: str = "en") -> str:
        if locale not in LOCALES:
            return ""
        return getattr(self, locale)

    def is_empty(self) -> bool:
        return not any(getattr(self, locale) for locale in LOCALES)

    def overlay(self, other: "LocaleText") -> None:
        """Copy each non-empty locale of ``other`` onto this object."""

        for locale in LOCALES:
            incoming = getattr(other, locale)
            if incoming:
                setattr(self, locale, incoming)


class TermVariant(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    term_id: str = Field(default="", alias="termId")
    transliteration: str = ""
    refs: List[str] = Field(default_factory=list)

    @field_validator("term_id", "transliteration", mode="before")
    def normalize_text(cls, v: Any) -> str:
        return _text(v).strip()

    @field_validator("refs", mode="before")
    def normalize_refs(cls, v: Any) -> List[str]:
        if v is None:
            return []
        if isinstance(v, str):
            return v.split()
        if not isinstance(v, (list, tuple)):
            raise ValueError("refs must be a list or a space-separated string")
        return [str(ref).strip() for ref in v if ref is not None and str(ref).strip()]


class UnifiedRecord(BaseModel):
    """One entry of the canonical collection."""

    model_config = ConfigDict(populate_by_name=True, validate_assignment=False)

    gloss: LocaleText = Field(default_factory=LocaleText)
    context: LocaleText = Field(default_factory=LocaleText)
    terms: List[TermVariant] = Field(default_factory=list)
    alt_term_ids: List[str] = Field(default_factory=list, alias="altTermIds")
    lbl_template: str = Field(default="", alias="lblTemplate")
    mapx_key: str = Field(default="", alias="mapxKey")

    @field_validator("gloss", "context", mode="before")
    def coerce_locale(cls, v: Any) -> Any:
        return {} if v is None else v

    @field_validator("alt_term_ids", mode="before")
    def normalize_alt_ids(cls, v: Any) -> List[str]:
        if v is None:
            return []
        if isinstance(v, str):
            v = [v]
        seen: List[str] = []
        for item in v:
            value = _text(item).strip()
            if value and value not in seen:
                seen.append(value)
        return seen

    @field_validator("terms", mode="before")
    def coerce_terms(cls, v: Any) -> Any:
        return [] if v is None else v

    @field_validator("lbl_template", "mapx_key", mode="before")
    def normalize_scalar(cls, v: Any) -> str:
        return _text(v).strip()

    def is_thin(self) -> bool:
        """True when gloss, context, transliterations and refs are all empty."""

        if not self.gloss.is_empty() or not self.context.is_empty():
            return False
        return not any(t.transliteration or t.refs for t in self.terms)

    def find_term(self, term_id: str) -> Optional[TermVariant]:
        for term in self.terms:
            if term.term_id == term_id:
                return term
        return None

    def to_json(self) -> Dict[str, Any]:
        payload = self.model_dump(by_alias=True)
        # Optional scalars are omitted when unset to keep collections diffable.
        for key in ("lblTemplate", "mapxKey"):
            if not payload.get(key):
                payload.pop(key, None)
        return payload


class SpellingRecord(BaseModel):
    """A biblical term with its spelling and coverage per project code.

    ``spell`` and ``pc`` always hold every configured project code; flat
    ``spell-<code>``/``pc-<code>`` keys from the source JSON are folded in.
    """

    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(default="", alias="Id")
    strong: str = Field(default="", alias="Strong")
    transliteration: str = Field(default="", alias="Transliteration")
    gloss: str = Field(default="", alias="Gloss")
    definition: str = Field(default="", alias="Definition")
    category: str = Field(default="", alias="Category")
    domain: str = Field(default="", alias="Domain")
    references: List[str] = Field(default_factory=list, alias="References")
    spell: Dict[str, str] = Field(default_factory=dict)
    pc: Dict[str, str] = Field(default_factory=dict)

    @model_validator(mode="before")
    @classmethod
    def fold_project_columns(cls, data: Any, info: Any) -> Any:
        if not isinstance(data, dict):
            return data
        codes = _project_codes(info)
        data = dict(data)
        spell = {code: _text(v) for code, v in (data.pop("spell", None) or {}).items()}
        pc = {code: _text(v) for code, v in (data.pop("pc", None) or {}).items()}
        for key in list(data):
            if key.startswith("spell-"):
                spell[key[len("spell-"):]] = _text(data.pop(key))
            elif key.startswith("pc-"):
                pc[key[len("pc-"):]] = _text(data.pop(key))
        data["spell"] = {code: spell.get(code, "") for code in codes}
        data["pc"] = {code: pc.get(code) or "0" for code in codes}
        return data

    @field_validator(
        "id", "strong", "transliteration", "gloss", "definition", "category", "domain",
        mode="before",
    )
    def normalize_text(cls, v: Any) -> str:
        return _text(v)

    @field_validator("references", mode="before")
    def normalize_refs(cls, v: Any) -> List[str]:
        if v is None:
            return []
        if isinstance(v, str):
            return v.split()
        if not isinstance(v, (list, tuple)):
            raise ValueError("References must be a list or a space-separated string")
        return [str(ref) for ref in v if ref is not None]

    def to_json(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "Id": self.id,
            "Strong": self.strong,
            "Transliteration": self.transliteration,
            "Gloss": self.gloss,
            "Definition": self.definition,
            "Category": self.category,
            "Domain": self.domain,
            "References": list(self.references),
        }
        for code, value in self.spell.items():
            payload[f"spell-{code}"] = value
        for code, value in self.pc.items():
            payload[f"pc-{code}"] = value
        return payload


def _project_codes(info: Any) -> List[str]:
    context = getattr(info, "context", None) or {}
    codes = context.get("project_codes") if isinstance(context, dict) else None
    return list(codes or DEFAULT_PROJECT_CODES)


def parse_spelling(data: Dict[str, Any], project_codes: Optional[List[str]] = None) -> SpellingRecord:
    context = {"project_codes": list(project_codes)} if project_codes else None
    return SpellingRecord.model_validate(data, context=context)


__all__ = [
    "LocaleText",
    "SpellingRecord",
    "TermVariant",
    "UnifiedRecord",
    "parse_spelling",
]
