from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Dict, List, Optional

import yaml
from dotenv import find_dotenv, load_dotenv
from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator

from .errors import FatalInputError
from .types import DEFAULT_PROJECT_CODES, LOCALES, SourceKind

logger = logging.getLogger(__name__)

CONFIG_ENV_VAR = "TERM_REGISTRY_CONFIG"
DATA_DIR_ENV_VAR = "TERM_REGISTRY_DATA_DIR"

# Lowest priority first: later kinds overwrite earlier ones with non-empty values.
DEFAULT_PRIORITY: tuple[SourceKind, ...] = (
    SourceKind.SPELLINGS,
    SourceKind.TERMS,
    SourceKind.UNIFIED,
    SourceKind.MERGEKEYS,
    SourceKind.PLACENAMES,
)


def get_config_paths() -> dict[str, Path]:
    """Return canonical on-disk locations for collections and run artifacts."""

    project_root = Path(__file__).resolve().parents[3]
    override = os.environ.get(DATA_DIR_ENV_VAR)
    data_dir = Path(override).expanduser() if override else project_root / "data"

    return {
        "data_dir": data_dir,
        "config": data_dir / "registry.yml",
        "canonical": data_dir / "core-placenames.json",
        "canonical_new": data_dir / "core-placenames-new.json",
        "report": data_dir / "merge-report.txt",
        "spellings": data_dir / "BiblicalTermsWithSpellings.json",
        "spellings_tsv": data_dir / "spellings.tsv",
    }


def load_environment() -> None:
    """Load a ``.env`` file from the working directory tree, if one exists."""

    env_file = find_dotenv(".env", usecwd=True)
    if env_file:
        load_dotenv(env_file, override=False)
        logger.debug("Loaded environment file", extra={"path": env_file})


def resolve_config_path(explicit: Optional[str | Path] = None) -> Optional[Path]:
    """Pick the pipeline config: CLI flag, then environment, then default location."""

    if explicit:
        return Path(explicit).expanduser()
    from_env = os.environ.get(CONFIG_ENV_VAR)
    if from_env:
        return Path(from_env).expanduser()
    default = get_config_paths()["config"]
    if default.exists():
        return default
    return None


class PipelineConfig(BaseModel):
    """Operator-controlled merge configuration loaded from YAML."""

    sources: Dict[SourceKind, Path] = Field(default_factory=dict)
    priority: List[SourceKind] = Field(default_factory=lambda: list(DEFAULT_PRIORITY))
    project_codes: List[str] = Field(default_factory=lambda: list(DEFAULT_PROJECT_CODES))
    locales: List[str] = Field(default_factory=lambda: list(LOCALES))
    output: Optional[Path] = None
    published: Optional[Path] = None
    report: Optional[Path] = None

    @field_validator("project_codes", "locales", mode="after")
    def check_unique(cls, v: List[str]) -> List[str]:
        if not v:
            raise ValueError("must not be empty")
        if len(set(v)) != len(v):
            raise ValueError(f"duplicate entries in {v}")
        return v

    @field_validator("priority", mode="after")
    def check_priority(cls, v: List[SourceKind]) -> List[SourceKind]:
        if len(set(v)) != len(v):
            raise ValueError("priority lists a source kind more than once")
        return v

    @model_validator(mode="after")
    def check_sources_ranked(self) -> "PipelineConfig":
        unranked = [kind.value for kind in self.sources if kind not in self.priority]
        if unranked:
            raise ValueError(
                "source kinds missing from priority: " + ", ".join(sorted(unranked))
            )
        return self

    def ordered_sources(self) -> List[tuple[SourceKind, Path]]:
        """Configured sources in merge order (lowest priority first)."""

        return [(kind, self.sources[kind]) for kind in self.priority if kind in self.sources]

    @classmethod
    def load(cls, path: Path) -> "PipelineConfig":
        path = Path(path)
        if not path.is_file():
            raise FatalInputError("config file does not exist", path=path)
        try:
            data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
        except yaml.YAMLError as exc:
            raise FatalInputError(f"invalid YAML ({exc})", path=path) from exc
        if not isinstance(data, dict):
            raise FatalInputError("config root must be a mapping", path=path)

        base = path.parent
        for key in ("output", "published", "report"):
            if data.get(key):
                data[key] = _resolve(base, data[key])
        data["sources"] = {
            kind: _resolve(base, value) for kind, value in (data.get("sources") or {}).items()
        }

        try:
            config = cls.model_validate(data)
        except ValidationError as exc:
            raise FatalInputError(f"invalid pipeline config: {exc}", path=path) from exc
        logger.info(
            "Loaded pipeline config",
            extra={"path": str(path), "sources": len(config.sources)},
        )
        return config


def _resolve(base: Path, value: str | Path) -> Path:
    candidate = Path(value).expanduser()
    return candidate if candidate.is_absolute() else base / candidate


__all__ = [
    "CONFIG_ENV_VAR",
    "DATA_DIR_ENV_VAR",
    "DEFAULT_PRIORITY",
    "PipelineConfig",
    "get_config_paths",
    "load_environment",
    "resolve_config_path",
]
