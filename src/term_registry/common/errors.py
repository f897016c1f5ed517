"""Error and diagnostic types shared by the registry pipeline."""
from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Optional


class FatalInputError(ValueError):
    """A source could not be read or parsed; the run must stop before writing."""

    def __init__(self, message: str, *, path: Optional[Path] = None):
        self.path = path
        if path is not None:
            message = f"{path}: {message}"
        super().__init__(message)


@dataclass(frozen=True)
class ValidationWarning:
    key: str
    message: str
    source: Optional[str] = None

    def __str__(self) -> str:
        prefix = f"[{self.source}] " if self.source else ""
        return f"{prefix}{self.key}: {self.message}"


@dataclass(frozen=True)
class LookupMiss:
    term_id: str
    accessor: str
    locale: str = "en"


__all__ = ["FatalInputError", "LookupMiss", "ValidationWarning"]
