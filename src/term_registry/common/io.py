"""File access for collections: strict reads and all-or-nothing writes."""
from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from tempfile import NamedTemporaryFile
from typing import IO, Any, Callable, List, Optional, Sequence, Tuple

from .errors import FatalInputError

logger = logging.getLogger(__name__)


def load_json(path: Path) -> Any:
    """Read a UTF-8 JSON document; any read or parse failure is fatal."""

    path = Path(path)
    if not path.exists() or not path.is_file():
        raise FatalInputError("does not exist or is not a file", path=path)
    try:
        with path.open("r", encoding="utf-8") as handle:
            payload = json.load(handle)
    except json.JSONDecodeError as exc:
        raise FatalInputError(f"invalid JSON ({exc})", path=path) from exc
    except (OSError, UnicodeDecodeError) as exc:
        raise FatalInputError(f"unreadable ({exc})", path=path) from exc
    logger.debug("Loaded JSON document", extra={"path": str(path)})
    return payload


def load_collection(path: Path) -> dict[str, Any]:
    """Read a keyed collection (JSON object whose values are record objects)."""

    return ensure_collection(load_json(path), path)


def ensure_collection(payload: Any, path: Path) -> dict[str, Any]:
    if not isinstance(payload, dict):
        raise FatalInputError(
            f"expected a JSON object at the root, got {type(payload).__name__}", path=path
        )
    bad = [key for key, value in payload.items() if not isinstance(value, dict)]
    if bad:
        raise FatalInputError(
            "records must be JSON objects; offending keys: " + ", ".join(bad[:5]),
            path=path,
        )
    return payload


def read_text(path: Path) -> str:
    path = Path(path)
    if not path.is_file():
        raise FatalInputError("does not exist or is not a file", path=path)
    try:
        with path.open("r", encoding="utf-8", newline="") as handle:
            return handle.read()
    except (OSError, UnicodeDecodeError) as exc:
        raise FatalInputError(f"unreadable ({exc})", path=path) from exc


Writer = Callable[[IO[str]], None]
PendingWrite = Tuple[Path, Writer, Optional[str]]


def _stage(path: Path, write_fn: Writer, newline: Optional[str]) -> str:
    """Write into a fsynced temp file beside ``path`` and return its name."""

    path.parent.mkdir(parents=True, exist_ok=True)
    with NamedTemporaryFile(
        mode="w",
        delete=False,
        dir=str(path.parent),
        prefix=f".{path.name}.",
        suffix=".tmp",
        encoding="utf-8",
        newline=newline,
    ) as tmp:
        tmp_name = tmp.name
        try:
            write_fn(tmp)
            tmp.flush()
            os.fsync(tmp.fileno())
        except BaseException:
            tmp.close()
            os.unlink(tmp_name)
            raise
    return tmp_name


def atomic_write(path: Path, write_fn: Writer, *, newline: Optional[str] = "\n") -> None:
    """Write through a temp file in the target directory, then replace the target.

    A failure inside ``write_fn`` removes the temp file and leaves any existing
    file at ``path`` untouched.
    """

    path = Path(path)
    os.replace(_stage(path, write_fn, newline), path)
    logger.debug("Wrote file", extra={"path": str(path)})


def write_all(writes: Sequence[PendingWrite]) -> None:
    """Stage every file first and replace the targets only once all are staged.

    Targets are replaced in the given order. If staging or a replace fails, the
    remaining temp files are removed and the targets not yet replaced keep
    their previous content.
    """

    staged: List[Tuple[str, Path]] = []
    try:
        for path, write_fn, newline in writes:
            path = Path(path)
            staged.append((_stage(path, write_fn, newline), path))
        while staged:
            tmp_name, path = staged[0]
            os.replace(tmp_name, path)
            staged.pop(0)
            logger.debug("Wrote file", extra={"path": str(path)})
    except BaseException:
        for tmp_name, _ in staged:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)
        raise


def json_write(path: Path, payload: Any) -> PendingWrite:
    def writer(tmp: IO[str]) -> None:
        json.dump(payload, tmp, indent=2, ensure_ascii=False)
        tmp.write("\n")

    return Path(path), writer, "\n"


def text_write(path: Path, text: str) -> PendingWrite:
    def writer(tmp: IO[str]) -> None:
        tmp.write(text)

    return Path(path), writer, ""


def write_json(path: Path, payload: Any) -> None:
    path, writer, newline = json_write(path, payload)
    atomic_write(path, writer, newline=newline)


def write_text(path: Path, text: str) -> None:
    path, writer, newline = text_write(path, text)
    atomic_write(path, writer, newline=newline)


__all__ = [
    "atomic_write",
    "ensure_collection",
    "json_write",
    "load_collection",
    "load_json",
    "read_text",
    "text_write",
    "write_all",
    "write_json",
    "write_text",
]
