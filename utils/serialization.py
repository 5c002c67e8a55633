"""Shared helpers for serialising catalog trees to and from JSON."""

from __future__ import annotations

import contextlib
import json
import os
import tempfile
from dataclasses import asdict, is_dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Dict

from utils.error_handling import StorageError


def prepare_for_json(value: Any) -> Any:
    """Recursively normalise objects into JSON-serialisable primitives."""

    if isinstance(value, dict):
        return {str(key): prepare_for_json(val) for key, val in value.items()}

    if isinstance(value, (list, tuple, set)):
        return [prepare_for_json(item) for item in value]

    if isinstance(value, Path):
        return str(value)

    if isinstance(value, Enum):
        return value.value

    if is_dataclass(value) and not isinstance(value, type):
        return prepare_for_json(asdict(value))

    return value


def json_dumps(
    value: Any,
    *,
    ensure_ascii: bool = False,
    sort_keys: bool = False,
    indent: int | None = None,
) -> str:
    """Serialise ``value`` to JSON after normalisation."""

    normalised = prepare_for_json(value)
    return json.dumps(normalised, ensure_ascii=ensure_ascii, sort_keys=sort_keys, indent=indent)


def write_text_atomic(path: Path, content: str) -> None:
    """Write ``content`` next to ``path`` first, then move it into place."""

    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=path.parent)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as handle:
            handle.write(content)
        os.replace(tmp_name, path)
    except BaseException:
        with contextlib.suppress(FileNotFoundError):
            os.unlink(tmp_name)
        raise


def load_catalog(path: Path) -> Dict[str, Any]:
    """Read a catalog tree file."""

    path = Path(path)
    try:
        with path.open("r", encoding="utf-8") as handle:
            payload = json.load(handle)
    except FileNotFoundError as exc:
        raise StorageError(f"Catalog file not found: {path}", {"path": str(path)}) from exc
    except json.JSONDecodeError as exc:
        raise StorageError(f"Invalid JSON in catalog {path}: {exc}", {"path": str(path)}) from exc
    except OSError as exc:
        raise StorageError(f"Unable to read catalog {path}: {exc}", {"path": str(path)}) from exc

    if not isinstance(payload, dict):
        raise StorageError(f"Catalog {path} must contain a JSON object", {"path": str(path)})
    return payload


def save_catalog(path: Path, tree: Dict[str, Any]) -> int:
    """Persist ``tree`` to ``path`` and return the number of bytes written."""

    if not tree:
        raise StorageError("Downloaded data appears to be empty", {"path": str(path)})

    content = json_dumps(tree, indent=2)
    try:
        write_text_atomic(Path(path), content)
    except OSError as exc:
        raise StorageError(f"Unable to write catalog {path}: {exc}", {"path": str(path)}) from exc
    return Path(path).stat().st_size


__all__ = [
    "prepare_for_json",
    "json_dumps",
    "write_text_atomic",
    "load_catalog",
    "save_catalog",
]
