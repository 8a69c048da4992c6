"""Load JSON5 source files from the overlay data directory."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import json5
import structlog

logger = structlog.get_logger(__name__)

JSON5_SUFFIX = ".json5"

__all__ = [
    "JSON5_SUFFIX",
    "OverlaySourceError",
    "list_json5_files",
    "load_all_json5_from_dir",
    "load_json5_file",
    "load_json_file",
]


class OverlaySourceError(RuntimeError):
    """Raised when a source file cannot be read or parsed."""

    def __init__(self, path: Path, message: str) -> None:
        super().__init__(f"{path}: {message}")
        self.path = path


def load_json5_file(file_path: str | Path, *, allow_duplicate_keys: bool = True) -> Any:
    """Parse *file_path* as JSON5.

    Duplicate keys inside one object are rejected when
    ``allow_duplicate_keys`` is ``False``.
    """

    path = Path(file_path)
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise OverlaySourceError(path, f"unable to read file ({exc.strerror or exc})") from exc

    try:
        return json5.loads(text, allow_duplicate_keys=allow_duplicate_keys)
    except ValueError as exc:
        raise OverlaySourceError(path, str(exc)) from exc


def load_json_file(file_path: str | Path) -> Any:
    path = Path(file_path)
    try:
        with path.open("r", encoding="utf-8") as handle:
            return json.load(handle)
    except OSError as exc:
        raise OverlaySourceError(path, f"unable to read file ({exc.strerror or exc})") from exc
    except json.JSONDecodeError as exc:
        raise OverlaySourceError(path, f"invalid JSON: {exc}") from exc


def list_json5_files(directory: str | Path) -> list[Path]:
    """Return the ``*.json5`` files in *directory* sorted by name."""

    root = Path(directory)
    if not root.is_dir():
        return []
    return sorted(path for path in root.iterdir() if path.is_file() and path.suffix == JSON5_SUFFIX)


def load_all_json5_from_dir(
    directory: str | Path, *, skip_empty: bool = True
) -> dict[str, dict[str, Any]]:
    """Load every JSON5 file in *directory* keyed by file stem.

    Files holding an empty object are skipped when *skip_empty* is set.
    """

    result: dict[str, dict[str, Any]] = {}
    for path in list_json5_files(directory):
        data = load_json5_file(path)
        if not isinstance(data, dict):
            raise OverlaySourceError(path, "top-level value must be an object")
        if skip_empty and not data:
            logger.debug("overlay.source.skip_empty", path=str(path))
            continue
        result[path.stem] = data
    return result
