"""Compile overlay source files into the distributable ``overlay.json``."""

from __future__ import annotations

import hashlib
import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import structlog
from pydantic import BaseModel, Field

from libraries.overlay.loader import load_all_json5_from_dir
from libraries.overlay.modes import MODES_DIRNAME, load_mode_overrides

logger = structlog.get_logger(__name__)

OVERLAY_FILENAME = "overlay.json"
META_KEY = "$meta"

__all__ = [
    "BuildResult",
    "META_KEY",
    "OVERLAY_FILENAME",
    "build_overlay",
    "compute_sha256",
    "load_source_data",
    "render_overlay",
]


class BuildResult(BaseModel):
    """Summary of a completed overlay build."""

    output_path: Path
    version: str
    generated: str
    sha256: str
    entity_counts: dict[str, int] = Field(default_factory=dict)

    @property
    def short_hash(self) -> str:
        return self.sha256[:16]


def compute_sha256(content: str) -> str:
    return hashlib.sha256(content.encode("utf-8")).hexdigest()


def _dump(document: dict[str, Any]) -> str:
    return json.dumps(document, indent=2, ensure_ascii=False)


def _ensure_parent(path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)


def load_source_data(data_dir: Path) -> dict[str, Any]:
    """Load overrides (empty files skipped) and additions (empty files kept).

    Mode-specific overrides, when present, are exposed under ``modes``.
    """

    overrides_dir = data_dir / "overrides"
    data: dict[str, Any] = {}
    data.update(load_all_json5_from_dir(overrides_dir))
    data.update(load_all_json5_from_dir(data_dir / "additions", skip_empty=False))

    if (overrides_dir / MODES_DIRNAME).is_dir():
        data["modes"] = load_mode_overrides(overrides_dir)
    return data


def render_overlay(
    data: dict[str, Any], version: str, generated: datetime | None = None
) -> tuple[str, dict[str, Any]]:
    """Attach ``$meta`` to *data* and return the final JSON text and document.

    The hash covers the document as rendered before ``sha256`` is added.
    """

    timestamp = (generated or datetime.now(timezone.utc)).astimezone(timezone.utc)
    document: dict[str, Any] = dict(data)
    document[META_KEY] = {
        "version": version,
        "generated": timestamp.isoformat(timespec="milliseconds").replace("+00:00", "Z"),
    }
    document[META_KEY]["sha256"] = compute_sha256(_dump(document))
    return _dump(document), document


def _count_entities(data: dict[str, Any]) -> dict[str, int]:
    return {
        key: len(value)
        for key, value in data.items()
        if key != "modes" and isinstance(value, dict)
    }


def build_overlay(data_dir: Path, dist_dir: Path, version: str) -> BuildResult:
    """Build ``<dist_dir>/overlay.json`` from the sources under *data_dir*."""

    data = load_source_data(data_dir)
    content, document = render_overlay(data, version)

    output_path = dist_dir / OVERLAY_FILENAME
    _ensure_parent(output_path)
    output_path.write_text(content, encoding="utf-8")

    meta = document[META_KEY]
    result = BuildResult(
        output_path=output_path,
        version=meta["version"],
        generated=meta["generated"],
        sha256=meta["sha256"],
        entity_counts=_count_entities(data),
    )
    logger.info(
        "overlay.build.complete",
        path=str(output_path),
        version=result.version,
        sha256=result.short_hash,
        entities=result.entity_counts,
    )
    return result
