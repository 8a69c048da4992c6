"""Game-mode specific overrides layered over the shared task overrides."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Mapping

from libraries.overlay.loader import load_all_json5_from_dir

GAME_MODES: tuple[str, ...] = ("regular", "pve")
DEFAULT_GAME_MODE = "regular"
MODES_DIRNAME = "modes"

__all__ = [
    "DEFAULT_GAME_MODE",
    "GAME_MODES",
    "load_mode_overrides",
    "merge_task_overrides",
    "normalize_mode",
]


def normalize_mode(mode: str | None) -> str:
    """Return *mode* when it is a known game mode, otherwise the default."""

    if mode and mode in GAME_MODES:
        return mode
    return DEFAULT_GAME_MODE


def _merge_task(shared: Mapping[str, Any], specific: Mapping[str, Any]) -> dict[str, Any]:
    merged = dict(shared)
    for key, value in specific.items():
        current = merged.get(key)
        if key == "objectives" and isinstance(current, Mapping) and isinstance(value, Mapping):
            objectives = {obj_id: dict(obj) if isinstance(obj, Mapping) else obj
                          for obj_id, obj in current.items()}
            for obj_id, obj in value.items():
                existing = objectives.get(obj_id)
                if isinstance(existing, dict) and isinstance(obj, Mapping):
                    existing.update(obj)
                else:
                    objectives[obj_id] = obj
            merged[key] = objectives
        elif key == "objectivesAdd" and isinstance(current, list) and isinstance(value, list):
            merged[key] = [*current, *value]
        else:
            merged[key] = value
    return merged


def merge_task_overrides(
    shared: Mapping[str, Any] | None, specific: Mapping[str, Any] | None
) -> dict[str, Any]:
    """Overlay mode-specific task overrides onto the shared ones.

    Mode-specific fields win, ``objectives`` maps merge per objective and
    ``objectivesAdd`` lists concatenate. Tasks present only on one side are
    kept as they are.
    """

    merged: dict[str, Any] = dict(shared or {})
    for task_id, task in (specific or {}).items():
        current = merged.get(task_id)
        if isinstance(current, Mapping) and isinstance(task, Mapping):
            merged[task_id] = _merge_task(current, task)
        else:
            merged[task_id] = task
    return merged


def load_mode_overrides(overrides_dir: str | Path) -> dict[str, dict[str, dict[str, Any]]]:
    """Load ``<overrides_dir>/modes/<mode>/*.json5`` for every known mode."""

    root = Path(overrides_dir) / MODES_DIRNAME
    return {mode: load_all_json5_from_dir(root / mode) for mode in GAME_MODES}
