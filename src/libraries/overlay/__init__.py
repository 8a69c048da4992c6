"""Overlay source store: loading, game modes, validation and builds."""

from libraries.overlay.build import BuildResult, build_overlay, compute_sha256
from libraries.overlay.loader import (
    OverlaySourceError,
    list_json5_files,
    load_all_json5_from_dir,
    load_json5_file,
    load_json_file,
)
from libraries.overlay.modes import (
    DEFAULT_GAME_MODE,
    GAME_MODES,
    load_mode_overrides,
    merge_task_overrides,
    normalize_mode,
)
from libraries.overlay.schema import (
    SCHEMA_CONFIGS,
    SchemaValidationResult,
    find_duplicate_ids,
    validate_file,
    validate_source_files,
)

__all__ = [
    "BuildResult",
    "build_overlay",
    "compute_sha256",
    "OverlaySourceError",
    "list_json5_files",
    "load_all_json5_from_dir",
    "load_json5_file",
    "load_json_file",
    "DEFAULT_GAME_MODE",
    "GAME_MODES",
    "load_mode_overrides",
    "merge_task_overrides",
    "normalize_mode",
    "SCHEMA_CONFIGS",
    "SchemaValidationResult",
    "find_duplicate_ids",
    "validate_file",
    "validate_source_files",
]
