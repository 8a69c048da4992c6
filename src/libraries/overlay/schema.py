"""JSON Schema validation for overlay source files."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Any, Mapping

import jsonschema
from pydantic import BaseModel, Field

from libraries.overlay.loader import (
    OverlaySourceError,
    list_json5_files,
    load_json5_file,
    load_json_file,
)

SCHEMAS_DIR = Path(__file__).resolve().parent / "schemas"

SOURCE_DIRS: tuple[str, ...] = ("overrides", "additions")

# Override file -> addition file for the same entity class.
DUPLICATE_ID_PAIRS: tuple[tuple[str, str], ...] = (
    ("tasks", "tasksAdd"),
    ("items", "itemsAdd"),
)


@dataclass(frozen=True)
class SchemaConfig:
    pattern: str
    schema_file: str


SCHEMA_CONFIGS: tuple[SchemaConfig, ...] = (
    SchemaConfig("tasks.json5", "task-override.schema.json"),
    SchemaConfig("tasksAdd.json5", "task-additions.schema.json"),
    SchemaConfig("editions.json5", "edition.schema.json"),
    SchemaConfig("storyChapters.json5", "story-chapter.schema.json"),
    SchemaConfig("itemsAdd.json5", "item-additions.schema.json"),
)


class SchemaValidationResult(BaseModel):
    """Outcome of validating a single source file."""

    file: str
    valid: bool
    errors: list[str] = Field(default_factory=list)


class DuplicateId(BaseModel):
    entity_id: str
    override_file: str
    addition_file: str


@lru_cache(maxsize=None)
def _validator_for(schema_file: str) -> jsonschema.protocols.Validator:
    schema = load_json_file(SCHEMAS_DIR / schema_file)
    validator_cls = jsonschema.validators.validator_for(schema)
    validator_cls.check_schema(schema)
    return validator_cls(schema)


def schema_for(filename: str) -> str | None:
    """Return the schema file registered for *filename*, if any."""

    for config in SCHEMA_CONFIGS:
        if config.pattern == filename:
            return config.schema_file
    return None


def _format_error(error: jsonschema.ValidationError) -> str:
    path = "/".join(str(part) for part in error.absolute_path)
    return f"/{path}: {error.message}"


def validate_data(data: Any, schema_file: str) -> list[str]:
    """Return every schema violation of *data*, sorted by location."""

    validator = _validator_for(schema_file)
    errors = sorted(validator.iter_errors(data), key=lambda err: list(map(str, err.absolute_path)))
    return [_format_error(error) for error in errors]


def validate_file(file_path: Path, display_path: str | None = None) -> SchemaValidationResult:
    """Validate one JSON5 file against the schema registered for its name."""

    display = display_path or file_path.name
    try:
        data = load_json5_file(file_path, allow_duplicate_keys=False)
    except OverlaySourceError as exc:
        return SchemaValidationResult(file=display, valid=False, errors=[str(exc)])

    if isinstance(data, Mapping) and not data:
        return SchemaValidationResult(file=display, valid=True)

    schema_file = schema_for(file_path.name)
    if schema_file is None:
        return SchemaValidationResult(file=display, valid=True)

    errors = validate_data(data, schema_file)
    return SchemaValidationResult(file=display, valid=not errors, errors=errors)


def validate_source_files(data_dir: Path) -> list[SchemaValidationResult]:
    """Validate every JSON5 file under the overrides and additions directories."""

    results: list[SchemaValidationResult] = []
    for dirname in SOURCE_DIRS:
        for path in list_json5_files(data_dir / dirname):
            results.append(validate_file(path, f"{dirname}/{path.name}"))
    return results


def _ids(data: Any) -> set[str]:
    return set(data) if isinstance(data, Mapping) else set()


def find_duplicate_ids(data_dir: Path) -> list[DuplicateId]:
    """Return ids declared both as an override and as an addition.

    Unreadable files are ignored here; :func:`validate_source_files` reports
    them.
    """

    duplicates: list[DuplicateId] = []
    for override_name, addition_name in DUPLICATE_ID_PAIRS:
        override_path = data_dir / "overrides" / f"{override_name}.json5"
        addition_path = data_dir / "additions" / f"{addition_name}.json5"
        if not (override_path.is_file() and addition_path.is_file()):
            continue
        try:
            overrides = load_json5_file(override_path)
            additions = load_json5_file(addition_path)
        except OverlaySourceError:
            continue
        for entity_id in sorted(_ids(overrides) & _ids(additions)):
            duplicates.append(
                DuplicateId(
                    entity_id=entity_id,
                    override_file=f"overrides/{override_path.name}",
                    addition_file=f"additions/{addition_path.name}",
                )
            )
    return duplicates


def invalid_results(results: Iterable[SchemaValidationResult]) -> list[SchemaValidationResult]:
    return [result for result in results if not result.valid]


__all__ = [
    "DuplicateId",
    "SCHEMA_CONFIGS",
    "SCHEMAS_DIR",
    "SchemaConfig",
    "SchemaValidationResult",
    "find_duplicate_ids",
    "invalid_results",
    "schema_for",
    "validate_data",
    "validate_file",
    "validate_source_files",
]
