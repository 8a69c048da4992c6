from __future__ import annotations

import json
from pathlib import Path

import jsonschema
import pytest

from libraries.overlay.schema import (
    SCHEMA_CONFIGS,
    SCHEMAS_DIR,
    find_duplicate_ids,
    invalid_results,
    schema_for,
    validate_data,
    validate_file,
    validate_source_files,
)


@pytest.mark.parametrize("config", SCHEMA_CONFIGS, ids=lambda config: config.pattern)
def test_bundled_schemas_are_valid(config) -> None:
    schema = json.loads((SCHEMAS_DIR / config.schema_file).read_text(encoding="utf-8"))

    jsonschema.validators.validator_for(schema).check_schema(schema)


def test_schema_for() -> None:
    assert schema_for("tasks.json5") == "task-override.schema.json"
    assert schema_for("hideout.json5") is None


def test_validate_data_reports_paths() -> None:
    errors = validate_data({"t1": {"minPlayerLevel": "ten"}}, "task-override.schema.json")

    assert len(errors) == 1
    assert errors[0].startswith("/t1")


def test_null_task_override_is_allowed() -> None:
    assert validate_data({"t1": None}, "task-override.schema.json") == []


def test_objective_override_must_not_restate_id() -> None:
    data = {"t1": {"objectives": {"o1": {"id": "o1", "count": 2}}}}

    assert validate_data(data, "task-override.schema.json")


def test_validate_file_valid_and_invalid(tmp_path: Path) -> None:
    good = tmp_path / "tasks.json5"
    good.write_text("{ t1: { minPlayerLevel: 10, map: null } }", encoding="utf-8")
    bad_dir = tmp_path / "bad"
    bad_dir.mkdir()
    bad = bad_dir / "tasksAdd.json5"
    bad.write_text("{ t2: { id: 't2', name: 'Missing bits' } }", encoding="utf-8")

    assert validate_file(good).valid is True
    result = validate_file(bad, "additions/tasksAdd.json5")
    assert result.valid is False
    assert result.file == "additions/tasksAdd.json5"
    assert any("required" in error for error in result.errors)


def test_validate_file_accepts_empty_and_unknown_files(tmp_path: Path) -> None:
    empty = tmp_path / "tasks.json5"
    empty.write_text("{}", encoding="utf-8")
    unknown = tmp_path / "hideout.json5"
    unknown.write_text("{ station: { anything: [1, 2] } }", encoding="utf-8")

    assert validate_file(empty).valid is True
    assert validate_file(unknown).valid is True


def test_validate_file_rejects_duplicate_keys(tmp_path: Path) -> None:
    path = tmp_path / "tasks.json5"
    path.write_text('{ "t1": {}, "t1": { minPlayerLevel: 1 } }', encoding="utf-8")

    result = validate_file(path)

    assert result.valid is False
    assert result.errors


def test_validate_source_files_walks_both_directories(data_dir: Path) -> None:
    results = validate_source_files(data_dir)

    assert [result.file for result in results] == [
        "overrides/items.json5",
        "overrides/tasks.json5",
        "overrides/traders.json5",
        "additions/itemsAdd.json5",
        "additions/tasksAdd.json5",
    ]
    assert invalid_results(results) == []


def test_find_duplicate_ids(data_dir: Path) -> None:
    assert find_duplicate_ids(data_dir) == []

    (data_dir / "overrides" / "tasks.json5").write_text(
        "{ 'custom-task': { minPlayerLevel: 1 } }", encoding="utf-8"
    )

    duplicates = find_duplicate_ids(data_dir)

    assert [duplicate.entity_id for duplicate in duplicates] == ["custom-task"]
    assert duplicates[0].override_file == "overrides/tasks.json5"
    assert duplicates[0].addition_file == "additions/tasksAdd.json5"


def test_repository_sources_are_valid() -> None:
    source_dir = Path(__file__).resolve().parents[2]

    results = validate_source_files(source_dir)

    assert "overrides/tasks.json5" in [result.file for result in results]
    assert invalid_results(results) == []
    assert find_duplicate_ids(source_dir) == []
