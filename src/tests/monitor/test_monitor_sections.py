from __future__ import annotations

from typing import Any

import pytest

from apps.monitor.web.sections import (
    MAX_CELL_LENGTH,
    Snapshot,
    build_editions_sections,
    build_override_sections,
    build_story_chapter_sections,
    build_summary,
    build_task_addition_sections,
    build_task_sections,
    format_cell,
    normalize_view,
    push_row,
    create_section,
    summary_keys,
)
from libraries.reconcile.comparator import MISSING
from libraries.reconcile.rules import DisabledPolicy, ReconcilePolicy


def _overrides() -> dict[str, Any]:
    return {
        "task-debut": {
            "minPlayerLevel": 10,
            "objectives": {
                "obj-1": {"description": "Kill Scavs"},
                "obj-gone": {"count": 1},
            },
            "objectivesAdd": [{"id": "obj-new", "description": "Plant marker"}],
        },
        "task-shooter": {"minPlayerLevel": 10},
        "task-ghost": {"name": "Ghost"},
        "task-null": None,
    }


def test_task_sections_from_verdicts(api_tasks: list[dict[str, Any]]) -> None:
    diff, added, missing, disabled = build_task_sections(_overrides(), api_tasks)

    assert diff.columns == ["Task", "Field", "tarkov.dev", "Overlay", "Status"]
    assert diff.rows == [
        ["Debut", "minPlayerLevel", "45", "10", "override"],
        ["Debut", "objective:obj-1.description", "Eliminate Scavs", "Kill Scavs", "override"],
        ["Debut", "objective:obj-gone", "missing", '{"count":1}', "missing"],
        ["Shooter Born in Heaven", "minPlayerLevel", "10", "10", "same"],
        [
            "Shooter Born in Heaven",
            "map",
            '{"id":"woods","name":"Woods"}',
            "undefined",
            "override",
        ],
    ]
    assert added.rows == [["Debut", "Plant marker", "obj-new", "missing from api"]]
    assert missing.rows == [["Ghost", "task-ghost"]]
    assert disabled.rows == []


def test_added_objective_present_upstream(api_tasks: list[dict[str, Any]]) -> None:
    overrides = {
        "task-debut": {"objectivesAdd": [{"id": "x", "description": "Eliminate Scavs"}]}
    }

    _, added, _, _ = build_task_sections(overrides, api_tasks)

    assert added.rows == [["Debut", "Eliminate Scavs", "x", "in api"]]


@pytest.mark.parametrize(
    "policy, verdict",
    [
        (ReconcilePolicy(), "NEEDED"),
        (ReconcilePolicy(disabled_policy=DisabledPolicy.RESOLVE), "REMOVED_FROM_API"),
    ],
)
def test_disabled_tasks_section(
    api_tasks: list[dict[str, Any]], policy: ReconcilePolicy, verdict: str
) -> None:
    overrides = {"task-shooter": {"disabled": True, "minPlayerLevel": 99}}

    diff, _, _, disabled = build_task_sections(overrides, api_tasks, policy=policy)

    assert diff.rows == []
    assert len(disabled.rows) == 1
    name, task_id, status, note = disabled.rows[0]
    assert (name, task_id, status) == ("Shooter Born in Heaven", "task-shooter", verdict)
    assert note.startswith("disabled:")


def test_sections_truncate_at_max_rows() -> None:
    overrides = {f"gone-{index}": {"name": f"Gone {index}"} for index in range(251)}

    _, _, missing, _ = build_task_sections(overrides, [])

    assert len(missing.rows) == 250
    assert missing.truncated is True


def test_push_row_respects_custom_limit() -> None:
    section = create_section("Rows", ["A"])

    for index in range(3):
        push_row(section, [index], max_rows=2)

    assert section.rows == [[0], [1]]
    assert section.truncated


def test_format_cell() -> None:
    assert format_cell("plain text") == "plain text"
    assert format_cell(MISSING) == "undefined"
    assert format_cell(None) == "null"
    assert format_cell({"b": 1, "a": [1, 2]}) == '{"b":1,"a":[1,2]}'

    long_cell = format_cell("x" * 500)
    assert len(long_cell) == MAX_CELL_LENGTH + 1
    assert long_cell.endswith("…")


def test_task_addition_sections(api_tasks: list[dict[str, Any]]) -> None:
    additions = {
        "custom-task": {
            "id": "custom-task",
            "name": "Custom Task",
            "trader": {"name": "Prapor"},
            "map": {"id": "customs", "name": "Customs"},
            "wikiLink": "https://example.invalid/wiki/Custom_Task",
        },
        "debut-copy": {"id": "debut-copy", "name": "Debut", "map": None},
    }

    [unknown] = build_task_addition_sections(additions, "pve")
    [checked] = build_task_addition_sections(additions, "regular", api_tasks)

    assert unknown.title == "Task Additions (pve)"
    assert unknown.rows[0] == [
        "Custom Task",
        "custom-task",
        "Prapor",
        "Customs",
        "https://example.invalid/wiki/Custom_Task",
        "unknown",
    ]
    assert [row[-1] for row in checked.rows] == ["not in api", "in api"]
    assert checked.rows[1][3] == "-"


def test_override_sections() -> None:
    [section] = build_override_sections(
        "Items", {"item-1": {"name": "Salewa", "weight": 0.5}, "item-2": {}}
    )

    assert section.title == "Items"
    assert section.rows == [
        ["item-1", "name", "Salewa"],
        ["item-1", "weight", "0.5"],
        ["item-2", "(empty)", ""],
    ]


def test_editions_sections() -> None:
    editions = {
        "standard": {
            "id": "standard",
            "title": "Standard",
            "defaultStashLevel": 1,
            "traderRepBonus": {"prapor": 0.2, "therapist": 0.2},
            "exclusiveTaskIds": ["task-a"],
        }
    }

    [section] = build_editions_sections(editions)

    assert section.rows == [["Standard", "standard", 1, "2 traders", 1]]


def test_story_chapter_sections_are_ordered() -> None:
    chapters = {
        "second": {
            "id": "second",
            "name": "Second",
            "order": 2,
            "objectives": [{"id": "a"}, {"id": "b"}],
            "chapterRequirements": [{"id": "first", "name": "First"}],
        },
        "first": {"id": "first", "name": "First", "order": 1},
    }

    [section] = build_story_chapter_sections(chapters)

    assert section.rows == [
        ["First", "first", 1, 0, ""],
        ["Second", "second", 2, 2, "First"],
    ]


def _api(tasks: list[dict[str, Any]] | None = None) -> dict[str, Snapshot]:
    return {
        "regular": Snapshot(data=tasks, extra={"count": len(tasks or [])}),
        "pve": Snapshot(extra={"count": 0}),
    }


def test_summary_reports_missing_overlay() -> None:
    summary = build_summary(
        "tasks", None, overlay=Snapshot(error="No such file"), api=_api()
    )

    assert summary["view"] == "tasks"
    assert summary["mode"] == "regular"
    assert summary["error"] == "Overlay data not loaded: No such file"
    assert summary["sections"] == []


def test_summary_reports_missing_api_data() -> None:
    overlay = Snapshot(data={"tasks": {}})

    summary = build_summary("tasks", "pve", overlay=overlay, api=_api())

    assert summary["error"] == "tarkov.dev pve data not loaded"


def test_summary_for_unknown_view() -> None:
    summary = build_summary("bogus", None, overlay=Snapshot(), api=_api())

    assert summary["error"] == "Unknown view"


def test_task_summary_merges_mode_overrides(api_tasks: list[dict[str, Any]]) -> None:
    overlay = Snapshot(
        data={
            "tasks": {"task-debut": {"minPlayerLevel": 10}},
            "modes": {"pve": {"tasks": {"task-debut": {"minPlayerLevel": 45}}}},
        }
    )
    api = {
        "regular": Snapshot(data=api_tasks),
        "pve": Snapshot(data=api_tasks),
    }

    regular = build_summary("tasks", "regular", overlay=overlay, api=api)
    pve = build_summary("tasks", "pve", overlay=overlay, api=api)

    assert regular["error"] is None
    assert regular["title"] == "Task Overrides"
    assert regular["sections"][0]["rows"][0][-1] == "override"
    assert pve["sections"][0]["rows"][0][-1] == "same"


def test_summary_for_mode_agnostic_view() -> None:
    overlay = Snapshot(data={"items": {"item-1": {"name": "Salewa"}}})

    summary = build_summary("items", "pve", overlay=overlay, api=_api())

    assert summary["mode"] is None
    assert summary["api"] is None
    assert summary["title"] == "Item Overrides"
    assert summary["sections"][0]["title"] == "Items"
    assert summary["sections"][0]["rows"] == [["item-1", "name", "Salewa"]]


def test_normalize_view_and_summary_keys() -> None:
    assert normalize_view("editions") == "editions"
    assert normalize_view("nope") == "tasks"
    assert normalize_view(None) == "tasks"

    keys = list(summary_keys())
    assert ("tasks", "regular") in keys
    assert ("tasksAdd", "pve") in keys
    assert ("items", None) in keys
    assert len(keys) == 10


def test_editions_and_chapters_tolerate_malformed_values() -> None:
    [editions] = build_editions_sections(
        {"e": {"title": "Edge", "exclusiveTaskIds": 3, "traderRepBonus": [1]}}
    )
    [chapters] = build_story_chapter_sections(
        {
            "b": {"name": "B", "order": "2", "objectives": 5, "chapterRequirements": "x"},
            "a": {"name": "A", "order": 1},
            "c": {"name": "C"},
        }
    )

    assert editions.rows == [["Edge", "e", None, "0 traders", 0]]
    assert [row[0] for row in chapters.rows] == ["A", "B", "C"]
    assert chapters.rows[1] == ["B", "b", "2", 0, ""]
