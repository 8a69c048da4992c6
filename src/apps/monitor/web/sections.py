"""Table sections rendered by the monitor dashboard.

Each view of the overlay is turned into a list of :class:`Section` objects.
The task view is derived from reconciler verdicts so that the dashboard and
the ``overlay check`` command always agree on what an override still does.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Iterator, Mapping, Sequence

from pydantic import BaseModel, Field

from libraries.overlay.modes import GAME_MODES, merge_task_overrides, normalize_mode
from libraries.reconcile.comparator import MISSING
from libraries.reconcile.models import DetailStatus, Verdict, VerdictStatus
from libraries.reconcile.reconciler import index_canonical, reconcile, reconcile_addition
from libraries.reconcile.rules import (
    DISABLED_FIELD,
    OBJECTIVES_ADD_FIELD,
    OBJECTIVES_FIELD,
    ReconcilePolicy,
)

MAX_ROWS = 250
MAX_CELL_LENGTH = 220
DEFAULT_VIEW = "tasks"

_OBJECTIVE_PREFIX = "objective:"
_ADDED_PREFIX = f"{OBJECTIVES_ADD_FIELD}:"

ROW_STATUS = {
    DetailStatus.NEEDED: "override",
    DetailStatus.FIXED: "same",
    DetailStatus.CHECK: "missing",
    DetailStatus.INFO: "info",
}


@dataclass(frozen=True)
class ViewConfig:
    title: str
    mode_aware: bool = False
    source_key: str = ""
    label: str = ""


VIEW_CONFIG: dict[str, ViewConfig] = {
    "tasks": ViewConfig("Task Overrides", mode_aware=True, source_key="tasks"),
    "tasksAdd": ViewConfig("Task Additions", mode_aware=True, source_key="tasksAdd"),
    "items": ViewConfig("Item Overrides", source_key="items", label="Items"),
    "itemsAdd": ViewConfig("Item Additions", source_key="itemsAdd", label="Item Additions"),
    "hideout": ViewConfig("Hideout Overrides", source_key="hideout", label="Hideout"),
    "traders": ViewConfig("Trader Overrides", source_key="traders", label="Traders"),
    "editions": ViewConfig("Editions", source_key="editions"),
    "storyChapters": ViewConfig("Story Chapters", source_key="storyChapters"),
}


class Section(BaseModel):
    title: str
    columns: list[str]
    rows: list[list[Any]] = Field(default_factory=list)
    truncated: bool = False


@dataclass
class Snapshot:
    """Latest data read from one source together with its freshness."""

    data: Any = None
    updated_at: str | None = None
    error: str | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    @property
    def loaded(self) -> bool:
        return self.data is not None

    def status(self) -> dict[str, Any]:
        return {"updatedAt": self.updated_at, "error": self.error, **self.extra}


def normalize_view(view: str | None) -> str:
    """Return *view* when it is known, otherwise the task view."""

    if view and view in VIEW_CONFIG:
        return view
    return DEFAULT_VIEW


def create_section(title: str, columns: Sequence[str]) -> Section:
    return Section(title=title, columns=list(columns))


def push_row(section: Section, row: Sequence[Any], *, max_rows: int = MAX_ROWS) -> None:
    """Append *row* unless the section is full, in which case flag it."""

    if len(section.rows) >= max_rows:
        section.truncated = True
        return
    section.rows.append(list(row))


def format_cell(value: Any) -> str:
    """Render *value* for a table cell.

    Strings are shown verbatim, everything else as compact JSON, and long
    renderings are cut at :data:`MAX_CELL_LENGTH` characters.
    """

    if value is MISSING:
        text = "undefined"
    elif isinstance(value, str):
        text = value
    else:
        text = json.dumps(value, separators=(",", ":"), ensure_ascii=False)
    if len(text) > MAX_CELL_LENGTH:
        return text[:MAX_CELL_LENGTH] + "…"
    return text


def _mapping(value: Any) -> Mapping[str, Any]:
    return value if isinstance(value, Mapping) else {}


def _sequence(value: Any) -> Sequence[Any]:
    if isinstance(value, Sequence) and not isinstance(value, (str, bytes)):
        return value
    return []


def _chapter_order(item: tuple[str, Mapping[str, Any]]) -> tuple[int, float, str]:
    order = item[1].get("order")
    if isinstance(order, (int, float)) and not isinstance(order, bool):
        return 0, order, ""
    if order is None:
        return 2, 0, ""
    return 1, 0, str(order)


def _objectives_by_id(record: Mapping[str, Any]) -> dict[str, Mapping[str, Any]]:
    objectives = record.get(OBJECTIVES_FIELD) or []
    if not isinstance(objectives, list):
        return {}
    return {
        str(objective.get("id")): objective
        for objective in objectives
        if isinstance(objective, Mapping)
    }


def _diff_rows(
    task_name: str,
    patch: Mapping[str, Any],
    canonical: Mapping[str, Any],
    verdict: Verdict,
) -> Iterator[list[str]]:
    api_objectives = _objectives_by_id(canonical)
    patch_objectives = _mapping(patch.get(OBJECTIVES_FIELD))

    for detail in verdict.details:
        if detail.field.startswith(_ADDED_PREFIX):
            continue
        status = ROW_STATUS[detail.status]

        if detail.field.startswith(_OBJECTIVE_PREFIX):
            reference = detail.field[len(_OBJECTIVE_PREFIX):]
            objective_id, separator, sub_field = reference.partition(":")
            overlay_objective = patch_objectives.get(objective_id, MISSING)
            api_objective = api_objectives.get(objective_id)
            if not separator:
                api_cell = "missing" if api_objective is None else format_cell(api_objective)
                yield [
                    task_name,
                    f"objective:{objective_id}",
                    api_cell,
                    format_cell(overlay_objective),
                    status,
                ]
                continue
            yield [
                task_name,
                f"objective:{objective_id}.{sub_field}",
                format_cell(_mapping(api_objective).get(sub_field, MISSING)),
                format_cell(_mapping(overlay_objective).get(sub_field, MISSING)),
                status,
            ]
            continue

        yield [
            task_name,
            detail.field,
            format_cell(canonical.get(detail.field, MISSING)),
            format_cell(patch.get(detail.field, MISSING)),
            status,
        ]


def _added_rows(
    task_name: str, patch: Mapping[str, Any], verdict: Verdict
) -> Iterator[list[str]]:
    statuses = {
        detail.field[len(_ADDED_PREFIX):]: detail.status
        for detail in verdict.details
        if detail.field.startswith(_ADDED_PREFIX)
    }
    added = patch.get(OBJECTIVES_ADD_FIELD) or []
    if not isinstance(added, list):
        return
    for entry in added:
        if not isinstance(entry, Mapping):
            continue
        key = str(entry.get("id") or entry.get("description"))
        status = statuses.get(key)
        label = "in api" if status is DetailStatus.FIXED else "missing from api"
        yield [
            task_name,
            format_cell(entry.get("description", "")),
            format_cell(entry.get("id", "")),
            label,
        ]


def build_task_sections(
    overrides: Mapping[str, Any],
    api_tasks: Sequence[Mapping[str, Any]] | Mapping[str, Mapping[str, Any]],
    *,
    policy: ReconcilePolicy | None = None,
    max_rows: int = MAX_ROWS,
) -> list[Section]:
    """Build the four task sections from reconciler verdicts."""

    diff = create_section(
        "Task Overrides vs API", ["Task", "Field", "tarkov.dev", "Overlay", "Status"]
    )
    added = create_section("Added Objectives", ["Task", "Objective", "ID", "Status"])
    missing = create_section("Tasks Missing From API", ["Task", "ID"])
    disabled = create_section("Disabled Tasks", ["Task", "ID", "Verdict", "Note"])

    index = index_canonical(api_tasks)
    for task_id, patch in overrides.items():
        if not isinstance(patch, Mapping):
            continue
        task_id = str(task_id)
        verdict = reconcile(task_id, patch, index, policy=policy)
        canonical = index.get(task_id)

        if canonical is None:
            push_row(missing, [verdict.display_name, task_id], max_rows=max_rows)
            continue

        if patch.get(DISABLED_FIELD) is True:
            note = verdict.details[0].message if verdict.details else ""
            push_row(
                disabled,
                [verdict.display_name, task_id, verdict.status.value, note],
                max_rows=max_rows,
            )
            continue

        for row in _diff_rows(verdict.display_name, patch, canonical, verdict):
            push_row(diff, row, max_rows=max_rows)
        for row in _added_rows(verdict.display_name, patch, verdict):
            push_row(added, row, max_rows=max_rows)

    return [diff, added, missing, disabled]


def build_task_addition_sections(
    additions: Mapping[str, Any],
    mode: str,
    api_tasks: Sequence[Mapping[str, Any]] | None = None,
    *,
    max_rows: int = MAX_ROWS,
) -> list[Section]:
    section = create_section(
        f"Task Additions ({mode})", ["Task", "ID", "Trader", "Map", "Wiki", "Status"]
    )
    for key, addition in additions.items():
        if not isinstance(addition, Mapping):
            continue
        trader = _mapping(addition.get("trader")).get("name", "")
        location = addition.get("map")
        map_name = _mapping(location).get("name", "-") if location is not None else "-"
        if api_tasks is None:
            status = "unknown"
        else:
            verdict = reconcile_addition(str(key), addition, api_tasks)
            status = "in api" if verdict.status is VerdictStatus.FIXED else "not in api"
        push_row(
            section,
            [
                addition.get("name", str(key)),
                addition.get("id", str(key)),
                trader,
                map_name,
                addition.get("wikiLink", ""),
                status,
            ],
            max_rows=max_rows,
        )
    return [section]


def build_override_sections(
    label: str, entities: Mapping[str, Any], *, max_rows: int = MAX_ROWS
) -> list[Section]:
    """List every overridden field of every entity."""

    section = create_section(label, ["Entity", "Field", "Overlay"])
    for entity_id, entity in entities.items():
        fields = _mapping(entity)
        if not fields:
            push_row(section, [entity_id, "(empty)", ""], max_rows=max_rows)
            continue
        for name, value in fields.items():
            push_row(section, [entity_id, name, format_cell(value)], max_rows=max_rows)
    return [section]


def build_editions_sections(
    editions: Mapping[str, Any], *, max_rows: int = MAX_ROWS
) -> list[Section]:
    section = create_section(
        "Editions", ["Edition", "ID", "Stash Level", "Trader Rep Bonus", "Exclusive Tasks"]
    )
    for key, edition in editions.items():
        data = _mapping(edition)
        bonus = _mapping(data.get("traderRepBonus"))
        push_row(
            section,
            [
                data.get("title", key),
                data.get("id", key),
                data.get("defaultStashLevel"),
                f"{len(bonus)} traders",
                len(_sequence(data.get("exclusiveTaskIds"))),
            ],
            max_rows=max_rows,
        )
    return [section]


def build_story_chapter_sections(
    chapters: Mapping[str, Any], *, max_rows: int = MAX_ROWS
) -> list[Section]:
    section = create_section(
        "Story Chapters", ["Chapter", "ID", "Order", "Objectives", "Requirements"]
    )
    ordered = sorted(
        ((key, _mapping(chapter)) for key, chapter in chapters.items()), key=_chapter_order
    )
    for key, chapter in ordered:
        requirements = _sequence(chapter.get("chapterRequirements"))
        push_row(
            section,
            [
                chapter.get("name", key),
                chapter.get("id", key),
                chapter.get("order"),
                len(_sequence(chapter.get("objectives"))),
                ", ".join(str(_mapping(req).get("name", "")) for req in requirements),
            ],
            max_rows=max_rows,
        )
    return [section]


def _mode_entities(data: Mapping[str, Any], key: str, mode: str) -> dict[str, Any]:
    shared = _mapping(data.get(key))
    specific = _mapping(_mapping(_mapping(data.get("modes")).get(mode)).get(key))
    if key == "tasks":
        return merge_task_overrides(shared, specific)
    return {**shared, **specific}


def build_summary(
    view: str,
    mode: str | None,
    *,
    overlay: Snapshot,
    api: Mapping[str, Snapshot],
    policy: ReconcilePolicy | None = None,
    max_rows: int = MAX_ROWS,
) -> dict[str, Any]:
    """Return the JSON document served for one ``(view, mode)`` pair."""

    config = VIEW_CONFIG.get(view)
    if config is None:
        return {
            "view": view,
            "mode": None,
            "title": view,
            "overlay": overlay.status(),
            "api": None,
            "sections": [],
            "error": "Unknown view",
        }

    resolved_mode = normalize_mode(mode) if config.mode_aware else None
    api_snapshot = api.get(resolved_mode) if resolved_mode else None
    summary: dict[str, Any] = {
        "view": view,
        "mode": resolved_mode,
        "title": config.title,
        "overlay": overlay.status(),
        "api": api_snapshot.status() if api_snapshot else None,
        "sections": [],
        "error": None,
    }

    if not overlay.loaded:
        reason = f": {overlay.error}" if overlay.error else ""
        summary["error"] = f"Overlay data not loaded{reason}"
        return summary

    data = _mapping(overlay.data)
    if view == "tasks":
        if api_snapshot is None or not api_snapshot.loaded:
            reason = f": {api_snapshot.error}" if api_snapshot and api_snapshot.error else ""
            summary["error"] = f"tarkov.dev {resolved_mode} data not loaded{reason}"
            return summary
        sections = build_task_sections(
            _mode_entities(data, "tasks", resolved_mode),
            api_snapshot.data,
            policy=policy,
            max_rows=max_rows,
        )
    elif view == "tasksAdd":
        api_tasks = api_snapshot.data if api_snapshot and api_snapshot.loaded else None
        sections = build_task_addition_sections(
            _mode_entities(data, "tasksAdd", resolved_mode),
            resolved_mode,
            api_tasks,
            max_rows=max_rows,
        )
    elif view == "editions":
        sections = build_editions_sections(_mapping(data.get("editions")), max_rows=max_rows)
    elif view == "storyChapters":
        sections = build_story_chapter_sections(
            _mapping(data.get("storyChapters")), max_rows=max_rows
        )
    else:
        sections = build_override_sections(
            config.label or config.title,
            _mapping(data.get(config.source_key)),
            max_rows=max_rows,
        )

    summary["sections"] = [section.model_dump() for section in sections]
    return summary


def summary_keys() -> Iterator[tuple[str, str | None]]:
    """Yield every ``(view, mode)`` pair a client can subscribe to."""

    for view, config in VIEW_CONFIG.items():
        if config.mode_aware:
            for mode in GAME_MODES:
                yield view, mode
        else:
            yield view, None


__all__ = [
    "MAX_ROWS",
    "ROW_STATUS",
    "Section",
    "Snapshot",
    "VIEW_CONFIG",
    "build_editions_sections",
    "build_override_sections",
    "build_story_chapter_sections",
    "build_summary",
    "build_task_addition_sections",
    "build_task_sections",
    "create_section",
    "format_cell",
    "normalize_view",
    "push_row",
    "summary_keys",
]
