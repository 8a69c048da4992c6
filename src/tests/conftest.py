"""Shared pytest fixtures for the overlay test-suite."""

from __future__ import annotations

import os
from collections.abc import Iterator
from pathlib import Path
from typing import Any

import pytest

from apps.overlay.config import load_settings


@pytest.fixture(autouse=True)
def isolate_settings(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> Iterator[None]:
    """Run every test without ``OVERLAY_*`` variables or a stray ``.env``."""

    for key in list(os.environ):
        if key.startswith("OVERLAY_"):
            monkeypatch.delenv(key, raising=False)
    monkeypatch.chdir(tmp_path)
    load_settings.cache_clear()
    yield
    load_settings.cache_clear()


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


def write_json5(path: Path, text: str) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")
    return path


@pytest.fixture
def api_tasks() -> list[dict[str, Any]]:
    """A small tarkov.dev task snapshot shared by reconciler and monitor tests."""

    return [
        {
            "id": "task-debut",
            "name": "Debut",
            "minPlayerLevel": 45,
            "map": None,
            "taskRequirements": [],
            "objectives": [
                {
                    "id": "obj-1",
                    "description": "Eliminate Scavs",
                    "count": 5,
                    "maps": [{"id": "customs", "name": "Customs"}],
                },
            ],
        },
        {
            "id": "task-shooter",
            "name": "Shooter Born in Heaven",
            "minPlayerLevel": 10,
            "map": {"id": "woods", "name": "Woods"},
            "taskRequirements": [
                {"task": {"id": "task-debut", "name": "Debut"}, "status": ["complete"]},
            ],
            "objectives": [
                {
                    "id": "obj-woods",
                    "description": "Headshot on Woods",
                    "count": 3,
                    "maps": [{"id": "woods", "name": "Woods"}],
                },
                {
                    "id": "obj-factory",
                    "description": "Headshot on Factory",
                    "count": 3,
                    "maps": [{"id": "night", "name": "Night Factory"}],
                },
            ],
        },
    ]


@pytest.fixture
def data_dir(tmp_path: Path) -> Path:
    """Write a minimal ``overrides``/``additions`` source tree."""

    root = tmp_path / "data"
    write_json5(
        root / "overrides" / "tasks.json5",
        """
        {
          // Debut unlocks at level 10 in game
          "task-debut": { minPlayerLevel: 10 },
          "task-gone": { name: "Ghost", minPlayerLevel: 3 },
        }
        """,
    )
    write_json5(root / "overrides" / "items.json5", "{}")
    write_json5(
        root / "overrides" / "traders.json5",
        '{ "trader-1": { name: "Prapor" } }',
    )
    write_json5(
        root / "additions" / "tasksAdd.json5",
        """
        {
          "custom-task": {
            id: "custom-task",
            name: "Custom Task",
            wikiLink: "https://escapefromtarkov.fandom.com/wiki/Custom_Task",
            trader: { name: "Prapor" },
            objectives: [{ id: "custom-obj", description: "Do the thing" }],
          },
        }
        """,
    )
    write_json5(root / "additions" / "itemsAdd.json5", "{}")
    return root
