from __future__ import annotations

import asyncio
import importlib
import json
from pathlib import Path
from typing import Any

import pytest
import requests

from apps.monitor.web.state import MonitorState, is_remote_source, normalize_remote_url
from libraries.tarkov.client import TarkovAPIError

state_module = importlib.import_module("apps.monitor.web.state")


class StubTarkovClient:
    def __init__(self, tasks: list[dict[str, Any]] | None = None) -> None:
        self.tasks = tasks or []
        self.error: Exception | None = None
        self.calls: list[str] = []
        self.closed = False

    def fetch_tasks(self, game_mode: str = "regular") -> list[dict[str, Any]]:
        self.calls.append(game_mode)
        if self.error is not None:
            raise self.error
        return self.tasks

    def close(self) -> None:
        self.closed = True


class _StubResponse:
    def __init__(self, text: str, status_code: int = 200) -> None:
        self.text = text
        self.status_code = status_code

    def raise_for_status(self) -> None:
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} Server Error")


class StubSession:
    def __init__(self, response: _StubResponse | None = None) -> None:
        self.response = response or _StubResponse("{}")
        self.urls: list[str] = []
        self.closed = False

    def get(self, url: str, *, timeout: float) -> _StubResponse:
        self.urls.append(url)
        return self.response

    def close(self) -> None:
        self.closed = True


def _write_overlay(path: Path, version: str = "1.0.0") -> Path:
    document = {
        "tasks": {"task-debut": {"minPlayerLevel": 10}},
        "items": {"item-1": {"name": "Salewa"}},
        "$meta": {"version": version, "generated": "2025-01-01T00:00:00.000Z"},
    }
    path.write_text(json.dumps(document), encoding="utf-8")
    return path


@pytest.mark.parametrize(
    "source, expected",
    [
        (
            "https://github.com/owner/repo/blob/main/dist/overlay.json",
            "https://raw.githubusercontent.com/owner/repo/main/dist/overlay.json",
        ),
        (
            "https://raw.githubusercontent.com/owner/repo/main/dist/overlay.json",
            "https://raw.githubusercontent.com/owner/repo/main/dist/overlay.json",
        ),
        ("https://github.com/owner/blob", "https://github.com/owner/blob"),
        ("dist/overlay.json", "dist/overlay.json"),
    ],
)
def test_normalize_remote_url(source: str, expected: str) -> None:
    assert normalize_remote_url(source) == expected


def test_is_remote_source() -> None:
    assert is_remote_source("https://example.invalid/overlay.json")
    assert is_remote_source("HTTP://example.invalid/overlay.json")
    assert not is_remote_source("dist/overlay.json")


def test_initial_summaries_report_missing_data(tmp_path: Path) -> None:
    state = MonitorState(
        str(tmp_path / "overlay.json"), client=StubTarkovClient(), session=StubSession()
    )

    summary = state.get_summary(None, None)

    assert (summary["view"], summary["mode"]) == ("tasks", "regular")
    assert summary["error"] == "Overlay data not loaded"
    assert state.summary_key("items", "pve") == ("items", None)
    assert state.summary_key("tasksAdd", "bogus") == ("tasksAdd", "regular")


@pytest.mark.anyio("asyncio")
async def test_refresh_reads_local_overlay_and_api(
    tmp_path: Path, api_tasks: list[dict[str, Any]]
) -> None:
    overlay_path = _write_overlay(tmp_path / "overlay.json", version="3.1.0")
    client = StubTarkovClient(api_tasks)
    state = MonitorState(str(overlay_path), client=client, session=StubSession())

    await state.refresh_all()

    assert state.overlay.error is None
    assert state.overlay.extra["version"] == "3.1.0"
    assert state.overlay.updated_at is not None
    assert state.api["regular"].extra["count"] == 2
    assert sorted(client.calls) == ["pve", "regular"]
    summary = state.get_summary("tasks", "regular")
    assert summary["error"] is None
    assert summary["sections"][0]["rows"][0][:2] == ["Debut", "minPlayerLevel"]


@pytest.mark.anyio("asyncio")
async def test_refresh_overlay_keeps_previous_data_on_error(tmp_path: Path) -> None:
    overlay_path = _write_overlay(tmp_path / "overlay.json")
    state = MonitorState(str(overlay_path), client=StubTarkovClient(), session=StubSession())
    await state.refresh_overlay()

    overlay_path.write_text("{ not json", encoding="utf-8")
    await state.refresh_overlay()

    assert state.overlay.error
    assert state.overlay.data["items"] == {"item-1": {"name": "Salewa"}}


@pytest.mark.anyio("asyncio")
async def test_refresh_overlay_from_remote_source() -> None:
    document = {"items": {}, "$meta": {"version": "9.9.9"}}
    session = StubSession(_StubResponse(json.dumps(document)))
    state = MonitorState(
        "https://github.com/owner/repo/blob/main/dist/overlay.json",
        client=StubTarkovClient(),
        session=session,
    )

    await state.refresh_overlay()

    assert session.urls == ["https://raw.githubusercontent.com/owner/repo/main/dist/overlay.json"]
    assert state.overlay.extra["version"] == "9.9.9"
    assert state.overlay.extra["source"] == session.urls[0]


@pytest.mark.anyio("asyncio")
async def test_refresh_overlay_remote_http_error() -> None:
    session = StubSession(_StubResponse("down", status_code=503))
    state = MonitorState(
        "https://example.invalid/overlay.json", client=StubTarkovClient(), session=session
    )

    await state.refresh_overlay()

    assert state.overlay.data is None
    assert "503" in state.overlay.error


@pytest.mark.anyio("asyncio")
async def test_refresh_api_records_errors(tmp_path: Path) -> None:
    client = StubTarkovClient()
    client.error = TarkovAPIError("API request failed: 500")
    state = MonitorState(str(tmp_path / "overlay.json"), client=client, session=StubSession())

    await state.refresh_api("pve")

    assert state.api["pve"].error == "API request failed: 500"
    assert state.api["pve"].data is None


@pytest.mark.anyio("asyncio")
async def test_refresh_publishes_to_subscribers(tmp_path: Path) -> None:
    overlay_path = _write_overlay(tmp_path / "overlay.json")
    state = MonitorState(str(overlay_path), client=StubTarkovClient(), session=StubSession())
    queue = await state.broadcaster.subscribe(("items", None))

    await state.refresh_overlay()
    summary = await asyncio.wait_for(queue.get(), timeout=1)

    assert summary["view"] == "items"
    assert summary["sections"][0]["rows"] == [["item-1", "name", "Salewa"]]


@pytest.mark.anyio("asyncio")
async def test_concurrent_refreshes_coalesce(tmp_path: Path) -> None:
    state = MonitorState(
        str(tmp_path / "overlay.json"), client=StubTarkovClient(), session=StubSession()
    )
    gate = asyncio.Event()
    calls = 0

    async def refresh() -> None:
        nonlocal calls
        calls += 1
        await gate.wait()

    first = asyncio.create_task(state._coalesce("overlay", refresh))
    await asyncio.sleep(0)
    await state._coalesce("overlay", refresh)
    await state._coalesce("overlay", refresh)
    gate.set()
    await asyncio.wait_for(first, timeout=1)

    assert calls == 2


@pytest.mark.anyio("asyncio")
async def test_start_and_stop(tmp_path: Path) -> None:
    overlay_path = _write_overlay(tmp_path / "overlay.json")
    client = StubTarkovClient()
    session = StubSession()
    state = MonitorState(str(overlay_path), client=client, session=session, poll_interval=60)

    state.start()
    for _ in range(100):
        if state.overlay.loaded:
            break
        await asyncio.sleep(0.01)
    await state.stop()

    assert state.overlay.loaded
    assert client.closed
    assert session.closed


@pytest.mark.anyio("asyncio")
async def test_malformed_overlay_values_still_publish(tmp_path: Path) -> None:
    overlay_path = tmp_path / "overlay.json"
    overlay_path.write_text(
        json.dumps({"editions": {"e": {"exclusiveTaskIds": 3}}}), encoding="utf-8"
    )
    state = MonitorState(str(overlay_path), client=StubTarkovClient(), session=StubSession())

    await state.refresh_overlay()

    summary = state.get_summary("editions", None)
    assert summary["error"] is None
    assert summary["sections"][0]["rows"][0][-1] == 0


@pytest.mark.anyio("asyncio")
async def test_summary_failure_does_not_stop_later_refreshes(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    overlay_path = _write_overlay(tmp_path / "overlay.json")
    state = MonitorState(str(overlay_path), client=StubTarkovClient(), session=StubSession())
    queue = await state.broadcaster.subscribe(("items", None))
    real_build_summary = state_module.build_summary

    def broken_build_summary(view: str, *args: Any, **kwargs: Any) -> dict[str, Any]:
        if view == "items":
            raise TypeError("object of type 'int' has no len()")
        return real_build_summary(view, *args, **kwargs)

    monkeypatch.setattr(state_module, "build_summary", broken_build_summary)
    await state.refresh_overlay()

    failed = await asyncio.wait_for(queue.get(), timeout=1)
    assert failed["sections"] == []
    assert "Unable to build items summary" in failed["error"]
    assert "Unable to build items summary" in state.overlay.error

    monkeypatch.setattr(state_module, "build_summary", real_build_summary)
    _write_overlay(overlay_path, version="2.0.0")
    await state.refresh_overlay()

    recovered = await asyncio.wait_for(queue.get(), timeout=1)
    assert recovered["error"] is None
    assert recovered["sections"][0]["rows"] == [["item-1", "name", "Salewa"]]
    assert state.overlay.error is None
    assert state.overlay.extra["version"] == "2.0.0"
