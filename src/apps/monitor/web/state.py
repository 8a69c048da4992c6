"""Live overlay and tarkov.dev snapshots backing the monitor dashboard."""

from __future__ import annotations

import asyncio
import json
import re
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Awaitable, Callable, Optional
from urllib.parse import urlparse

import requests
import structlog

from apps.monitor.web.events import EventBroadcaster
from apps.monitor.web.sections import (
    MAX_ROWS,
    VIEW_CONFIG,
    Snapshot,
    build_summary,
    normalize_view,
    summary_keys,
)
from libraries.overlay.build import META_KEY
from libraries.overlay.modes import GAME_MODES, normalize_mode
from libraries.reconcile.rules import ReconcilePolicy
from libraries.tarkov.client import TarkovAPIError, TarkovClient

logger = structlog.get_logger(__name__)

DEFAULT_POLL_INTERVAL = 30.0
DEFAULT_FILE_CHECK_INTERVAL = 1.0
REMOTE_TIMEOUT = 30.0

_REMOTE_PATTERN = re.compile(r"^https?://", re.IGNORECASE)

SummaryKey = tuple[str, Optional[str]]


def is_remote_source(source: str) -> bool:
    return bool(_REMOTE_PATTERN.match(source))


def normalize_remote_url(source: str) -> str:
    """Rewrite GitHub ``/blob/`` page URLs to their raw content URL."""

    if not source or "github.com" not in source or "/blob/" not in source:
        return source
    parts = [part for part in urlparse(source).path.split("/") if part]
    if "blob" not in parts:
        return source
    blob_index = parts.index("blob")
    if blob_index < 2 or len(parts) < blob_index + 3:
        return source
    owner, repo = parts[0], parts[1]
    branch = parts[blob_index + 1]
    file_path = "/".join(parts[blob_index + 2:])
    return f"https://raw.githubusercontent.com/{owner}/{repo}/{branch}/{file_path}"


def _utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _read_local(path: Path) -> tuple[str, float]:
    text = path.read_text(encoding="utf-8")
    return text, path.stat().st_mtime


def _local_mtime(path: Path) -> float | None:
    try:
        return path.stat().st_mtime
    except OSError:
        return None


class MonitorState:
    """Own every snapshot the dashboard serves.

    Refreshes of the same source coalesce: a refresh requested while one is
    running is folded into a single follow-up run. Every completed refresh
    rebuilds the cached summaries and publishes them to subscribers of the
    matching ``(view, mode)`` topic.
    """

    def __init__(
        self,
        source: str,
        *,
        client: TarkovClient | None = None,
        session: requests.Session | None = None,
        broadcaster: EventBroadcaster | None = None,
        policy: ReconcilePolicy | None = None,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        file_check_interval: float = DEFAULT_FILE_CHECK_INTERVAL,
        max_rows: int = MAX_ROWS,
    ) -> None:
        self.source = normalize_remote_url(source)
        self.client = client or TarkovClient()
        self.broadcaster = broadcaster or EventBroadcaster()
        self.policy = policy if policy is not None else ReconcilePolicy()
        self.poll_interval = poll_interval
        self.file_check_interval = file_check_interval
        self.max_rows = max_rows

        self.overlay = Snapshot(extra={"source": self.source, "version": None})
        self.api: dict[str, Snapshot] = {
            mode: Snapshot(extra={"count": 0}) for mode in GAME_MODES
        }
        self.summaries: dict[SummaryKey, dict[str, Any]] = {}

        self._session = session or requests.Session()
        self._running: set[str] = set()
        self._pending: set[str] = set()
        self._mtime: float | None = None
        self._tasks: list[asyncio.Task[None]] = []

        self.rebuild_summaries(publish=False)

    # ------------------------------------------------------------------
    # Summaries
    # ------------------------------------------------------------------
    def summary_key(self, view: str | None, mode: str | None) -> SummaryKey:
        resolved = normalize_view(view)
        if VIEW_CONFIG[resolved].mode_aware:
            return resolved, normalize_mode(mode)
        return resolved, None

    def get_summary(self, view: str | None, mode: str | None) -> dict[str, Any]:
        key = self.summary_key(view, mode)
        summary = self.summaries.get(key)
        if summary is None:
            summary, _ = self._build(*key)
            self.summaries[key] = summary
        return summary

    def _build(self, view: str, mode: str | None) -> tuple[dict[str, Any], str | None]:
        """Return the summary for ``(view, mode)`` and the build error, if any.

        A builder failure yields an empty summary carrying the error.
        """

        try:
            summary = build_summary(
                view,
                mode,
                overlay=self.overlay,
                api=self.api,
                policy=self.policy,
                max_rows=self.max_rows,
            )
        except Exception as exc:
            error = f"Unable to build {view} summary: {exc}"
            logger.warning("monitor.summary.failed", view=view, mode=mode, error=str(exc))
            api_snapshot = self.api.get(mode) if mode else None
            summary = {
                "view": view,
                "mode": mode,
                "title": VIEW_CONFIG[view].title,
                "overlay": self.overlay.status(),
                "api": api_snapshot.status() if api_snapshot else None,
                "sections": [],
                "error": error,
            }
            return summary, error
        return summary, None

    def rebuild_summaries(self, *, publish: bool = True) -> list[str]:
        """Rebuild every cached summary and return the build errors."""

        failures: list[str] = []
        for key in summary_keys():
            summary, error = self._build(*key)
            self.summaries[key] = summary
            if error:
                failures.append(error)
            if publish:
                self.broadcaster.publish(key, summary)
        return failures

    def _rebuild_after_refresh(self, snapshot: Snapshot) -> None:
        failures = self.rebuild_summaries()
        if failures:
            snapshot.error = failures[0]

    # ------------------------------------------------------------------
    # Refreshing
    # ------------------------------------------------------------------
    async def _coalesce(self, name: str, refresh: Callable[[], Awaitable[None]]) -> None:
        if name in self._running:
            self._pending.add(name)
            return

        self._running.add(name)
        try:
            while True:
                self._pending.discard(name)
                await refresh()
                if name not in self._pending:
                    break
        finally:
            self._running.discard(name)

    def _fetch_remote(self, url: str) -> str:
        response = self._session.get(url, timeout=REMOTE_TIMEOUT)
        response.raise_for_status()
        return response.text

    async def _read_overlay(self) -> None:
        try:
            if is_remote_source(self.source):
                text = await asyncio.to_thread(self._fetch_remote, self.source)
                updated_at = _utc_now()
            else:
                text, mtime = await asyncio.to_thread(_read_local, Path(self.source))
                self._mtime = mtime
                updated_at = datetime.fromtimestamp(mtime, tz=timezone.utc).isoformat()
            data = json.loads(text)
            if not isinstance(data, dict):
                raise ValueError("overlay document must be a JSON object")
        except (OSError, ValueError, requests.RequestException) as exc:
            self.overlay.error = str(exc) or "Unable to read overlay source"
            logger.warning("monitor.refresh.failed", source=self.source, error=self.overlay.error)
        else:
            meta = data.get(META_KEY) if isinstance(data.get(META_KEY), dict) else {}
            self.overlay.data = data
            self.overlay.updated_at = updated_at
            self.overlay.error = None
            self.overlay.extra["version"] = meta.get("version")
            logger.info("monitor.refresh.overlay", source=self.source, version=meta.get("version"))
        self._rebuild_after_refresh(self.overlay)

    async def _read_api(self, mode: str) -> None:
        snapshot = self.api[mode]
        try:
            tasks = await asyncio.to_thread(self.client.fetch_tasks, mode)
        except TarkovAPIError as exc:
            snapshot.error = str(exc)
            logger.warning("monitor.refresh.failed", source="tarkov.dev", mode=mode, error=str(exc))
        else:
            snapshot.data = tasks
            snapshot.updated_at = _utc_now()
            snapshot.error = None
            snapshot.extra["count"] = len(tasks)
            logger.info("monitor.refresh.api", mode=mode, count=len(tasks))
        self._rebuild_after_refresh(snapshot)

    async def refresh_overlay(self) -> None:
        await self._coalesce("overlay", self._read_overlay)

    async def refresh_api(self, mode: str) -> None:
        await self._coalesce(f"api:{mode}", lambda: self._read_api(mode))

    async def refresh_all(self) -> None:
        await asyncio.gather(
            self.refresh_overlay(), *(self.refresh_api(mode) for mode in GAME_MODES)
        )

    # ------------------------------------------------------------------
    # Background polling
    # ------------------------------------------------------------------
    async def _poll_overlay(self) -> None:
        if is_remote_source(self.source):
            while True:
                await asyncio.sleep(self.poll_interval)
                await self.refresh_overlay()

        path = Path(self.source)
        while True:
            await asyncio.sleep(self.file_check_interval)
            mtime = await asyncio.to_thread(_local_mtime, path)
            if mtime is not None and mtime != self._mtime:
                await self.refresh_overlay()

    async def _poll_api(self) -> None:
        while True:
            await asyncio.sleep(self.poll_interval)
            await asyncio.gather(*(self.refresh_api(mode) for mode in GAME_MODES))

    def start(self) -> None:
        """Schedule the initial refresh and the polling loops."""

        if self._tasks:
            return
        self._tasks = [
            asyncio.create_task(self.refresh_all()),
            asyncio.create_task(self._poll_overlay()),
            asyncio.create_task(self._poll_api()),
        ]
        logger.info("monitor.started", source=self.source, poll_interval=self.poll_interval)

    async def stop(self) -> None:
        tasks, self._tasks = self._tasks, []
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        self.client.close()
        self._session.close()
        logger.info("monitor.stopped")


__all__ = [
    "MonitorState",
    "is_remote_source",
    "normalize_remote_url",
]
