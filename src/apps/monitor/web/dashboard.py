"""FastAPI application serving the live overlay monitor."""

from __future__ import annotations

import asyncio
from collections.abc import AsyncGenerator
from html import escape
from typing import Any, Optional

import structlog
from fastapi import FastAPI, Request
from fastapi.responses import HTMLResponse, JSONResponse, StreamingResponse

from apps.monitor.web.events import KEEPALIVE_COMMENT, format_sse_chunk
from apps.monitor.web.sections import VIEW_CONFIG
from apps.monitor.web.state import MonitorState
from apps.overlay.config import load_settings
from libraries.overlay.modes import GAME_MODES
from libraries.reconcile.rules import ReconcilePolicy, load_policy
from libraries.tarkov.client import TarkovClient

logger = structlog.get_logger(__name__)

DEFAULT_KEEPALIVE_INTERVAL = 15.0
NO_STORE = {"Cache-Control": "no-store"}

_PAGE_TEMPLATE = """<!doctype html>
<html lang="en">
<head>
  <meta charset="utf-8">
  <title>Overlay Monitor</title>
  <style>
    body {{ font-family: system-ui, sans-serif; margin: 2rem; background: #111; color: #eee; }}
    nav a {{ color: #9cf; margin-right: 1rem; }}
    nav a.active {{ font-weight: bold; color: #fff; }}
    table {{ border-collapse: collapse; margin-bottom: 2rem; width: 100%; }}
    th, td {{ border: 1px solid #333; padding: 0.25rem 0.5rem; text-align: left; }}
    .override {{ color: #fc6; }} .same {{ color: #6c6; }} .missing {{ color: #f66; }}
    .note, #status {{ color: #999; }}
  </style>
</head>
<body>
  <h1 id="page-title">Overlay Monitor</h1>
  <nav id="nav">{nav}</nav>
  <nav id="modes">{modes}</nav>
  <p id="status">Connecting...</p>
  <div id="sections"></div>
  <script>
    const params = new URLSearchParams(window.location.search);
    const query = new URLSearchParams({{
      view: params.get("view") || "tasks",
      mode: params.get("mode") || "regular",
    }});
    const statusEl = document.getElementById("status");
    const sectionsEl = document.getElementById("sections");

    function render(summary) {{
      document.getElementById("page-title").textContent = summary.title;
      const updated = summary.overlay && summary.overlay.updatedAt;
      statusEl.textContent = summary.error || ("Overlay updated " + (updated || "never"));
      sectionsEl.innerHTML = "";
      (summary.sections || []).forEach((section) => {{
        if (!section.rows.length) return;
        const heading = document.createElement("h2");
        heading.textContent = section.title;
        sectionsEl.appendChild(heading);
        if (section.truncated) {{
          const note = document.createElement("div");
          note.className = "note";
          note.textContent = "Display is truncated. Increase OVERLAY_MAX_ROWS if needed.";
          sectionsEl.appendChild(note);
        }}
        const table = document.createElement("table");
        const head = table.insertRow();
        section.columns.forEach((column) => {{
          const th = document.createElement("th");
          th.textContent = column;
          head.appendChild(th);
        }});
        section.rows.forEach((row) => {{
          const tr = table.insertRow();
          row.forEach((value) => {{
            const td = tr.insertCell();
            td.textContent = value === null || value === undefined ? "" : String(value);
            td.className = String(value);
          }});
        }});
        sectionsEl.appendChild(table);
      }});
    }}

    const source = new EventSource("/events?" + query.toString());
    source.addEventListener("summary", (event) => render(JSON.parse(event.data)));
    source.onerror = () => {{ statusEl.textContent = "Disconnected, retrying..."; }};
  </script>
</body>
</html>
"""


def _render_page(view: str, mode: str | None) -> str:
    nav = " ".join(
        f'<a href="/?view={escape(name)}" class="{"active" if name == view else ""}">'
        f"{escape(config.title)}</a>"
        for name, config in VIEW_CONFIG.items()
    )
    modes = ""
    if mode is not None:
        modes = " ".join(
            f'<a href="/?view={escape(view)}&mode={escape(name)}" '
            f'class="{"active" if name == mode else ""}">{escape(name)}</a>'
            for name in GAME_MODES
        )
    return _PAGE_TEMPLATE.format(nav=nav, modes=modes)


async def summary_event_stream(
    request: Any,
    state: MonitorState,
    view: str | None,
    mode: str | None,
    *,
    keepalive_interval: float = DEFAULT_KEEPALIVE_INTERVAL,
) -> AsyncGenerator[bytes, Any]:
    """Yield the current summary, then every republished one, as SSE frames."""

    key = state.summary_key(view, mode)
    queue = await state.broadcaster.subscribe(key)
    try:
        yield format_sse_chunk("summary", state.get_summary(*key))

        while True:
            try:
                summary = await asyncio.wait_for(queue.get(), timeout=keepalive_interval)
            except asyncio.TimeoutError:
                if await request.is_disconnected():
                    break
                yield KEEPALIVE_COMMENT
                continue
            yield format_sse_chunk("summary", summary)
    finally:
        await state.broadcaster.unsubscribe(key, queue)


def create_app(
    state: MonitorState,
    *,
    keepalive_interval: float = DEFAULT_KEEPALIVE_INTERVAL,
    start_background: bool = True,
) -> FastAPI:
    """Return a FastAPI app bound to *state*.

    Background refreshing starts with the application unless
    ``start_background`` is ``False``.
    """

    app = FastAPI(title="Overlay Monitor")
    app.state.monitor = state
    app.state.keepalive_interval = keepalive_interval

    @app.on_event("startup")
    async def _start_monitor() -> None:
        if start_background:
            state.start()

    @app.on_event("shutdown")
    async def _stop_monitor() -> None:
        await state.stop()

    @app.middleware("http")
    async def _log_requests(request: Request, call_next: Any) -> Any:
        response = await call_next(request)
        logger.debug(
            "monitor.request",
            method=request.method,
            path=request.url.path,
            status=response.status_code,
        )
        return response

    @app.get("/", response_class=HTMLResponse)
    async def index(view: Optional[str] = None, mode: Optional[str] = None) -> HTMLResponse:
        resolved_view, resolved_mode = state.summary_key(view, mode)
        return HTMLResponse(_render_page(resolved_view, resolved_mode), headers=NO_STORE)

    @app.get("/latest")
    async def latest(view: Optional[str] = None, mode: Optional[str] = None) -> JSONResponse:
        return JSONResponse(state.get_summary(view, mode), headers=NO_STORE)

    @app.get("/events")
    async def events(
        request: Request, view: Optional[str] = None, mode: Optional[str] = None
    ) -> StreamingResponse:
        stream = summary_event_stream(
            request,
            state,
            view,
            mode,
            keepalive_interval=app.state.keepalive_interval,
        )
        return StreamingResponse(
            stream,
            media_type="text/event-stream",
            headers={**NO_STORE, "Connection": "keep-alive"},
        )

    @app.get("/health")
    async def health() -> dict[str, Any]:
        return {
            "status": "ok",
            "overlay": state.overlay.status(),
            "api": {mode: snapshot.status() for mode, snapshot in state.api.items()},
            "subscribers": state.broadcaster.subscriber_count(),
        }

    return app


def build_app() -> FastAPI:
    """Application factory used by ``overlay-monitor serve``."""

    settings = load_settings()
    if settings.policy_file is not None:
        policy = load_policy(settings.policy_file)
    else:
        policy = ReconcilePolicy(disabled_policy=settings.disabled_policy)

    state = MonitorState(
        settings.monitor_source,
        client=TarkovClient(settings.api_url, timeout=settings.api_timeout),
        policy=policy,
        poll_interval=settings.poll_interval,
        max_rows=settings.max_rows,
    )
    return create_app(state, keepalive_interval=settings.keepalive_interval)


__all__ = ["build_app", "create_app", "summary_event_stream"]
