"""Typer CLI for the overlay monitor dashboard."""

from __future__ import annotations

import os
from importlib import import_module
from typing import Any, Optional

import typer

from apps.overlay.config import load_settings

DEFAULT_HOST = "127.0.0.1"
SOURCE_ENV = "OVERLAY_MONITOR_SOURCE"
POLL_INTERVAL_ENV = "OVERLAY_POLL_INTERVAL"

app = typer.Typer(name="overlay-monitor", help="Live overlay monitor dashboard.")


def _load_uvicorn() -> Any:
    """Dynamically import uvicorn so the CLI loads without the server stack."""

    return import_module("uvicorn")


@app.callback()
def main_callback() -> None:
    """Monitor the built overlay against tarkov.dev."""


@app.command()
def serve(
    host: str = typer.Option(
        DEFAULT_HOST,
        "--host",
        "-h",
        help="Host interface to bind the monitor to.",
        show_default=True,
    ),
    port: Optional[int] = typer.Option(
        None,
        "--port",
        "-p",
        min=1,
        max=65535,
        help="Port to expose the monitor on (defaults to OVERLAY_MONITOR_PORT, 3476).",
    ),
    source: Optional[str] = typer.Option(
        None,
        "--source",
        help="Path or URL of overlay.json (defaults to OVERLAY_MONITOR_SOURCE).",
    ),
    poll_interval: Optional[float] = typer.Option(
        None,
        "--poll-interval",
        min=1.0,
        help="Seconds between tarkov.dev and remote overlay refreshes.",
    ),
    reload: bool = typer.Option(
        False,
        "--reload/--no-reload",
        help="Automatically reload when source files change.",
        show_default=True,
    ),
    log_level: str = typer.Option(
        "info",
        "--log-level",
        help="Log level passed to uvicorn.",
        show_default=True,
    ),
) -> None:
    """Launch the overlay monitor using uvicorn."""

    if source is not None:
        os.environ[SOURCE_ENV] = source
    if poll_interval is not None:
        os.environ[POLL_INTERVAL_ENV] = str(poll_interval)
    load_settings.cache_clear()
    if port is None:
        port = load_settings().monitor_port

    typer.echo(f"Overlay monitor running at http://{host}:{port}")
    uvicorn = _load_uvicorn()
    uvicorn.run(
        "apps.monitor.web.dashboard:build_app",
        factory=True,
        host=host,
        port=port,
        reload=reload,
        log_level=log_level,
    )


__all__ = ["app", "serve"]
