"""Settings for the overlay CLI and monitor.

Values are read from ``OVERLAY_*`` environment variables, optionally from a
``.env`` file when running locally, and may be overridden by CLI options.

``OVERLAY_DATA_DIR``
    Directory holding the ``overrides/`` and ``additions/`` sources.
``OVERLAY_API_URL``
    GraphQL endpoint of tarkov.dev.
``OVERLAY_MONITOR_SOURCE``
    Local path or URL of the built ``overlay.json`` watched by the monitor.
``OVERLAY_MONITOR_PORT``
    Port used by ``overlay-monitor serve`` when ``--port`` is omitted.
"""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from libraries.reconcile.rules import DisabledPolicy
from libraries.tarkov.client import DEFAULT_API_URL, DEFAULT_TIMEOUT

DEFAULT_MONITOR_PORT = 3476


class OverlaySettings(BaseSettings):
    data_dir: Path = Path("src")
    dist_dir: Path = Path("dist")
    api_url: str = DEFAULT_API_URL
    api_timeout: float = Field(default=DEFAULT_TIMEOUT, gt=0)
    disabled_policy: DisabledPolicy = DisabledPolicy.FLAG
    policy_file: Optional[Path] = None
    monitor_source: str = "dist/overlay.json"
    monitor_port: int = Field(default=DEFAULT_MONITOR_PORT, ge=1, le=65535)
    poll_interval: float = Field(default=30.0, gt=0)
    max_rows: int = Field(default=250, gt=0)
    keepalive_interval: float = Field(default=15.0, gt=0)

    model_config = SettingsConfigDict(
        env_prefix="OVERLAY_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )


@lru_cache(maxsize=1)
def load_settings() -> OverlaySettings:
    """Return the process-wide settings instance."""

    return OverlaySettings()
