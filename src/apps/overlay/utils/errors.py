"""Errors raised by the ``overlay`` commands and the exit codes they map to.

CI jobs rely on these codes:

``0``
    Success.
``1``
    Invalid sources, or obsolete overrides under ``check --strict``.
``2``
    A source file is unreadable or ``overlay.json`` could not be written.
``3``
    Invalid ``OVERLAY_*`` settings or policy file.
``4``
    tarkov.dev could not be queried.
"""

from __future__ import annotations

from enum import IntEnum

from libraries.overlay.loader import OverlaySourceError
from libraries.tarkov.client import TarkovAPIError


class ExitCode(IntEnum):
    SUCCESS = 0
    INVALID_SOURCES = 1
    UNREADABLE_SOURCES = 2
    BAD_CONFIG = 3
    API_UNAVAILABLE = 4


class OverlayError(Exception):
    """Failure reported to the user as ``<label>: <message>``."""

    exit_code: ExitCode = ExitCode.INVALID_SOURCES
    label = "Error"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def __str__(self) -> str:
        return self.message

    @property
    def heading(self) -> str:
        return type(self).label


class InvalidSourcesError(OverlayError):
    exit_code = ExitCode.INVALID_SOURCES
    label = "Validation error"


class ObsoleteOverridesError(OverlayError):
    """Raised by ``check --strict`` while fixed or removed overrides remain."""

    exit_code = ExitCode.INVALID_SOURCES
    label = "Obsolete overrides"

    def __init__(self, count: int) -> None:
        super().__init__(f"{count} override(s) can be removed from the overlay")
        self.count = count


class SourceReadError(OverlayError):
    exit_code = ExitCode.UNREADABLE_SOURCES
    label = "I/O error"

    @classmethod
    def from_source_error(cls, exc: OverlaySourceError) -> "SourceReadError":
        return cls(str(exc))


class SettingsError(OverlayError):
    exit_code = ExitCode.BAD_CONFIG
    label = "Configuration error"


class TarkovUnavailableError(OverlayError):
    """Raised when tarkov.dev fails while fetching tasks for a game mode."""

    exit_code = ExitCode.API_UNAVAILABLE
    label = "External service error"

    def __init__(self, message: str, *, mode: str) -> None:
        super().__init__(f"{message} (game mode: {mode})")
        self.mode = mode

    @classmethod
    def from_api_error(cls, exc: TarkovAPIError, mode: str) -> "TarkovUnavailableError":
        return cls(str(exc), mode=mode)


__all__ = [
    "ExitCode",
    "InvalidSourcesError",
    "ObsoleteOverridesError",
    "OverlayError",
    "SettingsError",
    "SourceReadError",
    "TarkovUnavailableError",
]
