"""``overlay`` console script."""

from __future__ import annotations

import sys
from typing import Sequence

import typer

from apps.overlay.app import app
from apps.overlay.utils.errors import ExitCode, ObsoleteOverridesError, OverlayError


def report_error(exc: OverlayError) -> int:
    """Print *exc* on stderr and return its exit code."""

    colour = typer.colors.YELLOW if isinstance(exc, ObsoleteOverridesError) else typer.colors.RED
    typer.secho(f"{exc.heading}: {exc}", fg=colour, err=True)
    return int(exc.exit_code)


def main(argv: Sequence[str] | None = None) -> int:
    """Run one ``overlay`` command and return the process exit code."""

    args = list(argv) if argv is not None else None
    try:
        result = app(args=args, standalone_mode=False)
    except OverlayError as exc:
        return report_error(exc)
    return int(ExitCode.SUCCESS) if result is None else int(result)


if __name__ == "__main__":
    sys.exit(main())
