"""Console and JSON rendering of reconciliation results."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Iterable, Sequence

import typer

from libraries.reconcile.models import (
    CategorizedVerdicts,
    DetailStatus,
    Verdict,
    VerdictStatus,
)

RULE_WIDTH = 80

_STATUS_ICONS = {
    VerdictStatus.NEEDED: ("✅", typer.colors.GREEN),
    VerdictStatus.FIXED: ("🔄", typer.colors.YELLOW),
    VerdictStatus.NOT_FOUND: ("❌", typer.colors.RED),
    VerdictStatus.REMOVED_FROM_API: ("🗑️", typer.colors.RED),
}

_DETAIL_STYLES = {
    DetailStatus.NEEDED: ("⚠️ ", typer.colors.YELLOW),
    DetailStatus.CHECK: ("⚠️ ", typer.colors.YELLOW),
    DetailStatus.FIXED: ("✅", typer.colors.GREEN),
    DetailStatus.INFO: ("ℹ️ ", typer.colors.CYAN),
}


def print_header(title: str, char: str = "=") -> None:
    line = char * RULE_WIDTH
    typer.echo(line)
    typer.secho(title, bold=True)
    typer.echo(line)
    typer.echo("")


def print_verdict(verdict: Verdict) -> None:
    icon, colour = _STATUS_ICONS[verdict.status]
    typer.echo(
        f"{icon} "
        + typer.style(verdict.display_name, bold=True)
        + " "
        + typer.style(f"({verdict.id})", fg=typer.colors.BRIGHT_BLACK)
    )
    for detail in verdict.details:
        prefix, detail_colour = _DETAIL_STYLES[detail.status]
        typer.secho(f"   {prefix} {detail.message}", fg=detail_colour)
    typer.echo("")


def _print_group(label: str, colour: str, verdicts: Sequence[Verdict]) -> None:
    typer.secho(f"{label} ({len(verdicts)}):", fg=colour, bold=True)
    if verdicts:
        for verdict in verdicts:
            typer.echo(f"  - {verdict.display_name} ({verdict.id})")
    else:
        typer.secho("  None", fg=typer.colors.BRIGHT_BLACK)
    typer.echo("")


def print_summary(groups: CategorizedVerdicts, *, source_label: str) -> None:
    """Print the three-way summary and, when needed, a cleanup recommendation."""

    print_header("SUMMARY")
    _print_group("✅ Still need overrides", typer.colors.GREEN, groups.still_needed)
    _print_group("🔄 Fixed in API, can remove", typer.colors.YELLOW, groups.fixed)
    _print_group(
        "🗑️  Removed from API, delete from overlay",
        typer.colors.RED,
        groups.removed_from_api,
    )

    if groups.obsolete:
        typer.secho("💡 RECOMMENDATION:", fg=typer.colors.YELLOW, bold=True)
        typer.echo(f"   Update {source_label} to remove {groups.obsolete} obsolete override(s)")
        typer.echo("")


def print_report(
    verdicts: Iterable[Verdict], groups: CategorizedVerdicts, *, source_label: str
) -> None:
    print_header("OVERLAY VALIDATION REPORT")
    for verdict in verdicts:
        print_verdict(verdict)
    print_summary(groups, source_label=source_label)


def write_json_report(path: Path, verdicts: Sequence[Verdict], groups: CategorizedVerdicts) -> None:
    """Write verdicts and their summary counts to *path* as JSON."""

    path.parent.mkdir(parents=True, exist_ok=True)
    payload = {
        "results": [verdict.model_dump(mode="json", by_alias=True) for verdict in verdicts],
        "summary": {
            "stillNeeded": len(groups.still_needed),
            "fixed": len(groups.fixed),
            "removedFromApi": len(groups.removed_from_api),
        },
    }
    with path.open("w", encoding="utf-8") as fh:
        json.dump(payload, fh, indent=2, ensure_ascii=False)


__all__ = [
    "print_header",
    "print_report",
    "print_summary",
    "print_verdict",
    "write_json_report",
]
