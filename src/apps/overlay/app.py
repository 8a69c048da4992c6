"""Typer application for building, validating and checking the overlay."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Optional

import structlog
import typer

from apps.overlay.config import OverlaySettings, load_settings
from apps.overlay.report import print_header, print_report, print_verdict, write_json_report
from apps.overlay.utils.errors import (
    ExitCode,
    InvalidSourcesError,
    ObsoleteOverridesError,
    SettingsError,
    SourceReadError,
    TarkovUnavailableError,
)
from apps.overlay.utils.progress import comparison_progress
from libraries import __version__
from libraries.overlay.build import build_overlay
from libraries.overlay.loader import OverlaySourceError, load_json5_file
from libraries.overlay.modes import GAME_MODES, MODES_DIRNAME, merge_task_overrides
from libraries.overlay.schema import find_duplicate_ids, validate_source_files
from libraries.reconcile.reconciler import categorize, reconcile_addition, reconcile_all
from libraries.reconcile.rules import DisabledPolicy, ReconcilePolicy, load_policy
from libraries.tarkov.client import TarkovAPIError, TarkovClient

log = structlog.get_logger(__name__)

TASKS_FILE = "tasks.json5"
TASK_ADDITIONS_FILE = "tasksAdd.json5"

app = typer.Typer(name="overlay", help="Tarkov data overlay tooling.")

DataDirOption = typer.Option(
    None,
    "--data-dir",
    help="Directory containing overrides/ and additions/ (defaults to OVERLAY_DATA_DIR).",
    file_okay=False,
)


def _settings() -> OverlaySettings:
    try:
        return load_settings()
    except ValueError as exc:
        raise SettingsError(f"Invalid settings: {exc}") from exc


def _load_optional(path: Path) -> dict[str, Any]:
    if not path.is_file():
        return {}
    try:
        data = load_json5_file(path)
    except OverlaySourceError as exc:
        raise SourceReadError.from_source_error(exc) from exc
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise InvalidSourcesError(f"{path}: top-level value must be an object")
    return data


def load_task_overrides(data_dir: Path, mode: str) -> dict[str, Any]:
    """Return shared task overrides merged with those of *mode*."""

    overrides_dir = data_dir / "overrides"
    shared = _load_optional(overrides_dir / TASKS_FILE)
    specific = _load_optional(overrides_dir / MODES_DIRNAME / mode / TASKS_FILE)
    return merge_task_overrides(shared, specific)


def _resolve_policy(
    settings: OverlaySettings,
    policy_file: Optional[Path],
    disabled_policy: Optional[DisabledPolicy],
) -> ReconcilePolicy:
    path = policy_file or settings.policy_file
    if path is not None:
        try:
            policy = load_policy(path)
        except (OSError, ValueError) as exc:
            raise SettingsError(f"Unable to load policy {path}: {exc}") from exc
    else:
        policy = ReconcilePolicy(disabled_policy=settings.disabled_policy)

    if disabled_policy is not None:
        policy = policy.model_copy(update={"disabled_policy": disabled_policy})
    return policy


@app.command("build")
def build(
    data_dir: Optional[Path] = DataDirOption,
    dist_dir: Optional[Path] = typer.Option(
        None, "--dist-dir", help="Output directory for overlay.json.", file_okay=False
    ),
) -> None:
    """Compile the JSON5 sources into dist/overlay.json."""

    settings = _settings()
    source_dir = data_dir or settings.data_dir
    output_dir = dist_dir or settings.dist_dir

    typer.echo("Building overlay...\n")
    try:
        result = build_overlay(source_dir, output_dir, __version__)
    except OverlaySourceError as exc:
        raise SourceReadError.from_source_error(exc) from exc
    except OSError as exc:
        raise SourceReadError(f"Unable to write {output_dir}: {exc}") from exc

    counts = ", ".join(f"{key}: {count}" for key, count in result.entity_counts.items())
    typer.secho("✅ Built overlay.json", fg=typer.colors.GREEN)
    typer.echo(f"   Entities: {counts}")
    typer.echo(f"   Version: {result.version}")
    typer.echo(f"   Generated: {result.generated}")
    typer.echo(f"   SHA256: {result.short_hash}...")
    typer.echo(f"\nOutput: {result.output_path}")


@app.command("validate")
def validate(data_dir: Optional[Path] = DataDirOption) -> None:
    """Validate source files against their JSON Schemas."""

    source_dir = data_dir or _settings().data_dir
    typer.echo("Validating source files...\n")

    results = validate_source_files(source_dir)
    has_errors = False
    for result in results:
        if result.valid:
            typer.echo(f"✅ {result.file}")
            continue
        has_errors = True
        typer.secho(f"❌ {result.file}", fg=typer.colors.RED)
        for error in result.errors:
            typer.echo(f"   {error}")

    duplicates = find_duplicate_ids(source_dir)
    for duplicate in duplicates:
        has_errors = True
        typer.secho(
            f"❌ {duplicate.entity_id}: present in both {duplicate.override_file} "
            f"and {duplicate.addition_file}",
            fg=typer.colors.RED,
        )

    typer.echo("")
    log.info(
        "overlay.validate.complete",
        files=len(results),
        invalid=sum(1 for result in results if not result.valid),
        duplicates=len(duplicates),
    )
    if has_errors:
        typer.secho("Validation failed!", fg=typer.colors.RED, bold=True)
        raise typer.Exit(code=ExitCode.INVALID_SOURCES)
    typer.secho("All files valid!", fg=typer.colors.GREEN, bold=True)


@app.command("check")
def check(
    data_dir: Optional[Path] = DataDirOption,
    mode: str = typer.Option(
        "regular",
        "--mode",
        help="Game mode whose overrides and API data are compared.",
        case_sensitive=False,
        show_default=True,
    ),
    policy_file: Optional[Path] = typer.Option(
        None, "--policy", help="YAML file with reconciliation policy.", dir_okay=False
    ),
    disabled_policy: Optional[DisabledPolicy] = typer.Option(
        None,
        "--disabled-policy",
        help="How disabled tasks still present upstream are classified.",
        case_sensitive=False,
    ),
    json_report: Optional[Path] = typer.Option(
        None, "--json", help="Path to write a JSON report of the results."
    ),
    strict: bool = typer.Option(
        False, "--strict", help="Exit with code 1 when obsolete overrides exist."
    ),
) -> None:
    """Check which task overrides are still needed against tarkov.dev."""

    mode = mode.lower()
    if mode not in GAME_MODES:
        raise InvalidSourcesError(
            f"Unknown mode {mode!r}; expected one of: {', '.join(GAME_MODES)}"
        )

    settings = _settings()
    source_dir = data_dir or settings.data_dir
    policy = _resolve_policy(settings, policy_file, disabled_policy)

    typer.secho("Loading task overrides...", fg=typer.colors.CYAN)
    overrides = load_task_overrides(source_dir, mode)
    additions = _load_optional(source_dir / "additions" / TASK_ADDITIONS_FILE)
    typer.secho(f"✓ Found {len(overrides)} task override(s)\n", fg=typer.colors.GREEN)

    typer.secho("Fetching current data from tarkov.dev API...", fg=typer.colors.CYAN)
    client = TarkovClient(settings.api_url, timeout=settings.api_timeout)
    try:
        api_tasks = client.fetch_tasks(mode)
    except TarkovAPIError as exc:
        log.error("overlay.check.api_failed", mode=mode, error=str(exc))
        raise TarkovUnavailableError.from_api_error(exc, mode) from exc
    finally:
        client.close()
    typer.secho(f"✓ Fetched {len(api_tasks)} tasks from API\n", fg=typer.colors.GREEN)

    with comparison_progress(len(overrides)) as progress:
        verdicts = reconcile_all(
            overrides, api_tasks, policy=policy, progress_callback=progress.advance
        )
        progress.finish(len(api_tasks))

    groups = categorize(verdicts)
    print_report(verdicts, groups, source_label=f"overrides/{TASKS_FILE}")

    addition_verdicts = [
        reconcile_addition(key, addition, api_tasks)
        for key, addition in additions.items()
        if isinstance(addition, dict)
    ]
    if addition_verdicts:
        print_header("TASK ADDITIONS")
        for verdict in addition_verdicts:
            print_verdict(verdict)

    if json_report:
        write_json_report(json_report, [*verdicts, *addition_verdicts], groups)
        typer.secho(f"Wrote JSON report to {json_report}", fg=typer.colors.BLUE)

    if strict and groups.obsolete:
        raise ObsoleteOverridesError(groups.obsolete)


@app.command("version")
def version() -> None:
    """Print the overlay tooling version."""

    typer.echo(__version__)


__all__ = ["app", "load_task_overrides"]
