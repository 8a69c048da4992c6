"""Rich progress bar for comparing task overrides against tarkov.dev."""
from __future__ import annotations

from contextlib import contextmanager
from dataclasses import dataclass
from typing import Iterator, Optional

from rich.console import Console
from rich.progress import (
    BarColumn,
    MofNCompleteColumn,
    Progress,
    TaskID,
    TextColumn,
    TimeElapsedColumn,
)

__all__ = ["ComparisonProgress", "comparison_progress"]


@dataclass
class ComparisonProgress:
    """Counts compared overrides; :meth:`advance` doubles as a progress callback."""

    progress: Progress
    task_id: TaskID
    console: Console
    total: int
    compared: int = 0

    def advance(self, step: int = 1) -> None:
        self.compared += step
        self.progress.update(
            self.task_id,
            advance=step,
            description=f"Compared {self.compared}/{self.total} tasks",
        )

    def finish(self, api_count: int) -> None:
        self.progress.update(self.task_id, completed=max(self.total, 1))
        self.console.print(
            f"[bold green]✔ Compared {self.compared} override(s) "
            f"against {api_count} tasks.[/bold green]"
        )


@contextmanager
def comparison_progress(
    total: int, *, console: Optional[Console] = None
) -> Iterator[ComparisonProgress]:
    """Show a bar while *total* task overrides are reconciled.

    A body that raises leaves a failure line under the bar.
    """

    output = console or Console()
    output.rule("[bold cyan]Validating overrides")

    with Progress(
        TextColumn("[progress.description]{task.description}"),
        BarColumn(bar_width=None),
        MofNCompleteColumn(),
        TimeElapsedColumn(),
        console=output,
    ) as progress:
        task_id = progress.add_task("Comparing overrides", total=max(total, 1))
        tracker = ComparisonProgress(progress, task_id, output, total)
        try:
            yield tracker
        except Exception:
            output.print(
                f"[bold red]✖ Comparison stopped after {tracker.compared}/{total} tasks.[/bold red]"
            )
            raise
