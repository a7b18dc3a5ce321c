"""UI utilities for shotgrade batch runs."""

from __future__ import annotations

from rich.console import Console
from rich.progress import (
    BarColumn,
    MofNCompleteColumn,
    Progress,
    SpinnerColumn,
    TextColumn,
    TimeElapsedColumn,
    TimeRemainingColumn,
)
from rich.table import Table

from shotgrade.analyze import ImageAnalysis


def create_progress(console: Console | None = None, transient: bool = False) -> Progress:
    """Progress bar for a batch of images: done/total, elapsed and remaining."""
    return Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        BarColumn(),
        MofNCompleteColumn(),
        TimeElapsedColumn(),
        TimeRemainingColumn(),
        console=console,
        transient=transient,
    )


def results_table(results: list[ImageAnalysis], top: int | None = None) -> Table:
    """Ranked table of analyzed images, best first."""
    ranked = sorted(results, key=lambda r: r.score.overall_raw, reverse=True)
    if top is not None:
        ranked = ranked[:top]

    table = Table(title="Image scores")
    table.add_column("Rank", justify="right")
    table.add_column("Score", justify="right")
    table.add_column("Stars", justify="center")
    table.add_column("Category")
    table.add_column("Issues")
    table.add_column("File")

    for i, r in enumerate(ranked, 1):
        issues = ", ".join(issue.message for issue in r.score.issues)
        table.add_row(
            str(i),
            str(r.score.overall),
            "★" * r.score.rating,
            r.score.category if r.success else f"error: {r.error}",
            issues,
            r.key,
        )
    return table
