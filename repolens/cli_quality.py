"""Code-quality dashboard command."""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from .config_manager import load_options

console = Console()


def _render_bar(percentage: float) -> str:
    """Render a simple text progress bar."""
    filled = int(percentage / 10)
    empty = 10 - filled
    bar = "█" * filled + "░" * empty
    color = _score_color(percentage)
    return f"[{color}]{bar}[/{color}] {percentage:.0f}%"


def _score_color(score: float) -> str:
    if score >= 80:
        return "green"
    elif score >= 60:
        return "yellow"
    return "red"


def quality(
    path: Path = typer.Argument(..., help="Repository root to analyse."),
    threshold: Optional[float] = typer.Option(
        None, "--threshold", "-t", min=0.0, max=1.0,
        help="Similarity at which two chunks count as duplicated.",
    ),
    chunk_size: Optional[int] = typer.Option(
        None, "--chunk-size", "-c", min=2, help="Lines per duplication chunk.",
    ),
    long_function: Optional[int] = typer.Option(
        None, "--long-function", "-l", min=1, help="Line count above which a function is long.",
    ),
):
    """Score complexity, function length, duplication and comments."""
    from .cli import run_analysis

    options = load_options().with_stages({"quality"})
    overrides = {}
    if threshold is not None:
        overrides["duplication_threshold"] = threshold
    if chunk_size is not None:
        overrides["duplication_chunk_size"] = chunk_size
    if long_function is not None:
        overrides["long_function_threshold"] = long_function
    if overrides:
        options = options.with_quality(**overrides)

    result = run_analysis(path, options)
    report = result.quality
    if report is None:
        return

    color = _score_color(report.overall_score)
    console.print(
        Panel.fit(
            f"[bold {color}]{report.overall_score}/100[/bold {color}]",
            title="[bold]Overall Quality Score[/bold]",
            border_style=color,
        )
    )

    table = Table(title="\nDetailed Metrics", show_header=True, show_lines=False)
    table.add_column("Metric", style="cyan", width=16)
    table.add_column("Score", width=22)
    table.add_column("Details")

    avg_complexity = sum(report.complexity.values()) / len(report.complexity) if report.complexity else 0
    table.add_row("Complexity", _render_bar(report.scores.complexity), f"avg {avg_complexity:.1f} per file")
    table.add_row(
        "Function length",
        _render_bar(report.scores.long_functions),
        f"{len(report.long_functions)} over {options.quality.long_function_threshold} lines",
    )
    table.add_row("Duplication", _render_bar(report.scores.duplication), f"{len(report.duplications)} duplicated blocks")
    table.add_row(
        "Comments",
        _render_bar(report.scores.comments),
        f"{len(report.excessive_comments)} files over-commented",
    )
    console.print(table)

    if report.long_functions:
        long_table = Table(title="Longest Functions", show_header=True)
        long_table.add_column("Function", style="cyan")
        long_table.add_column("File")
        long_table.add_column("Line", justify="right")
        long_table.add_column("Length", justify="right")
        for fn in report.long_functions[:10]:
            long_table.add_row(fn.name, fn.file, str(fn.line), str(fn.length))
        console.print(long_table)

    if report.duplications:
        console.print("[bold]Duplicated blocks:[/bold]")
        for dup in report.duplications[:10]:
            console.print(
                f"  {dup.source_file}:{dup.source_line} ↔ {dup.target_file}:{dup.target_line} "
                f"({dup.line_count} lines, {dup.similarity:.0%})"
            )
