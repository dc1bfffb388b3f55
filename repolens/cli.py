"""Typer-based CLI for RepoLens."""

from __future__ import annotations

import logging
from dataclasses import replace
from pathlib import Path
from typing import List, Optional

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table

from . import __version__
from .cli_config import config_app
from .cli_quality import quality
from .config_manager import ALL_STAGES, AnalysisOptions, load_options
from .discovery import RepositoryRootMissing
from .models import AnalysisResult
from .orchestrator import analyze_repository

console = Console()
err_console = Console(stderr=True)

app = typer.Typer(
    help="🔎 RepoLens: lexical static analysis of symbols, dependencies, flows, impact and quality.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)

app.add_typer(config_app, name="config")
app.command("quality")(quality)


def version_callback(value: bool):
    """Print version and exit."""
    if value:
        typer.echo(f"RepoLens v{__version__}")
        raise typer.Exit()


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.INFO if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=err_console, show_path=False)],
        force=True,
    )


@app.callback()
def main(
    version: Optional[bool] = typer.Option(
        None,
        "--version",
        "-V",
        help="Show version and exit.",
        callback=version_callback,
        is_eager=True,
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log stage progress."),
):
    """RepoLens: symbol tables, dependency cycles, change impact and code quality."""
    _configure_logging(verbose)


def run_analysis(
    path: Path,
    options: AnalysisOptions,
    exclude: Optional[List[str]] = None,
) -> AnalysisResult:
    """Run the pipeline, turning a missing root into a clean exit."""
    try:
        return analyze_repository(path, options, exclude=exclude or None)
    except RepositoryRootMissing as exc:
        err_console.print(f"[red]❌ {exc}[/red]")
        raise typer.Exit(code=1)


def _relative_arg(path: Path, file_arg: str) -> str:
    """Accept FILE relative to PATH or as a path that lives under PATH."""
    candidate = Path(file_arg)
    if candidate.is_absolute():
        try:
            return candidate.resolve().relative_to(path.resolve()).as_posix()
        except ValueError:
            pass
    return candidate.as_posix()


# ===================================================================
# analyze
# ===================================================================

@app.command("analyze")
def analyze_cmd(
    path: Path = typer.Argument(..., help="Repository root to analyse."),
    stage: Optional[List[str]] = typer.Option(
        None, "--stage", "-s",
        help=f"Stage to run (repeatable): {', '.join(sorted(ALL_STAGES))}. Prerequisites are added.",
    ),
    as_json: bool = typer.Option(False, "--json", help="Print the full result as JSON."),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Write the JSON result to a file."),
    exclude: Optional[List[str]] = typer.Option(None, "--exclude", "-e", help="Directory name to skip (repeatable)."),
    workers: Optional[int] = typer.Option(None, "--workers", "-w", min=1, help="Threads for per-file work."),
    parser: Optional[str] = typer.Option(None, "--parser", help="Python extractor backend: regex or ast."),
):
    """Run the analysis pipeline over a repository."""
    options = load_options()
    if stage:
        unknown = sorted(set(stage) - ALL_STAGES)
        if unknown:
            raise typer.BadParameter(
                f"Unknown stage(s): {', '.join(unknown)}. Choose from: {', '.join(sorted(ALL_STAGES))}"
            )
        options = options.with_stages(stage)
    if workers:
        options = replace(options, workers=workers)
    if parser:
        if parser not in ("regex", "ast"):
            raise typer.BadParameter("Parser must be one of: regex, ast")
        options = replace(options, parser_backend=parser)

    result = run_analysis(path, options, exclude)
    payload = result.to_json()

    if output:
        output.parent.mkdir(parents=True, exist_ok=True)
        output.write_text(payload, encoding="utf-8")
        err_console.print(f"[green]✓[/green] Wrote analysis to {output}")

    if as_json:
        typer.echo(payload)
        return
    _print_summary(result)


def _print_summary(result: AnalysisResult) -> None:
    table = Table(title="Analysis Summary", show_header=True)
    table.add_column("Metric", style="cyan")
    table.add_column("Value", justify="right")

    table.add_row("Files", str(len(result.files)))
    table.add_row("Unreadable files", str(len(result.unreadable_files)))
    if result.semantics:
        stats = result.semantics.stats
        table.add_row("Symbols", str(stats.get("total_symbols", 0)))
        table.add_row("Calls", str(stats.get("total_calls", 0)))
        table.add_row("Inheritance edges", str(stats.get("total_inheritance", 0)))
    if result.dependencies:
        deps = result.dependencies
        internal = sum(1 for d in deps.dependencies if not d.is_external)
        table.add_row("Internal dependencies", str(internal))
        table.add_row("External packages", str(len(deps.external_dependencies)))
        table.add_row("Dependency cycles", str(len(deps.cycles)))
    if result.cross_references:
        table.add_row("Unused symbols", str(len(result.cross_references.unused)))
    if result.flows:
        table.add_row("Entry points", str(len(result.flows.entry_points)))
        table.add_row("Execution paths", str(len(result.flows.execution_paths)))
    if result.quality:
        table.add_row("Quality score", f"{result.quality.overall_score}/100")
    console.print(table)

    if result.languages and result.languages.distribution:
        lang_table = Table(title="Languages", show_header=True)
        lang_table.add_column("Language", style="cyan")
        lang_table.add_column("Files", justify="right")
        lang_table.add_column("Lines", justify="right")
        lang_table.add_column("%", justify="right")
        for metrics in result.languages.distribution:
            lang_table.add_row(metrics.language, str(metrics.files), str(metrics.lines), f"{metrics.percentage:.1f}")
        console.print(lang_table)

    if result.cross_references and result.cross_references.hotspots:
        console.print("[bold]Hotspots:[/bold] " + ", ".join(result.cross_references.hotspots))


# ===================================================================
# impact / cycles / symbols
# ===================================================================

@app.command("impact")
def impact(
    path: Path = typer.Argument(..., help="Repository root to analyse."),
    file: str = typer.Argument(..., help="File (relative to PATH) to predict change impact for."),
):
    """Predict which files are affected when FILE changes."""
    options = load_options().with_stages({"impact"})
    result = run_analysis(path, options)
    target = _relative_arg(path, file)

    prediction = result.impact.impact_by_file.get(target) if result.impact else None
    if prediction is None:
        err_console.print(f"[red]❌ No impact data for '{target}'.[/red] It declares no symbols and has no internal dependencies.")
        raise typer.Exit(code=1)

    color = "red" if prediction.impact_score > 50 else "yellow" if prediction.impact_score > 20 else "green"
    console.print(Panel.fit(
        f"[bold {color}]{prediction.impact_score:.1f}[/bold {color}] / 100",
        title=f"[bold]Impact score: {target}[/bold]",
        border_style=color,
    ))
    console.print(f"[bold]Direct impact ({len(prediction.direct_impact)}):[/bold]")
    for f in prediction.direct_impact:
        console.print(f"  • {f}")
    console.print(f"[bold]Transitive impact ({len(prediction.transitive_impact)}):[/bold]")
    for f in prediction.transitive_impact:
        console.print(f"  • {f}")

    if prediction.risky_areas:
        table = Table(title="Risky Areas", show_header=True)
        table.add_column("Path", style="cyan")
        table.add_column("Risk", justify="right")
        table.add_column("Reason")
        for area in prediction.risky_areas:
            table.add_row(area.path, str(area.risk), area.reason)
        console.print(table)

    factors = result.impact.risk_factors.get(target, []) if result.impact else []
    for factor in factors:
        console.print(f"[yellow]⚠[/yellow] {factor}")


@app.command("cycles")
def cycles(
    path: Path = typer.Argument(..., help="Repository root to analyse."),
    exclude: Optional[List[str]] = typer.Option(None, "--exclude", "-e", help="Directory name to skip (repeatable)."),
):
    """List circular file dependencies."""
    options = load_options().with_stages({"dependencies"})
    result = run_analysis(path, options, exclude)
    found = result.dependencies.cycles if result.dependencies else []
    if not found:
        console.print("[green]✓ No dependency cycles found.[/green]")
        return
    console.print(f"[bold red]{len(found)} dependency cycle(s):[/bold red]")
    for cycle in found:
        console.print(f"  ({cycle.length} files) " + " → ".join(cycle.paths))


@app.command("symbols")
def symbols(
    path: Path = typer.Argument(..., help="Repository root to analyse."),
    file: Optional[str] = typer.Option(None, "--file", "-f", help="Only show symbols declared in this file."),
    parser: Optional[str] = typer.Option(None, "--parser", help="Python extractor backend: regex or ast."),
):
    """List extracted symbols."""
    options = load_options().with_stages({"semantics"})
    if parser:
        if parser not in ("regex", "ast"):
            raise typer.BadParameter("Parser must be one of: regex, ast")
        options = replace(options, parser_backend=parser)
    result = run_analysis(path, options)
    table_data = result.semantics.symbols if result.semantics else None
    if table_data is None:
        return

    if file:
        listed = table_data.in_file(_relative_arg(path, file))
    else:
        listed = table_data.to_list()
    if not listed:
        console.print("[yellow]No symbols found.[/yellow]")
        return

    table = Table(title=f"Symbols ({len(listed)})", show_header=True)
    table.add_column("Name", style="cyan")
    table.add_column("Kind")
    table.add_column("File")
    table.add_column("Line", justify="right")
    table.add_column("Parent")
    for sym in listed:
        table.add_row(sym.name, sym.kind.value, sym.file_path, str(sym.location.line), sym.parent or "")
    console.print(table)


if __name__ == "__main__":
    app()
