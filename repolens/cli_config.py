"""``repolens config`` commands: inspect and edit ~/.repolens/config.toml."""

from __future__ import annotations

from dataclasses import asdict
from typing import Any

import toml
import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from . import config, config_manager

console = Console()

config_app = typer.Typer(help="⚙️  Show or change analysis settings", no_args_is_help=True)


def _parse_value(raw: str) -> Any:
    """Interpret *raw* as a TOML value, falling back to a plain string."""
    try:
        return toml.loads(f"value = {raw}")["value"]
    except toml.TomlDecodeError:
        return raw


@config_app.command("show")
def show():
    """Show the effective settings and where they come from."""
    exists = config.CONFIG_FILE.exists()
    source = str(config.CONFIG_FILE) if exists else "defaults (no config file)"
    console.print(f"[bold]Config:[/bold] {source}")

    options = config_manager.load_options()
    sections = {
        "analysis": {
            "stages": ", ".join(sorted(options.stages)),
            "parser_backend": options.parser_backend,
            "workers": options.workers,
            "max_entry_points": options.max_entry_points,
            "max_path_depth": options.max_path_depth,
            "max_execution_paths": options.max_execution_paths,
            "max_path_visits": options.max_path_visits,
            "time_budget_seconds": options.time_budget_seconds,
        },
        "impact": asdict(options.impact),
        "quality": asdict(options.quality),
    }
    for name, values in sections.items():
        table = Table(title=escape(f"[{name}]"), show_header=True, title_justify="left")
        table.add_column("Key", style="cyan")
        table.add_column("Value")
        for key, value in values.items():
            table.add_row(key, str(value))
        console.print(table)


@config_app.command("set")
def set_value(
    section: str = typer.Argument(..., help="Section: analysis, impact or quality."),
    key: str = typer.Argument(..., help="Setting name."),
    value: str = typer.Argument(..., help="New value (TOML syntax; bare words are strings)."),
):
    """Persist one setting to the config file."""
    try:
        path = config_manager.set_option(section, key, _parse_value(value))
    except ValueError as exc:
        raise typer.BadParameter(str(exc))
    console.print(f"[green]✓[/green] Set " + escape(f"[{section}].{key}") + f" in {path}")


@config_app.command("reset")
def reset():
    """Delete the config file and return to defaults."""
    if config_manager.reset_config():
        console.print(f"[green]✓[/green] Removed {config.CONFIG_FILE}")
    else:
        console.print("[yellow]No config file to remove.[/yellow]")
