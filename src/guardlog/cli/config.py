"""
CLI: ``guardlog config``: configuration inspection.
"""

from __future__ import annotations

import typer
from rich.table import Table

from guardlog.cli.utils import console, err_console

app = typer.Typer(no_args_is_help=True)


@app.command("show")
def show_config(
    format: str = typer.Option("table", "--format", "-f", help="Output format: table, json, env"),
) -> None:
    """Show the resolved configuration."""
    from pydantic import ValidationError

    from guardlog.config import get_settings

    try:
        settings = get_settings(_force_reload=True)
    except ValidationError as e:
        err_console.print(f"[red]Configuration Error:[/red] {e}")
        raise typer.Exit(1) from e

    if format == "json":
        console.print_json(settings.model_dump_json())
        return

    if format == "env":
        for key, value in sorted(settings.model_dump().items()):
            console.print(f"GUARDLOG_{key.upper()}={value}", highlight=False, markup=False)
        return

    table = Table(title="guardlog settings")
    table.add_column("Setting")
    table.add_column("Value")
    for key, value in sorted(settings.model_dump().items()):
        table.add_row(key, str(value))
    console.print(table)
