"""
Root Typer application for the guardlog CLI.
"""

from __future__ import annotations

import typer
from typer import Typer

app = Typer(
    name="guardlog",
    help="guardlog: structured logging with sensitive-field redaction.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)


def _version_callback(value: bool) -> None:
    if value:
        from guardlog import __version__

        typer.echo(f"guardlog {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool | None = typer.Option(  # noqa: UP007
        None,
        "--version",
        "-V",
        help="Show version and exit.",
        callback=_version_callback,
        is_eager=True,
    ),
) -> None:
    """guardlog CLI: inspect configuration and redact log files."""


# ── Sub-command registration ─────────────────────────────────────────────

from guardlog.cli.config import app as config_app  # noqa: E402
from guardlog.cli.redact import redact  # noqa: E402

app.add_typer(config_app, name="config", help="Configuration inspection.")
app.command("redact")(redact)
