"""
CLI: ``guardlog redact``: scrub sensitive fields from JSON-lines logs.

Each input line that parses as a JSON object is passed through
:func:`~guardlog.observability.redaction.sanitize` using the configured
redaction policy. Other lines are written back untouched and reported on
stderr.
"""

from __future__ import annotations

import json
import sys
from pathlib import Path

import typer

from guardlog.cli.utils import err_console


def redact(
    path: Path | None = typer.Argument(None, help="JSON-lines file (default: stdin)", exists=True, dir_okay=False),
    allow_sensitive: bool = typer.Option(False, "--allow-sensitive", help="Disable redaction (pass-through)"),
    pattern: list[str] = typer.Option([], "--pattern", "-p", help="Extra sensitive key substring"),
) -> None:
    """Redact sensitive fields from JSON log lines."""
    from guardlog.config import get_settings, redaction_from
    from guardlog.observability.redaction import RedactionConfig, sanitize

    base = redaction_from(get_settings())
    config = RedactionConfig(
        allow_sensitive=allow_sensitive or base.allow_sensitive,
        extra_patterns=base.extra_patterns + tuple(pattern),
    )

    stream = path.open(encoding="utf-8") if path is not None else sys.stdin
    skipped = 0
    try:
        for lineno, line in enumerate(stream, start=1):
            text = line.rstrip("\n")
            try:
                entry = json.loads(text)
            except json.JSONDecodeError:
                entry = None
            if not isinstance(entry, dict):
                skipped += 1
                typer.echo(text)
                continue
            typer.echo(json.dumps(sanitize(entry, config), ensure_ascii=False))
    finally:
        if path is not None:
            stream.close()

    if skipped:
        err_console.print(f"[yellow]Warning:[/yellow] {skipped} line(s) were not JSON objects and were left as-is")
