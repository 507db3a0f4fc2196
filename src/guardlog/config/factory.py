"""
Factory functions that build loggers and tracers from settings.

There is no process-wide logger: the application calls
:func:`create_logger` once at startup and hands the result (or loggers
derived from it) to whatever needs to log.

Features:
    - ``create_logger()``: backend + redaction policy from settings
    - ``create_query_tracer()``: tracer bound to a logger
    - ``open_output()``: resolve the ``log_output`` setting to a sink
"""

from __future__ import annotations

import sys
from typing import TYPE_CHECKING, Any, TextIO

from guardlog.db.tracer import QueryTracer, TracerConfig
from guardlog.observability.backends import BackendConfig, create_backend
from guardlog.observability.facade import Logger
from guardlog.observability.redaction import RedactionConfig

if TYPE_CHECKING:
    from .settings import GuardlogSettings


def open_output(target: str) -> TextIO:
    """Map ``stdout``/``stderr``/a file path to a writable text sink.

    Files are opened in append mode, line buffered.
    """
    name = target.strip()
    if name.lower() in ("", "stdout", "-"):
        return sys.stdout
    if name.lower() == "stderr":
        return sys.stderr
    return open(name, "a", encoding="utf-8", buffering=1)  # noqa: SIM115


def redaction_from(settings: GuardlogSettings) -> RedactionConfig:
    """Build the redaction policy from settings."""
    return RedactionConfig(
        allow_sensitive=settings.allow_sensitive,
        extra_patterns=tuple(settings.sensitive_patterns),
    )


def create_logger(settings: GuardlogSettings | None = None, **logger_kwargs: Any) -> Logger:
    """Create the root :class:`Logger` described by *settings*.

    Extra keyword arguments (``trace_id_getter``, ``exit_func``) are passed
    to the logger. Raises a ``ConfigError`` if the backend cannot be built.
    """
    if settings is None:
        from .settings import get_settings

        settings = get_settings()

    config = BackendConfig(
        level=settings.log_level,
        add_source=settings.log_add_source,
        output=open_output(settings.log_output),
        format=settings.log_format,
    )
    backend = create_backend(settings.log_backend, config)
    return Logger(backend, redaction_from(settings), **logger_kwargs)


def create_query_tracer(logger: Logger, settings: GuardlogSettings | None = None) -> QueryTracer:
    """Create a :class:`QueryTracer` for one database, logging through *logger*."""
    if settings is None:
        from .settings import get_settings

        settings = get_settings()

    return QueryTracer(
        logger,
        TracerConfig(
            slow_threshold=settings.db_slow_threshold,
            ignore_record_not_found=settings.db_ignore_record_not_found,
            log_level=settings.db_log_level,
        ),
    )
