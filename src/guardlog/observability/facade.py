"""
Logger facade: one immutable, chainable logging handle over any backend.

A :class:`Logger` accumulates structured fields, an optional bound error and
an optional trace id. Each ``with_*`` call returns a new logger; the receiver
is never modified, so a logger can be shared freely between threads and
derived from concurrently.

Sensitive fields are redacted when they are attached (see
:mod:`guardlog.observability.redaction`); the original value is not kept
anywhere on the logger.

Every level has three call shapes, mirroring the usual print family:

    log.info("rows:", 3)              # operands concatenated
    log.infoln("rows:", 3)            # operands joined by spaces
    log.infof("rows: %d", 3)          # printf-style formatting

``fatal*`` flushes the backend and exits the process; ``panic*`` flushes
and raises :class:`~guardlog.core.errors.LoggerPanic`. Nothing else ever
raises out of an emit call.

Usage:
    backend = create_backend("stream", level="info")
    log = Logger(backend).with_fields(service="billing")
    log.with_field("api_key", key).info("charged")   # api_key=[REDACTED]
"""

from __future__ import annotations

import contextvars
import os
import sys
import traceback
from collections.abc import Callable, Mapping
from typing import Any, NoReturn

from guardlog.core.errors import LoggerPanic
from guardlog.observability.backends import Backend, Level, LogRecord
from guardlog.observability.context import context_value, trace_id_from
from guardlog.observability.fields import EMPTY_FIELDS, FieldSet
from guardlog.observability.redaction import RedactionConfig, sanitize

_PACKAGE_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))


def _caller_source() -> dict[str, Any] | None:
    """Return file/line/function of the first frame outside guardlog."""
    frame = sys._getframe(1)
    while frame is not None:
        filename = os.path.abspath(frame.f_code.co_filename)
        if not filename.startswith(_PACKAGE_DIR + os.sep):
            return {
                "file": filename,
                "line": frame.f_lineno,
                "function": frame.f_code.co_name,
            }
        frame = frame.f_back
    return None


def _sprint(args: tuple[Any, ...]) -> str:
    """Concatenate operands, adding a space between two non-string operands."""
    out: list[str] = []
    for i, arg in enumerate(args):
        if i > 0 and not isinstance(arg, str) and not isinstance(args[i - 1], str):
            out.append(" ")
        out.append(str(arg))
    return "".join(out)


def _sprintln(args: tuple[Any, ...]) -> str:
    return " ".join(str(arg) for arg in args)


def _sprintf(fmt: Any, args: tuple[Any, ...]) -> str:
    fmt = str(fmt)
    if not args:
        return fmt
    try:
        return fmt % args
    except (TypeError, ValueError, KeyError):
        return f"{fmt} [!BADFORMAT args={args!r}]"


def _format_stack(err: BaseException) -> str | None:
    if err.__traceback__ is None:
        return None
    return "".join(traceback.format_exception(type(err), err, err.__traceback__))


class Logger:
    """Immutable structured logger bound to a single backend."""

    __slots__ = (
        "_backend",
        "_redaction",
        "_fields",
        "_error",
        "_trace_id",
        "_context",
        "_trace_id_getter",
        "_exit_func",
    )

    def __init__(
        self,
        backend: Backend,
        redaction: RedactionConfig | None = None,
        *,
        trace_id_getter: Callable[[Any], str | None] | None = None,
        exit_func: Callable[[int], Any] = sys.exit,
    ):
        self._backend = backend
        self._redaction = redaction or RedactionConfig()
        self._fields: FieldSet = EMPTY_FIELDS
        self._error: BaseException | None = None
        self._trace_id: str | None = None
        self._context: Any = None
        self._trace_id_getter = trace_id_getter or trace_id_from
        self._exit_func = exit_func

    def _derive(self, **changes: Any) -> Logger:
        child = object.__new__(Logger)
        child._backend = self._backend
        child._redaction = self._redaction
        child._fields = changes.get("fields", self._fields)
        child._error = changes.get("error", self._error)
        child._trace_id = changes.get("trace_id", self._trace_id)
        child._context = changes.get("context", self._context)
        child._trace_id_getter = self._trace_id_getter
        child._exit_func = self._exit_func
        return child

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------

    @property
    def backend(self) -> Backend:
        return self._backend

    @property
    def redaction(self) -> RedactionConfig:
        return self._redaction

    @property
    def fields(self) -> FieldSet:
        """Fields attached so far (already redacted)."""
        return self._fields

    @property
    def bound_error(self) -> BaseException | None:
        return self._error

    @property
    def trace_id(self) -> str | None:
        return self._trace_id

    def enabled(self, level: Level | str | int) -> bool:
        """Check if the backend would write a record at ``level``."""
        return self._backend.enabled(Level.parse(level))

    # ------------------------------------------------------------------
    # Chaining
    # ------------------------------------------------------------------

    def with_field(self, key: Any, value: Any) -> Logger:
        """Return a logger with one more field."""
        return self.with_fields({key: value})

    def with_fields(self, fields: Mapping[Any, Any] | None = None, **kwargs: Any) -> Logger:
        """Return a logger with several more fields."""
        entries: dict[Any, Any] = dict(fields or {})
        entries.update(kwargs)
        if not entries:
            return self
        return self._derive(fields=self._fields.extend(sanitize(entries, self._redaction)))

    def with_error(self, err: BaseException | None) -> Logger:
        """Bind an error; ``None`` returns this logger unchanged."""
        if err is None:
            return self
        return self._derive(error=err)

    def with_context(self, ctx: Any = None) -> Logger:
        """Bind the trace id found in ``ctx`` (or the current context).

        The context itself is kept so :meth:`with_context_value` can read
        other values from it later; ``None`` is captured as a snapshot of
        the current context.
        """
        trace_id = self._trace_id_getter(ctx) or ""
        if ctx is None:
            ctx = contextvars.copy_context()
        return self._derive(trace_id=trace_id, context=ctx)

    def with_context_value(self, key: str, ctx: Any = None) -> Logger:
        """Attach the value stored under ``key`` in a context as a field.

        Reads ``ctx`` when given, else the context bound by
        :meth:`with_context`, else the current context. A missing value is
        attached as ``None``. The field is redacted like any other.
        """
        source = ctx if ctx is not None else self._context
        return self.with_field(key, context_value(source, key))

    # ------------------------------------------------------------------
    # Emission
    # ------------------------------------------------------------------

    def _log(self, level: Level, render: Callable[[], str]) -> None:
        if not self._backend.enabled(level):
            return

        message = render()
        err = self._error
        record = LogRecord(
            level=level,
            message=message,
            fields=self._fields,
            error=err,
            trace_id=self._trace_id,
            source=_caller_source() if self._backend.add_source else None,
            stack=_format_stack(err) if err is not None else None,
        )
        self._backend.emit(record)

    def _fatal(self, render: Callable[[], str]) -> None:
        self._log(Level.FATAL, render)
        self._backend.flush()
        self._exit_func(1)

    def _panic(self, render: Callable[[], str]) -> NoReturn:
        message = render()
        self._log(Level.PANIC, lambda: message)
        self._backend.flush()
        raise LoggerPanic(message, self._fields)

    # DEBUG

    def debug(self, *args: Any) -> None:
        self._log(Level.DEBUG, lambda: _sprint(args))

    def debugf(self, fmt: str, *args: Any) -> None:
        self._log(Level.DEBUG, lambda: _sprintf(fmt, args))

    def debugln(self, *args: Any) -> None:
        self._log(Level.DEBUG, lambda: _sprintln(args))

    # INFO

    def info(self, *args: Any) -> None:
        self._log(Level.INFO, lambda: _sprint(args))

    def infof(self, fmt: str, *args: Any) -> None:
        self._log(Level.INFO, lambda: _sprintf(fmt, args))

    def infoln(self, *args: Any) -> None:
        self._log(Level.INFO, lambda: _sprintln(args))

    # WARN

    def warn(self, *args: Any) -> None:
        self._log(Level.WARN, lambda: _sprint(args))

    def warnf(self, fmt: str, *args: Any) -> None:
        self._log(Level.WARN, lambda: _sprintf(fmt, args))

    def warnln(self, *args: Any) -> None:
        self._log(Level.WARN, lambda: _sprintln(args))

    # ERROR

    def error(self, *args: Any) -> None:
        self._log(Level.ERROR, lambda: _sprint(args))

    def errorf(self, fmt: str, *args: Any) -> None:
        self._log(Level.ERROR, lambda: _sprintf(fmt, args))

    def errorln(self, *args: Any) -> None:
        self._log(Level.ERROR, lambda: _sprintln(args))

    # FATAL

    def fatal(self, *args: Any) -> None:
        self._fatal(lambda: _sprint(args))

    def fatalf(self, fmt: str, *args: Any) -> None:
        self._fatal(lambda: _sprintf(fmt, args))

    def fatalln(self, *args: Any) -> None:
        self._fatal(lambda: _sprintln(args))

    # PANIC

    def panic(self, *args: Any) -> NoReturn:
        self._panic(lambda: _sprint(args))

    def panicf(self, fmt: str, *args: Any) -> NoReturn:
        self._panic(lambda: _sprintf(fmt, args))

    def panicln(self, *args: Any) -> NoReturn:
        self._panic(lambda: _sprintln(args))

    # Aliases
    warning = warn
    warningf = warnf
    warningln = warnln
    print = info
    printf = infof
    println = infoln

    def __repr__(self) -> str:
        return f"Logger(backend={self._backend!r}, fields={len(self._fields)})"
