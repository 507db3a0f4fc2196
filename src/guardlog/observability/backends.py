"""
Backend adapters: turn a :class:`LogRecord` into bytes on a sink.

Three interchangeable engines sit behind one :class:`Backend` contract and
are selected once, at construction, through :func:`create_backend`:

- ``stream``    line-oriented writer that encodes records itself
- ``structlog`` structlog processor chain (JSONRenderer / LogfmtRenderer)
- ``stdlib``    a detached ``logging.Logger`` with its own handler/formatter

Every engine understands the same options (:class:`BackendConfig`):

    level       minimum severity; records below it are dropped before encoding
    add_source  capture the caller's file/line/function
    output      target sink (defaults to ``sys.stdout``)
    format      "json" (default) or "text"

Construction validates everything up front and raises a
:class:`~guardlog.core.errors.ConfigError` on bad input; a backend that was
built never fails later because of its configuration.
"""

from __future__ import annotations

import json
import logging
import sys
import threading
from abc import ABC, abstractmethod
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum, IntEnum
from typing import Any, TextIO

import structlog

from guardlog.core.errors import InvalidConfigError, MissingConfigError
from guardlog.observability.fields import render_value


def utcnow() -> datetime:
    """Return timezone-aware UTC datetime."""
    return datetime.now(UTC)


class Level(IntEnum):
    """Emit severities, ordered from most to least verbose."""

    DEBUG = 10
    INFO = 20
    WARN = 30
    ERROR = 40
    FATAL = 50
    PANIC = 60

    @classmethod
    def parse(cls, value: Level | int | str) -> Level:
        """Accept an enum member, its numeric value or a case-insensitive name."""
        if isinstance(value, Level):
            return value
        if isinstance(value, int) and not isinstance(value, bool):
            try:
                return cls(value)
            except ValueError as e:
                raise InvalidConfigError("level", value) from e
        if isinstance(value, str):
            name = value.strip().upper()
            name = _LEVEL_ALIASES.get(name, name)
            try:
                return cls[name]
            except KeyError as e:
                raise InvalidConfigError("level", value) from e
        raise InvalidConfigError("level", value)


_LEVEL_ALIASES = {"WARNING": "WARN", "CRITICAL": "FATAL"}


class LogFormat(str, Enum):
    """Output encoding."""

    JSON = "json"
    TEXT = "text"


class BackendKind(str, Enum):
    """Available backend engines."""

    STREAM = "stream"
    STRUCTLOG = "structlog"
    STDLIB = "stdlib"


def _parse_choice(enum_cls: type[Enum], value: Any, key: str) -> Any:
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(str(value).strip().lower())
    except ValueError as e:
        raise InvalidConfigError(key, value) from e


@dataclass(frozen=True)
class BackendConfig:
    """Backend options. ``level`` is required; everything else has a default."""

    level: Level | int | str | None = None
    add_source: bool = False
    output: TextIO | None = None
    format: LogFormat | str = LogFormat.JSON

    def __post_init__(self) -> None:
        if self.level is None:
            raise MissingConfigError("level", "Backend configuration requires a level")
        object.__setattr__(self, "level", Level.parse(self.level))

        fmt = self.format or LogFormat.JSON
        object.__setattr__(self, "format", _parse_choice(LogFormat, fmt, "format"))

        if self.output is not None and not callable(getattr(self.output, "write", None)):
            raise InvalidConfigError("output", self.output, "Output sink must provide write()")


# Record fields that caller-attached keys may not overwrite.
_RESERVED_KEYS = frozenset({"time", "level", "msg", "error", "stack", "trace_id", "source"})


@dataclass(frozen=True)
class LogRecord:
    """One emitted log entry, ready for encoding."""

    level: Level
    message: str
    fields: Mapping[str, Any] = field(default_factory=dict)
    error: BaseException | None = None
    trace_id: str | None = None
    time: datetime = field(default_factory=utcnow)
    source: Mapping[str, Any] | None = None
    stack: str | None = None

    def to_dict(self) -> dict[str, Any]:
        """Build the flat output payload (time, level, msg, fields, ...)."""
        payload: dict[str, Any] = {
            "time": self.time.isoformat(),
            "level": self.level.name,
            "msg": self.message,
        }
        for key, value in self.fields.items():
            if key in _RESERVED_KEYS:
                key = f"fields.{key}"
            payload[key] = render_value(value)

        if self.error is not None:
            payload["error"] = str(self.error)
        if self.stack:
            payload["stack"] = self.stack
        if self.trace_id is not None:
            payload["trace_id"] = self.trace_id
        if self.source:
            payload["source"] = dict(self.source)
        return payload


def encode_json(record: LogRecord) -> str:
    """Encode a record as a single JSON line (no trailing newline)."""
    return json.dumps(record.to_dict(), default=str, ensure_ascii=False)


def _text_value(value: Any) -> str:
    if isinstance(value, str):
        if value and not any(c.isspace() or c in '"=' for c in value):
            return value
        return json.dumps(value, ensure_ascii=False)
    if isinstance(value, bool):
        return "true" if value else "false"
    if value is None:
        return "null"
    if isinstance(value, (dict, list)):
        return json.dumps(value, default=str, ensure_ascii=False)
    return str(value)


def _text_message(message: str) -> str:
    # Spaces are fine in the message; line breaks and other control chars are not.
    if message.isprintable():
        return message
    return json.dumps(message, ensure_ascii=False)


def encode_text(record: LogRecord) -> str:
    """Encode a record as ``time LEVEL msg key=value ...`` on one line."""
    payload = record.to_dict()
    head = f"{payload.pop('time')} {payload.pop('level'):<5} {_text_message(payload.pop('msg'))}"
    parts = [f"{key}={_text_value(value)}" for key, value in payload.items()]
    return " ".join([head, *parts])


class Backend(ABC):
    """Encodes and writes records for a logger."""

    kind: BackendKind

    def __init__(self, config: BackendConfig):
        self.config = config
        self.level: Level = config.level  # type: ignore[assignment]
        self.format: LogFormat = config.format  # type: ignore[assignment]
        self.output: TextIO = config.output if config.output is not None else sys.stdout

    @property
    def add_source(self) -> bool:
        return self.config.add_source

    def enabled(self, level: Level) -> bool:
        """Check if a record at ``level`` would be written."""
        return level >= self.level

    @abstractmethod
    def emit(self, record: LogRecord) -> None:
        """Encode and write one record."""

    def flush(self) -> None:
        """Flush the output sink, if it supports flushing."""
        flush = getattr(self.output, "flush", None)
        if callable(flush):
            flush()

    def __repr__(self) -> str:
        return f"{type(self).__name__}(level={self.level.name}, format={self.format.value})"


class StreamBackend(Backend):
    """Writes one encoded line per record, serialized by a lock."""

    kind = BackendKind.STREAM

    def __init__(self, config: BackendConfig):
        super().__init__(config)
        self._lock = threading.Lock()
        self._encode = encode_json if self.format is LogFormat.JSON else encode_text

    def emit(self, record: LogRecord) -> None:
        line = self._encode(record)
        with self._lock:
            self.output.write(line + "\n")


def _order_keys(logger: Any, method_name: str, event_dict: dict[str, Any]) -> dict[str, Any]:
    """Structlog processor: put time, level, msg first."""
    ordered = {key: event_dict.pop(key) for key in ("time", "level", "msg") if key in event_dict}
    ordered.update(event_dict)
    return ordered


def _logfmt_safe(logger: Any, method_name: str, event_dict: dict[str, Any]) -> dict[str, Any]:
    """Structlog processor: no whitespace or '=' in keys, no control chars in values."""
    safe: dict[str, Any] = {}
    for key, value in event_dict.items():
        key = "".join("_" if c.isspace() or c == "=" else c for c in key) or "_"
        if isinstance(value, str) and not value.isprintable():
            value = json.dumps(value, ensure_ascii=False)[1:-1]
        safe[key] = value
    return safe


class StructlogBackend(Backend):
    """Delegates rendering to a structlog processor chain."""

    kind = BackendKind.STRUCTLOG

    def __init__(self, config: BackendConfig):
        super().__init__(config)
        processors: list[Any] = [structlog.processors.EventRenamer("msg"), _order_keys]
        if self.format is LogFormat.JSON:
            processors.append(structlog.processors.JSONRenderer(default=str, ensure_ascii=False))
        else:
            processors.append(_logfmt_safe)
            processors.append(
                structlog.processors.LogfmtRenderer(
                    key_order=["time", "level", "msg"],
                    drop_missing=True,
                    bool_as_flag=False,
                )
            )

        self._processors = processors
        self._print_logger = structlog.PrintLogger(file=self.output)

    def emit(self, record: LogRecord) -> None:
        payload = record.to_dict()
        message = payload.pop("msg")
        # "event" is the positional slot structlog fills with the message.
        if "event" in payload:
            payload["fields.event"] = payload.pop("event")
        # The payload is the context dict itself: field names never become keyword arguments.
        structlog.BoundLogger(self._print_logger, self._processors, payload).msg(message)


class _RecordFormatter(logging.Formatter):
    """Formatter that renders the guardlog record carried on a stdlib record."""

    def __init__(self, encode):
        super().__init__()
        self._encode = encode

    def format(self, record: logging.LogRecord) -> str:
        return self._encode(record.guardlog_record)  # type: ignore[attr-defined]


_STDLIB_LEVELS = {
    Level.DEBUG: logging.DEBUG,
    Level.INFO: logging.INFO,
    Level.WARN: logging.WARNING,
    Level.ERROR: logging.ERROR,
    Level.FATAL: logging.CRITICAL,
    Level.PANIC: logging.CRITICAL,
}


class StdlibBackend(Backend):
    """
    Leveled sink built on the standard ``logging`` machinery.

    The logger is created directly rather than through ``logging.getLogger``
    so it is not registered in the global logger tree and never propagates.
    The handler lock serializes writes.
    """

    kind = BackendKind.STDLIB

    def __init__(self, config: BackendConfig, name: str = "guardlog"):
        super().__init__(config)
        self._logger = logging.Logger(name)
        self._logger.propagate = False
        self._logger.setLevel(_STDLIB_LEVELS[self.level])

        self._handler = logging.StreamHandler(self.output)
        encode = encode_json if self.format is LogFormat.JSON else encode_text
        self._handler.setFormatter(_RecordFormatter(encode))
        self._logger.addHandler(self._handler)

    def emit(self, record: LogRecord) -> None:
        self._logger.log(
            _STDLIB_LEVELS[record.level],
            record.message,
            extra={"guardlog_record": record},
        )

    def flush(self) -> None:
        self._handler.flush()


_BACKENDS: dict[BackendKind, type[Backend]] = {
    BackendKind.STREAM: StreamBackend,
    BackendKind.STRUCTLOG: StructlogBackend,
    BackendKind.STDLIB: StdlibBackend,
}


def create_backend(
    kind: BackendKind | str = BackendKind.STREAM,
    config: BackendConfig | None = None,
    **options: Any,
) -> Backend:
    """
    Build a backend engine.

    Either pass a ready :class:`BackendConfig` or the options themselves:

        create_backend("structlog", level="info", format="text")

    Raises:
        MissingConfigError: no level was given
        InvalidConfigError: unknown kind, level or format, or a bad sink
    """
    backend_kind = _parse_choice(BackendKind, kind, "backend")
    if config is None:
        config = BackendConfig(**options)
    elif options:
        raise InvalidConfigError("options", sorted(options), "Pass either config or options, not both")
    return _BACKENDS[backend_kind](config)
