"""
Query tracer: classify one completed database operation and log it.

Each traced operation produces at most one record, picked by the first
matching rule:

    1. failed    error present, level >= ERROR, and the error is not an
                 ignored "record not found"            -> ERROR "failed query"
    2. slow      level >= WARN, threshold set, elapsed > threshold
                                                       -> WARN  "slow query > <threshold>"
    3. normal    level >= INFO                         -> INFO  "query"
    4. otherwise nothing

The not-found suppression only affects rule 1: a slow query that ended in
"record not found" is still reported as slow.

The tracer can be fed three ways:

- ``trace(ctx, begin, result_fn, error)`` for callers that already time the
  operation themselves;
- ``with tracer.observe(sql) as q:`` around a block of ORM/Core work;
- ``tracer.attach(engine)`` to trace every statement a SQLAlchemy engine
  executes.
"""

from __future__ import annotations

import contextvars
import time
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass, replace
from datetime import timedelta
from enum import IntEnum
from typing import Any

from sqlalchemy import event
from sqlalchemy.engine import Engine
from sqlalchemy.exc import NoResultFound

from guardlog.core.errors import InvalidConfigError
from guardlog.observability.context import get_trace_id
from guardlog.observability.facade import Logger

_START_KEY = "guardlog_query_start"


class TraceLevel(IntEnum):
    """Tracer verbosity. A level lets through its own bucket and every lower one."""

    SILENT = 1
    ERROR = 2
    WARN = 3
    INFO = 4

    @classmethod
    def parse(cls, value: TraceLevel | int | str) -> TraceLevel:
        if isinstance(value, TraceLevel):
            return value
        if isinstance(value, int) and not isinstance(value, bool):
            try:
                return cls(value)
            except ValueError as e:
                raise InvalidConfigError("log_level", value) from e
        if isinstance(value, str):
            name = value.strip().upper()
            if name == "WARNING":
                name = "WARN"
            try:
                return cls[name]
            except KeyError as e:
                raise InvalidConfigError("log_level", value) from e
        raise InvalidConfigError("log_level", value)


@dataclass(frozen=True)
class TracerConfig:
    """
    slow_threshold: seconds (or a timedelta) above which a query is slow;
        0 disables slow-query classification.
    ignore_record_not_found: never report "record not found" as a failure.
    log_level: tracer verbosity.
    """

    slow_threshold: float = 0.0
    ignore_record_not_found: bool = False
    log_level: TraceLevel = TraceLevel.WARN

    def __post_init__(self) -> None:
        threshold = self.slow_threshold
        if isinstance(threshold, timedelta):
            threshold = threshold.total_seconds()
        if threshold is None or threshold < 0:
            raise InvalidConfigError("slow_threshold", self.slow_threshold)
        object.__setattr__(self, "slow_threshold", float(threshold))
        object.__setattr__(self, "log_level", TraceLevel.parse(self.log_level))


@dataclass(frozen=True)
class QueryTrace:
    """One completed operation."""

    sql: str
    rows: int
    elapsed: float
    error: BaseException | None = None


@dataclass
class ObservedQuery:
    """Mutable handle yielded by :meth:`QueryTracer.observe`."""

    sql: str
    rows: int = -1


def format_duration(seconds: float) -> str:
    """Render a duration compactly: ``1.5s``, ``2.1ms``, ``850µs``."""
    if seconds == 0:
        return "0s"
    if abs(seconds) >= 1:
        return f"{seconds:g}s"
    if abs(seconds) >= 0.001:
        return f"{seconds * 1000:g}ms"
    return f"{seconds * 1_000_000:g}µs"


def is_record_not_found(
    err: BaseException | None,
    kinds: tuple[type[BaseException], ...] = (NoResultFound,),
) -> bool:
    """Check ``err`` and its cause/context chain for a not-found error."""
    seen: set[int] = set()
    while err is not None and id(err) not in seen:
        if isinstance(err, kinds):
            return True
        seen.add(id(err))
        err = err.__cause__ or err.__context__
    return False


class QueryTracer:
    """Logs completed database operations through a :class:`Logger`."""

    def __init__(
        self,
        logger: Logger,
        config: TracerConfig | None = None,
        *,
        clock: Callable[[], float] = time.perf_counter,
        not_found: tuple[type[BaseException], ...] = (NoResultFound,),
    ):
        self._logger = logger
        self._config = config or TracerConfig()
        self._clock = clock
        self._not_found = not_found

    @property
    def config(self) -> TracerConfig:
        return self._config

    @property
    def logger(self) -> Logger:
        return self._logger

    def log_mode(self, level: TraceLevel | int | str) -> QueryTracer:
        """Return a tracer sharing this one's logger, with another level."""
        return QueryTracer(
            self._logger,
            replace(self._config, log_level=TraceLevel.parse(level)),
            clock=self._clock,
            not_found=self._not_found,
        )

    def is_record_not_found(self, err: BaseException | None) -> bool:
        return is_record_not_found(err, self._not_found)

    def _logger_for(self, ctx: Any) -> Logger:
        if ctx is None:
            return self._logger
        return self._logger.with_context(ctx)

    # ------------------------------------------------------------------
    # Plain messages, gated by the tracer level
    # ------------------------------------------------------------------

    def info(self, ctx: Any, msg: str, *args: Any) -> None:
        if self._config.log_level >= TraceLevel.INFO:
            self._logger_for(ctx).infof(msg, *args)

    def warn(self, ctx: Any, msg: str, *args: Any) -> None:
        if self._config.log_level >= TraceLevel.WARN:
            self._logger_for(ctx).warnf(msg, *args)

    def error(self, ctx: Any, msg: str, *args: Any) -> None:
        if self._config.log_level >= TraceLevel.ERROR:
            self._logger_for(ctx).errorf(msg, *args)

    # ------------------------------------------------------------------
    # Tracing
    # ------------------------------------------------------------------

    def classify(self, trace: QueryTrace) -> TraceLevel | None:
        """Pick the bucket for ``trace``, or None when nothing is emitted."""
        cfg = self._config
        level = cfg.log_level
        if level <= TraceLevel.SILENT:
            return None

        err = trace.error
        if (
            err is not None
            and level >= TraceLevel.ERROR
            and (not cfg.ignore_record_not_found or not self.is_record_not_found(err))
        ):
            return TraceLevel.ERROR
        if level >= TraceLevel.WARN and cfg.slow_threshold != 0 and trace.elapsed > cfg.slow_threshold:
            return TraceLevel.WARN
        if level >= TraceLevel.INFO:
            return TraceLevel.INFO
        return None

    def record(self, trace: QueryTrace, ctx: Any = None) -> TraceLevel | None:
        """Emit the record for an already measured operation."""
        bucket = self.classify(trace)
        if bucket is None:
            return None

        log = self._logger_for(ctx).with_fields(
            {
                "duration": format_duration(trace.elapsed),
                "sql": trace.sql,
                "rows": trace.rows,
            }
        )
        err = trace.error
        if err is not None and not (self._config.ignore_record_not_found and self.is_record_not_found(err)):
            log = log.with_error(err)

        if bucket is TraceLevel.ERROR:
            log.error("failed query")
        elif bucket is TraceLevel.WARN:
            log.warnf("slow query > %s", format_duration(self._config.slow_threshold))
        else:
            log.info("query")
        return bucket

    def trace(
        self,
        ctx: Any,
        begin: float,
        result_fn: Callable[[], tuple[str, int]],
        error: BaseException | None = None,
    ) -> None:
        """
        Trace one completed operation.

        Args:
            ctx: context to read the trace id from (None: no trace id)
            begin: start time, as returned by this tracer's clock
            result_fn: returns ``(sql, rows_affected)``; not called when silent
            error: the operation's error, if any
        """
        if self._config.log_level <= TraceLevel.SILENT:
            return

        elapsed = self._clock() - begin
        sql, rows = result_fn()
        self.record(QueryTrace(sql=sql, rows=rows, elapsed=elapsed, error=error), ctx)

    @contextmanager
    def observe(self, sql: str, ctx: Any = None) -> Iterator[ObservedQuery]:
        """
        Time a block of database work and trace it on exit.

        Usage:
            with tracer.observe("select user") as q:
                user = session.execute(stmt).scalar_one()
                q.rows = 1

        Errors raised inside the block are traced, then re-raised.
        """
        query = ObservedQuery(sql=sql)
        begin = self._clock()
        try:
            yield query
        except Exception as e:
            self.trace(ctx, begin, lambda: (query.sql, query.rows), e)
            raise
        self.trace(ctx, begin, lambda: (query.sql, query.rows))

    # ------------------------------------------------------------------
    # SQLAlchemy engine hooks
    # ------------------------------------------------------------------

    def attach(self, engine: Engine) -> Engine:
        """Trace every statement executed through ``engine``."""
        event.listen(engine, "before_cursor_execute", self._before_cursor_execute)
        event.listen(engine, "after_cursor_execute", self._after_cursor_execute)
        event.listen(engine, "handle_error", self._handle_error)
        return engine

    def detach(self, engine: Engine) -> None:
        """Stop tracing ``engine``."""
        event.remove(engine, "before_cursor_execute", self._before_cursor_execute)
        event.remove(engine, "after_cursor_execute", self._after_cursor_execute)
        event.remove(engine, "handle_error", self._handle_error)

    @staticmethod
    def _hook_context() -> Any:
        # Engine hooks have no caller context; bind the ambient trace id if any.
        if get_trace_id() is None:
            return None
        return contextvars.copy_context()

    def _before_cursor_execute(self, conn, cursor, statement, parameters, context, executemany) -> None:
        conn.info.setdefault(_START_KEY, []).append(self._clock())

    def _after_cursor_execute(self, conn, cursor, statement, parameters, context, executemany) -> None:
        starts = conn.info.get(_START_KEY)
        if not starts:
            return
        begin = starts.pop()
        self.trace(self._hook_context(), begin, lambda: (statement, cursor.rowcount))

    def _handle_error(self, exception_context) -> None:
        conn = exception_context.connection
        starts = conn.info.get(_START_KEY) if conn is not None else None
        if not starts:
            return
        begin = starts.pop()
        statement = exception_context.statement or ""
        self.trace(
            self._hook_context(),
            begin,
            lambda: (statement, -1),
            exception_context.original_exception,
        )
