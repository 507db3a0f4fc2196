"""SQLAlchemy engine and session factories with query tracing.

This module provides:

* ``create_traced_engine``   -- Create a SA engine and attach a ``QueryTracer``.
* ``TracedSession``          -- ``Session`` carrying the tracer for ORM lookups.
* ``traced_session_factory`` -- ``sessionmaker`` binding engine and tracer.

A tracer is meant to live as long as its engine: build it once per database
and pass it in here.
"""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

from sqlalchemy import create_engine as _sa_create_engine
from sqlalchemy import event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from guardlog.db.tracer import ObservedQuery, QueryTracer


def create_traced_engine(
    url: str = "sqlite://",
    tracer: QueryTracer | None = None,
    *,
    echo: bool = False,
    **kwargs: Any,
) -> Engine:
    """Create a SQLAlchemy engine, tracing its statements when ``tracer`` is given.

    Parameters
    ----------
    url:
        Database URL (``sqlite://``, ``postgresql://…``, etc.)
    tracer:
        Query tracer to attach to the engine.
    echo:
        If ``True``, SQLAlchemy also logs all SQL through stdlib logging.
    **kwargs:
        Extra arguments forwarded to ``sqlalchemy.create_engine``.
    """
    if url.startswith("sqlite"):
        kwargs.setdefault("connect_args", {"check_same_thread": False})
        engine = _sa_create_engine(url, echo=echo, **kwargs)

        @event.listens_for(engine, "connect")
        def _set_sqlite_pragma(dbapi_connection: Any, _rec: Any) -> None:
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()
    else:
        engine = _sa_create_engine(url, echo=echo, **kwargs)

    if tracer is not None:
        tracer.attach(engine)
    return engine


class TracedSession(Session):
    """
    Session that knows the tracer of its database.

    Statements are already traced by the engine hooks. What they cannot see
    is an ORM-level outcome such as ``NoResultFound`` from ``scalar_one()``,
    which is raised after the cursor is done; wrap such lookups in
    :meth:`observe` so they are traced (or ignored) by the same tracer.

    ``expire_on_commit`` defaults to False.
    """

    def __init__(self, bind: Engine | None = None, *, tracer: QueryTracer | None = None, **kwargs: Any) -> None:
        kwargs.setdefault("expire_on_commit", False)
        super().__init__(bind=bind, **kwargs)
        self.tracer = tracer

    @contextmanager
    def observe(self, sql: str, ctx: Any = None) -> Iterator[ObservedQuery]:
        """Trace a block of ORM work; a no-op handle when there is no tracer."""
        if self.tracer is None:
            yield ObservedQuery(sql=sql)
            return
        with self.tracer.observe(sql, ctx) as query:
            yield query


def traced_session_factory(engine: Engine, tracer: QueryTracer | None = None) -> sessionmaker[TracedSession]:
    """Return a ``sessionmaker`` producing :class:`TracedSession` objects bound to *engine* and *tracer*."""
    return sessionmaker(bind=engine, class_=TracedSession, tracer=tracer)
