"""
Trace-id propagation using contextvars.

The trace identifier is the only piece of request context the logger reads.
It lives in a ``ContextVar`` so it follows threads and asyncio tasks without
explicit parameter passing; :meth:`Logger.with_context` copies it onto the
logger as the ``trace_id`` field.

Usage:
    with trace_scope("req-123"):
        log.with_context().info("handled")   # trace_id=req-123
"""

from __future__ import annotations

import contextvars
import uuid
from collections.abc import Iterator, Mapping
from contextlib import contextmanager
from typing import Any

trace_id_var: contextvars.ContextVar[str | None] = contextvars.ContextVar(  # noqa: B039
    "guardlog_trace_id", default=None
)


def new_trace_id() -> str:
    """Generate a short trace ID (16 hex chars)."""
    return uuid.uuid4().hex[:16]


def get_trace_id() -> str | None:
    """Get the trace ID of the current context."""
    return trace_id_var.get()


def set_trace_id(value: str | None) -> contextvars.Token:
    """Set the trace ID for the current context, returning a reset token."""
    return trace_id_var.set(value)


@contextmanager
def trace_scope(trace_id: str | None = None) -> Iterator[str]:
    """
    Bind a trace ID for the duration of a block.

    Generates a fresh ID when none is given. The previous value is restored
    on exit, even if the block raises.
    """
    value = trace_id or new_trace_id()
    token = trace_id_var.set(value)
    try:
        yield value
    finally:
        trace_id_var.reset(token)


def trace_id_from(ctx: Any = None) -> str:
    """
    Extract a trace ID from ``ctx``, returning ``""`` when there is none.

    Accepted shapes:
        None                  the current contextvars value
        contextvars.Context   the value stored in that snapshot
        Mapping               ``ctx["trace_id"]``
        anything else         ``ctx.trace_id`` attribute
    """
    if ctx is None:
        value = trace_id_var.get()
    elif isinstance(ctx, contextvars.Context):
        value = ctx.get(trace_id_var)
    elif isinstance(ctx, Mapping):
        value = ctx.get("trace_id")
    else:
        value = getattr(ctx, "trace_id", None)

    if value is None:
        return ""
    return str(value)


def context_value(ctx: Any, key: str) -> Any:
    """
    Look up ``key`` in ``ctx``, returning None when it is absent.

    Accepted shapes:
        None                  the current context, by ContextVar name
        contextvars.Context   a snapshot, by ContextVar name
        Mapping               ``ctx[key]``
        anything else         ``ctx.<key>`` attribute
    """
    if ctx is None:
        ctx = contextvars.copy_context()
    if isinstance(ctx, contextvars.Context):
        for var, value in ctx.items():
            if var.name == key:
                return value
        return None
    if isinstance(ctx, Mapping):
        return ctx.get(key)
    return getattr(ctx, key, None)
