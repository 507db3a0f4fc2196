"""Database query tracing on top of the logger facade."""

from .session import TracedSession, create_traced_engine, traced_session_factory
from .tracer import (
    ObservedQuery,
    QueryTrace,
    QueryTracer,
    TraceLevel,
    TracerConfig,
    format_duration,
    is_record_not_found,
)

__all__ = [
    "QueryTracer",
    "QueryTrace",
    "ObservedQuery",
    "TraceLevel",
    "TracerConfig",
    "format_duration",
    "is_record_not_found",
    "create_traced_engine",
    "TracedSession",
    "traced_session_factory",
]
