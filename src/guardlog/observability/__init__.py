"""
Structured logging with sensitive-field redaction.

Key components:
- redaction: fail-closed policy for secret-looking field names
- fields: immutable, structurally shared field sets
- backends: stream / structlog / stdlib engines behind one contract
- facade: the chainable ``Logger`` handle
- context: trace-id propagation via contextvars
"""

from .backends import (
    Backend,
    BackendConfig,
    BackendKind,
    Level,
    LogFormat,
    LogRecord,
    create_backend,
)
from .context import context_value, get_trace_id, new_trace_id, set_trace_id, trace_id_from, trace_scope
from .facade import Logger
from .fields import FieldSet, render_value
from .redaction import (
    REDACTED,
    SENSITIVE_SUBSTRINGS,
    RedactionConfig,
    is_sensitive_key,
    redact_value,
    sanitize,
)

__all__ = [
    # Facade
    "Logger",
    # Backends
    "Backend",
    "BackendConfig",
    "BackendKind",
    "Level",
    "LogFormat",
    "LogRecord",
    "create_backend",
    # Fields
    "FieldSet",
    "render_value",
    # Redaction
    "REDACTED",
    "SENSITIVE_SUBSTRINGS",
    "RedactionConfig",
    "is_sensitive_key",
    "redact_value",
    "sanitize",
    # Context
    "context_value",
    "get_trace_id",
    "new_trace_id",
    "set_trace_id",
    "trace_id_from",
    "trace_scope",
]
