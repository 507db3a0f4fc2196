"""
guardlog - structured logging facade with sensitive-field redaction and
database query tracing.

Quick start:
    from guardlog import Logger, create_backend

    log = Logger(create_backend("stream", level="info"))
    log.with_fields(user="alice", password="hunter2").info("login")
    # {"time": ..., "level": "INFO", "msg": "login", "user": "alice", "password": "[REDACTED]"}
"""

__version__ = "0.1.0"

from guardlog.core.errors import (
    ConfigError,
    GuardlogError,
    InvalidConfigError,
    LoggerPanic,
    MissingConfigError,
)
from guardlog.db.tracer import QueryTracer, TraceLevel, TracerConfig
from guardlog.observability import (
    REDACTED,
    BackendConfig,
    BackendKind,
    Level,
    LogFormat,
    Logger,
    RedactionConfig,
    create_backend,
    is_sensitive_key,
    sanitize,
    trace_scope,
)

__all__ = [
    "__version__",
    # Facade
    "Logger",
    "Level",
    "LogFormat",
    "BackendKind",
    "BackendConfig",
    "create_backend",
    # Redaction
    "REDACTED",
    "RedactionConfig",
    "is_sensitive_key",
    "sanitize",
    "trace_scope",
    # Query tracing
    "QueryTracer",
    "TraceLevel",
    "TracerConfig",
    # Errors
    "GuardlogError",
    "ConfigError",
    "MissingConfigError",
    "InvalidConfigError",
    "LoggerPanic",
]
