"""Core primitives shared by the guardlog packages."""

from guardlog.core.errors import (
    ConfigError,
    ErrorCategory,
    GuardlogError,
    InvalidConfigError,
    LoggerPanic,
    MissingConfigError,
)

__all__ = [
    "ErrorCategory",
    "GuardlogError",
    "ConfigError",
    "MissingConfigError",
    "InvalidConfigError",
    "LoggerPanic",
]
