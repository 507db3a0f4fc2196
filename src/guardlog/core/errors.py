"""
Structured error types for guardlog.

The logging facade itself never reports failures through return values:
logging must not become a secondary failure mode for the caller. The errors
below cover the two places where something *is* allowed to fail loudly:

- **Construction:** a backend or settings object that cannot be built raises
  a :class:`ConfigError` immediately, never on first use.
- **Panic:** ``Logger.panic*`` writes its record, flushes, then raises
  :class:`LoggerPanic` on purpose.

Architecture:
    ::

        GuardlogError (category, context, cause)
        ├── ConfigError          (CONFIG)
        │   ├── MissingConfigError
        │   └── InvalidConfigError
        └── LoggerPanic          (LOGGING)

Usage:
    from guardlog.core.errors import InvalidConfigError

    if fmt not in ("json", "text"):
        raise InvalidConfigError("format", fmt)
"""

from __future__ import annotations

from collections.abc import Mapping
from enum import Enum
from typing import Any


class ErrorCategory(str, Enum):
    """Standard error categories for classification and routing."""

    CONFIG = "CONFIG"
    LOGGING = "LOGGING"
    DATABASE = "DATABASE"
    INTERNAL = "INTERNAL"


class GuardlogError(Exception):
    """
    Base class for all guardlog errors.

    Carries a category and free-form context metadata so that handlers
    can log the failure as structured fields.
    """

    default_category: ErrorCategory = ErrorCategory.INTERNAL

    def __init__(
        self,
        message: str,
        *,
        category: ErrorCategory | None = None,
        context: Mapping[str, Any] | None = None,
        cause: BaseException | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.category = category or self.default_category
        self.context: dict[str, Any] = dict(context or {})
        self.cause = cause

        if cause is not None:
            self.__cause__ = cause

    def with_context(self, **kwargs: Any) -> GuardlogError:
        """Add context to this error (fluent API)."""
        self.context.update(kwargs)
        return self

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for logging/serialization."""
        result: dict[str, Any] = {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "category": self.category.value,
        }
        if self.context:
            result["context"] = dict(self.context)
        if self.cause is not None:
            result["cause"] = str(self.cause)
        return result

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r}, category={self.category.value})"


# =============================================================================
# CONFIGURATION ERRORS (raised at construction time)
# =============================================================================


class ConfigError(GuardlogError):
    """Configuration error (missing or invalid settings)."""

    default_category = ErrorCategory.CONFIG


class MissingConfigError(ConfigError):
    """Required configuration option is missing."""

    def __init__(self, key: str, message: str | None = None):
        msg = message or f"Missing required configuration: {key}"
        super().__init__(msg, context={"config_key": key})
        self.key = key


class InvalidConfigError(ConfigError):
    """Configuration option has an invalid value."""

    def __init__(self, key: str, value: Any, message: str | None = None):
        msg = message or f"Invalid configuration for {key}: {value!r}"
        super().__init__(msg, context={"config_key": key, "config_value": repr(value)})
        self.key = key
        self.value = value


# =============================================================================
# LOGGING CONTROL FLOW
# =============================================================================


class LoggerPanic(GuardlogError):
    """
    Raised by ``Logger.panic*`` after the record has been written and flushed.

    ``fields`` holds the structured fields that were attached to the record,
    already redacted.
    """

    default_category = ErrorCategory.LOGGING

    def __init__(self, message: str, fields: Mapping[str, Any] | None = None):
        super().__init__(message)
        self.fields: dict[str, Any] = dict(fields or {})
