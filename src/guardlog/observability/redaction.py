"""
Sensitive-field redaction.

Decides whether a structured field may be written in clear text. The policy
is fail-closed: unless a caller explicitly sets ``allow_sensitive=True``,
every field whose key looks like it holds a secret is replaced by
:data:`REDACTED` before it is attached to a logger.

Matching is a case-insensitive substring test on the key only; values are
never inspected and nested mappings are left alone.

Usage:
    >>> sanitize({"user": "alice", "db_password": "hunter2"})
    {'user': 'alice', 'db_password': '[REDACTED]'}
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from typing import Any

REDACTED = "[REDACTED]"

SENSITIVE_SUBSTRINGS: tuple[str, ...] = (
    "password",
    "passwd",
    "pwd",
    "secret",
    "token",
    "access_token",
    "api_key",
    "apikey",
    "credential",
    "credentials",
    "auth",
    "private_key",
    "secret_key",
    "session_token",
)


@dataclass(frozen=True)
class RedactionConfig:
    """
    Controls sensitive-data output.

    allow_sensitive: write sensitive fields in clear text (default: False).
    extra_patterns: additional case-insensitive substrings treated as
        sensitive on top of :data:`SENSITIVE_SUBSTRINGS`. The built-in list
        cannot be reduced.
    """

    allow_sensitive: bool = False
    extra_patterns: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        # Lists from settings arrive mutable; keep the config hashable.
        patterns = tuple(p.lower() for p in self.extra_patterns if p)
        object.__setattr__(self, "extra_patterns", patterns)


DEFAULT_REDACTION = RedactionConfig()


def is_sensitive_key(key: Any, extra_patterns: Iterable[str] = ()) -> bool:
    """Check whether a key likely holds sensitive data."""
    k = str(key).lower()
    if any(s in k for s in SENSITIVE_SUBSTRINGS):
        return True
    return any(p.lower() in k for p in extra_patterns if p)


def redact_value(key: Any, value: Any, config: RedactionConfig | None = None) -> Any:
    """Return ``value`` or the redaction marker for a single field."""
    cfg = config or DEFAULT_REDACTION
    if not cfg.allow_sensitive and is_sensitive_key(key, cfg.extra_patterns):
        return REDACTED
    return value


def sanitize(
    fields: Mapping[Any, Any] | None,
    config: RedactionConfig | None = None,
) -> Mapping[Any, Any] | None:
    """
    Return a copy of ``fields`` with sensitive values redacted.

    The input object itself is returned when redaction is disabled or there
    is nothing to redact from (None or empty). A ``None`` config behaves
    like ``RedactionConfig()``.
    """
    cfg = config or DEFAULT_REDACTION
    if cfg.allow_sensitive or not fields:
        return fields

    return {
        key: REDACTED if is_sensitive_key(key, cfg.extra_patterns) else value
        for key, value in fields.items()
    }
