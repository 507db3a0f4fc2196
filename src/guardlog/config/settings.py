"""
Centralized settings for guardlog.

:class:`GuardlogSettings` is the single, validated, cached source of
configuration for the logger and the query tracer. Values come from
``GUARDLOG_*`` environment variables or a ``.env`` file; the surrounding
application may also construct the object directly.

Tags:
    guardlog, configuration, settings, pydantic, caching, validation
"""

from __future__ import annotations

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from guardlog.core.errors import ConfigError
from guardlog.db.tracer import TraceLevel
from guardlog.observability.backends import BackendKind, Level, LogFormat


class GuardlogSettings(BaseSettings):
    """guardlog configuration.

    All fields can be set via ``GUARDLOG_*`` environment variables (e.g.
    ``GUARDLOG_LOG_FORMAT=text``) or through a ``.env`` file.
    """

    model_config = SettingsConfigDict(
        env_prefix="GUARDLOG_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ── Logger backend ───────────────────────────────────────────
    log_level: str = Field(default="INFO", description="Minimum level: DEBUG/INFO/WARN/ERROR/FATAL/PANIC")
    log_format: str = Field(default="json", description="json | text")
    log_backend: str = Field(default="stream", description="stream | structlog | stdlib")
    log_add_source: bool = Field(default=False)
    log_output: str = Field(default="stdout", description="stdout | stderr | <file path>")

    # ── Redaction ────────────────────────────────────────────────
    allow_sensitive: bool = Field(default=False, description="Write sensitive fields in clear text")
    sensitive_patterns: list[str] = Field(default_factory=list, description="Extra sensitive key substrings")

    # ── Query tracer ─────────────────────────────────────────────
    db_log_level: str = Field(default="warn", description="silent | error | warn | info")
    db_slow_threshold_ms: float = Field(default=200.0, ge=0)
    db_ignore_record_not_found: bool = Field(default=True)

    @field_validator("log_level")
    @classmethod
    def _check_log_level(cls, value: str) -> str:
        try:
            return Level.parse(value).name
        except ConfigError as e:
            raise ValueError(e.message) from e

    @field_validator("log_format")
    @classmethod
    def _check_log_format(cls, value: str) -> str:
        try:
            return LogFormat(value.strip().lower()).value
        except ValueError as e:
            raise ValueError(f"Unknown log format: {value!r}") from e

    @field_validator("log_backend")
    @classmethod
    def _check_log_backend(cls, value: str) -> str:
        try:
            return BackendKind(value.strip().lower()).value
        except ValueError as e:
            raise ValueError(f"Unknown log backend: {value!r}") from e

    @field_validator("db_log_level")
    @classmethod
    def _check_db_log_level(cls, value: str) -> str:
        try:
            return TraceLevel.parse(value).name.lower()
        except ConfigError as e:
            raise ValueError(e.message) from e

    @property
    def db_slow_threshold(self) -> float:
        """Slow-query threshold in seconds."""
        return self.db_slow_threshold_ms / 1000.0


# ── Settings factory with caching ────────────────────────────────────────

_settings_cache: dict[str, GuardlogSettings] = {}


def get_settings(*, _force_reload: bool = False) -> GuardlogSettings:
    """Load, validate, and cache a :class:`GuardlogSettings` instance."""
    if not _force_reload and "default" in _settings_cache:
        return _settings_cache["default"]

    settings = GuardlogSettings()
    _settings_cache["default"] = settings
    return settings


def clear_settings_cache() -> None:
    """Clear the settings cache (primarily for testing)."""
    _settings_cache.clear()
