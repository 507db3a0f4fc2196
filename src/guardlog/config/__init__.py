"""
Configuration for guardlog.

Usage:
    from guardlog.config import create_logger, create_query_tracer

    log = create_logger()
    tracer = create_query_tracer(log.with_field("component", "db"))
"""

from .factory import create_logger, create_query_tracer, open_output, redaction_from
from .settings import GuardlogSettings, clear_settings_cache, get_settings

__all__ = [
    # Settings
    "GuardlogSettings",
    "get_settings",
    "clear_settings_cache",
    # Factory
    "create_logger",
    "create_query_tracer",
    "open_output",
    "redaction_from",
]
