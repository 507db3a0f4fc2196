"""
Shared pytest fixtures for guardlog tests.

This module provides:
- An in-memory sink and helpers to read back emitted JSON records
- A logger factory over any backend
- A manual clock for deterministic query timings
"""

import io
import json
import os
import sys
from pathlib import Path
from typing import Any

import pytest

# Ensure guardlog package is importable
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from guardlog.config import clear_settings_cache
from guardlog.observability import Logger, RedactionConfig, create_backend
from guardlog.observability.context import set_trace_id


class ManualClock:
    """Clock that only moves when told to."""

    def __init__(self, start: float = 100.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def read_records(sink: io.StringIO) -> list[dict[str, Any]]:
    """Parse every JSON line written to ``sink``."""
    return [json.loads(line) for line in sink.getvalue().splitlines() if line.strip()]


@pytest.fixture
def sink() -> io.StringIO:
    return io.StringIO()


@pytest.fixture
def make_logger(sink):
    """Build a logger writing to the ``sink`` fixture."""

    def _make(
        kind: str = "stream",
        level: str = "debug",
        format: str = "json",
        redaction: RedactionConfig | None = None,
        **logger_kwargs: Any,
    ) -> Logger:
        backend = create_backend(kind, level=level, format=format, output=sink)
        return Logger(backend, redaction, **logger_kwargs)

    return _make


@pytest.fixture
def records(sink):
    """Callable returning the JSON records written so far."""
    return lambda: read_records(sink)


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock()


@pytest.fixture(autouse=True)
def _isolate(monkeypatch):
    """Isolate tests from GUARDLOG_* env vars, cached settings and trace ids."""
    for key in list(os.environ):
        if key.startswith("GUARDLOG_"):
            monkeypatch.delenv(key, raising=False)
    clear_settings_cache()
    set_trace_id(None)
    yield
    clear_settings_cache()
    set_trace_id(None)
