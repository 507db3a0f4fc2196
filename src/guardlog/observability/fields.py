"""
Immutable field sets for structured logging.

A :class:`FieldSet` is the ordered key/value context attached to a logger.
Every ``with_*`` call on a logger produces a new set; the parent is never
touched, so loggers derived from a shared ancestor can be used from many
threads without locking.

Design:
- Structural sharing: a set stores only its own entries plus a parent link,
  so extending costs O(new entries) instead of copying the whole chain.
- Flattening is lazy and cached per node (first read pays the walk).
- Chains deeper than ``_COMPACT_DEPTH`` are flattened into a new root so
  the walk stays bounded.
"""

from __future__ import annotations

from collections.abc import Iterator, Mapping
from datetime import date, datetime, time, timedelta
from enum import Enum
from typing import Any

_COMPACT_DEPTH = 32


class FieldSet(Mapping[str, Any]):
    """Ordered, immutable mapping of structured log fields."""

    __slots__ = ("_entries", "_parent", "_depth", "_flat")

    def __init__(
        self,
        entries: Mapping[Any, Any] | None = None,
        *,
        _parent: FieldSet | None = None,
    ):
        self._entries: dict[str, Any] = {str(k): v for k, v in (entries or {}).items()}
        self._parent = _parent
        self._depth = 0 if _parent is None else _parent._depth + 1
        self._flat: dict[str, Any] | None = None

    def extend(self, entries: Mapping[Any, Any] | None) -> FieldSet:
        """Return a new set with ``entries`` layered over this one."""
        if not entries:
            return self
        if self._depth >= _COMPACT_DEPTH:
            merged = dict(self._materialize())
            merged.update((str(k), v) for k, v in entries.items())
            return FieldSet(merged)
        return FieldSet(entries, _parent=self)

    def _materialize(self) -> dict[str, Any]:
        flat = self._flat
        if flat is not None:
            return flat

        chain: list[FieldSet] = []
        base: dict[str, Any] = {}
        node: FieldSet | None = self
        while node is not None:
            if node._flat is not None:
                base = node._flat
                break
            chain.append(node)
            node = node._parent

        flat = dict(base)
        for layer in reversed(chain):
            flat.update(layer._entries)
        self._flat = flat
        return flat

    def to_dict(self) -> dict[str, Any]:
        """Return a mutable copy of the flattened fields."""
        return dict(self._materialize())

    @property
    def depth(self) -> int:
        return self._depth

    def __getitem__(self, key: str) -> Any:
        return self._materialize()[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._materialize())

    def __len__(self) -> int:
        return len(self._materialize())

    def __repr__(self) -> str:
        return f"FieldSet({self._materialize()!r})"


EMPTY_FIELDS = FieldSet()


def render_value(value: Any) -> Any:
    """
    Convert an arbitrary field value into a JSON-renderable kind.

    The result is one of ``str, int, float, bool, None, list, dict``.
    Unknown objects fall back to ``str(value)``.
    """
    if isinstance(value, Enum):
        return render_value(value.value)
    if value is None or isinstance(value, (str, bool, int, float)):
        return value
    if isinstance(value, BaseException):
        return str(value)
    if isinstance(value, (datetime, date, time)):
        return value.isoformat()
    if isinstance(value, timedelta):
        return value.total_seconds()
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    if isinstance(value, Mapping):
        return {str(k): render_value(v) for k, v in value.items()}
    if isinstance(value, (list, tuple, set, frozenset)):
        return [render_value(v) for v in value]
    return str(value)
