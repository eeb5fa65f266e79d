"""
In-memory blackboard with typed get/put and trace snapshots.

The generation pipeline parks every intermediate artifact here (the raw
generation output, the materialized blocks, the rejected items, the final
document) so a run can be inspected or written to disk afterwards.

- ``put(key, value)`` inserts or updates an entry and bumps the revision.
- ``get(key, default=None)`` reads it back.
- ``trace(note=None)`` captures a snapshot of the current state.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any, TypeVar, cast

from pydantic import BaseModel

from .trace import TraceSnapshot

T = TypeVar("T")


def _jsonify(value: Any) -> Any:
    """
    Return a JSON-safe representation of ``value``.

    Pydantic models are dumped in JSON mode; dicts, lists and tuples are
    converted recursively; anything else falls back to ``repr``.
    """
    if value is None or isinstance(value, bool | int | float | str):
        return value
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json", by_alias=True)
    if isinstance(value, dict):
        return {str(k): _jsonify(v) for k, v in value.items()}
    if isinstance(value, list | tuple):
        return [_jsonify(v) for v in value]
    return repr(value)


class Blackboard:
    """
    Simple in-memory key-value store with revisioned trace snapshots.

    Attributes
    ----------
    _store : dict[str, Any]
        The actual key-value storage.
    _rev : int
        Monotonically increasing revision counter (bumps on every ``put``).
    _traces : list[TraceSnapshot]
        History of captured snapshots.
    """

    __slots__ = ("_store", "_rev", "_traces")

    def __init__(self) -> None:
        self._store: dict[str, Any] = {}
        self._rev: int = 0
        self._traces: list[TraceSnapshot] = []

    @property
    def revision(self) -> int:
        return self._rev

    def put(self, key: str, value: Any) -> None:
        """Insert or update ``key`` with ``value`` and bump the revision."""
        self._store[key] = value
        self._rev += 1

    def get(self, key: str, default: T | None = None) -> T | None:
        """Return the stored value for ``key``, or ``default`` if not found."""
        if key in self._store:
            return cast(T | None, self._store[key])
        return default

    def trace(self, note: str | None = None) -> TraceSnapshot:
        """
        Capture an immutable snapshot of the current blackboard state.

        Parameters
        ----------
        note : str | None
            Optional label explaining when the trace was taken.

        Returns
        -------
        TraceSnapshot
            Metadata plus a shallow, JSON-safe copy of the data.
        """
        data_copy: dict[str, Any] = {k: _jsonify(v) for k, v in self._store.items()}
        ts_str = datetime.now(UTC).strftime("%Y-%m-%dT%H:%M:%S.%fZ")
        snap = TraceSnapshot(timestamp=ts_str, revision=self._rev, note=note, data=data_copy)
        self._traces.append(snap)
        return snap

    def traces(self) -> tuple[TraceSnapshot, ...]:
        """Return all recorded snapshots."""
        return tuple(self._traces)


__all__ = ["Blackboard"]
