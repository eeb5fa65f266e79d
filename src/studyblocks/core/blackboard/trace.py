"""
Trace snapshot record.

Kept apart from ``memory.py`` so the writer and the CLI can import it without
pulling in the blackboard itself. Timestamps are stored as ISO strings,
converted once at capture time.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True, slots=True)
class TraceSnapshot:
    """
    Immutable record of a blackboard snapshot.

    Attributes
    ----------
    timestamp : str
        UTC capture time, e.g. ``"2026-03-01T10:00:00.123000Z"``.
    revision : int
        Blackboard revision at capture time.
    note : str | None
        Optional label such as ``"after materialize"``.
    data : dict[str, Any]
        JSON-safe, shallow copy of the blackboard content.
    """

    timestamp: str
    revision: int
    note: str | None
    data: dict[str, Any] = field(default_factory=dict)
