"""Disk-backed trace writer for blackboard snapshots.

- Default directory: ``STUDYBLOCKS_TRACE_DIR`` env var or ``artifacts/trace/``
- Filename pattern:  ``<timestamp>_rev{rev:06d}.json``
- Content:           a JSON object mirroring :class:`TraceSnapshot`
"""

from __future__ import annotations

import json
import os
from dataclasses import asdict
from pathlib import Path

from .trace import TraceSnapshot


def _default_dir() -> Path:
    """Return the default base directory for trace artifacts."""
    root = os.getenv("STUDYBLOCKS_TRACE_DIR")
    return Path(root) if root else Path("artifacts") / "trace"


class TraceWriter:
    """Persist blackboard snapshots to disk as JSON files."""

    def __init__(self, base_dir: Path | None = None) -> None:
        self.base_dir: Path = base_dir if base_dir is not None else _default_dir()
        self.base_dir.mkdir(parents=True, exist_ok=True)

    def write(self, snap: TraceSnapshot) -> Path:
        """Write ``snap`` to disk and return the created file path."""
        safe_ts = snap.timestamp.replace("-", "").replace(":", "").replace(".", "")
        path = self.base_dir / f"{safe_ts}_rev{snap.revision:06d}.json"
        with path.open("w", encoding="utf-8") as f:
            json.dump(asdict(snap), f, ensure_ascii=False, indent=2)
            f.write("\n")
        return path

    def write_all(self, snaps: tuple[TraceSnapshot, ...] | list[TraceSnapshot]) -> list[Path]:
        """Write several snapshots; returns the paths in the same order."""
        return [self.write(s) for s in snaps]


__all__ = ["TraceWriter"]
