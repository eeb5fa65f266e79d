"""Persistence seam: the repository contract and the per-document call queue."""

from __future__ import annotations

from studyblocks.core.persistence.queue import PersistenceJob, PersistenceQueue
from studyblocks.core.persistence.repository import (
    BlockNotFoundError,
    BlockRepository,
    InMemoryBlockRepository,
    PersistenceError,
    StaleIdentityError,
)

__all__ = [
    "BlockNotFoundError",
    "BlockRepository",
    "InMemoryBlockRepository",
    "PersistenceError",
    "PersistenceJob",
    "PersistenceQueue",
    "StaleIdentityError",
]
