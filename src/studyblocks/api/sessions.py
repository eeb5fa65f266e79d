"""
In-memory registry of open document sessions.

One :class:`OptimisticStore` per document, all sharing a single
:class:`InMemoryBlockRepository`. Volatile: a restart loses every document.
Swap the repository for a durable :class:`BlockRepository` to keep them.
"""

from __future__ import annotations

from typing import ClassVar

from studyblocks.agents.image_search import ImageLookup
from studyblocks.core.persistence.repository import BlockRepository, InMemoryBlockRepository
from studyblocks.core.settings import get_logger
from studyblocks.core.store import OptimisticStore

logger = get_logger(__name__)


class SessionRegistry:
    """Open stores keyed by document id."""

    _instance: ClassVar[SessionRegistry | None] = None

    def __init__(self, repository: BlockRepository | None = None) -> None:
        self.repository: BlockRepository = repository or InMemoryBlockRepository()
        self.lookup: ImageLookup | None = None
        self._stores: dict[str, OptimisticStore] = {}

    @classmethod
    def get_instance(cls) -> SessionRegistry:
        """Accessor for the global singleton instance."""
        if cls._instance is None:
            cls._instance = cls()
        return cls._instance

    @classmethod
    def reset(cls) -> None:
        """Drop the singleton (tests start from an empty repository)."""
        cls._instance = None

    async def open(self, doc_id: str) -> OptimisticStore:
        """Return the document's store, loading it on first use."""
        store = self._stores.get(doc_id)
        if store is None:
            store = await OptimisticStore.open(doc_id, self.repository)
            self._stores[doc_id] = store
            logger.debug("opened document %s with %d blocks", doc_id, len(store))
        return store

    def open_documents(self) -> tuple[str, ...]:
        return tuple(sorted(self._stores))

    async def aclose(self) -> None:
        """Flush and stop every open store."""
        for store in self._stores.values():
            await store.aclose()
        self._stores.clear()


def get_sessions() -> SessionRegistry:
    return SessionRegistry.get_instance()


__all__ = ["SessionRegistry", "get_sessions"]
