"""
Persistence collaborator contract and an in-memory implementation.

The optimistic store talks to durable storage only through
:class:`BlockRepository`. Calls are asynchronous and keyed by permanent block
id; the repository assigns those ids on create.

Structural calls keep the persisted orders dense on their own:

- ``create_block`` inserts at ``order`` and shifts later blocks by one,
- ``delete_block`` closes the gap it leaves,
- ``reorder_blocks`` applies the given (id, order) pairs as one unit.
"""

from __future__ import annotations

import uuid
from collections.abc import Sequence
from typing import Protocol

from studyblocks.core.contracts.block import (
    Block,
    BlockContent,
    BlockType,
    CommittedId,
    Provenance,
    coerce_content,
)
from studyblocks.core.ordering import index_of, insert_block, reindex


class PersistenceError(Exception):
    """A persistence call failed; ``label`` names the queued job."""

    def __init__(self, label: str, cause: BaseException | None = None) -> None:
        detail = f": {cause}" if cause is not None else ""
        super().__init__(f"{label} failed{detail}")
        self.label = label
        self.cause = cause


class StaleIdentityError(PersistenceError):
    """The call refers to a block whose create never succeeded."""


class BlockNotFoundError(KeyError):
    """No persisted block has the requested id."""


class BlockRepository(Protocol):
    """Durable block storage, keyed by permanent block id."""

    async def create_block(
        self,
        doc_id: str,
        block_type: BlockType,
        content: BlockContent,
        order: int,
        provenance: Provenance | None = None,
    ) -> Block: ...

    async def update_block(
        self, block_id: str, content: BlockContent, block_type: BlockType | None = None
    ) -> Block: ...

    async def delete_block(self, block_id: str) -> None: ...

    async def reorder_blocks(self, doc_id: str, pairs: Sequence[tuple[str, int]]) -> None: ...

    async def list_blocks(self, doc_id: str) -> list[Block]: ...


class InMemoryBlockRepository:
    """Dictionary-backed :class:`BlockRepository`.

    Volatile: everything is lost with the process. Used by the API sessions,
    the CLI and the test-suite.
    """

    def __init__(self) -> None:
        self._docs: dict[str, list[Block]] = {}
        self._owner: dict[str, str] = {}
        self.calls: list[str] = []

    async def create_block(
        self,
        doc_id: str,
        block_type: BlockType,
        content: BlockContent,
        order: int,
        provenance: Provenance | None = None,
    ) -> Block:
        self.calls.append("create")
        btype = BlockType.parse(block_type)
        block = Block(
            id=CommittedId(value=str(uuid.uuid4())),
            type=btype,
            content=coerce_content(btype, content),
            order=max(order, 0),
            provenance=provenance,
        )
        blocks = self._docs.setdefault(doc_id, [])
        self._docs[doc_id] = insert_block(blocks, block, order)
        self._owner[block.key] = doc_id
        return self._docs[doc_id][index_of(self._docs[doc_id], block.key)]

    async def update_block(
        self, block_id: str, content: BlockContent, block_type: BlockType | None = None
    ) -> Block:
        self.calls.append("update")
        doc_id, position = self._locate(block_id)
        current = self._docs[doc_id][position]
        btype = BlockType.parse(block_type) if block_type is not None else current.type
        updated = current.model_copy(
            update={"type": btype, "content": coerce_content(btype, content)}
        )
        self._docs[doc_id][position] = updated
        return updated

    async def delete_block(self, block_id: str) -> None:
        self.calls.append("delete")
        doc_id, position = self._locate(block_id)
        blocks = list(self._docs[doc_id])
        del blocks[position]
        self._docs[doc_id] = reindex(blocks)
        del self._owner[block_id]

    async def reorder_blocks(self, doc_id: str, pairs: Sequence[tuple[str, int]]) -> None:
        self.calls.append("reorder")
        blocks = self._docs.get(doc_id, [])
        wanted = dict(pairs)
        known = {b.key for b in blocks}
        missing = [key for key in wanted if key not in known]
        if missing:
            raise BlockNotFoundError(", ".join(missing))
        # Unlisted blocks keep their current order as a tie-break position.
        ranked = sorted(
            blocks, key=lambda b: (wanted.get(b.key, b.order), b.key not in wanted)
        )
        self._docs[doc_id] = reindex(ranked)

    async def list_blocks(self, doc_id: str) -> list[Block]:
        return list(self._docs.get(doc_id, []))

    def _locate(self, block_id: str) -> tuple[str, int]:
        doc_id = self._owner.get(block_id)
        if doc_id is None:
            raise BlockNotFoundError(block_id)
        return doc_id, index_of(self._docs[doc_id], block_id)


__all__ = [
    "BlockNotFoundError",
    "BlockRepository",
    "InMemoryBlockRepository",
    "PersistenceError",
    "StaleIdentityError",
]
