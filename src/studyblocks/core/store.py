"""
Optimistic block store for one open document.

The store owns the document's ordered block list for an editing session.
Every mutation:

1. updates the local list synchronously (orders re-derived densely through
   :mod:`studyblocks.core.ordering`),
2. queues the matching persistence call on the document's
   :class:`~studyblocks.core.persistence.queue.PersistenceQueue`,
3. returns the updated list.

New blocks carry a :class:`~studyblocks.core.contracts.block.PendingId`
until their create call resolves; the store then commits the permanent id at
the block's current position. Old temporary keys stay valid for lookups.

Failures
--------
A failed call is logged and kept in :attr:`OptimisticStore.failures`. With
rollback enabled (``STUDYBLOCKS_ROLLBACK``, on by default) the store also
re-applies the inverse local patch, as long as the block was not changed
again in the meantime. Orders stay dense either way. A failed create is
followed by a reorder carrying the local arrangement, so creates queued
behind it cannot leave the persisted order out of step.

All mutating methods must be called while an asyncio event loop is running.
"""

from __future__ import annotations

import asyncio
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from typing import Any, Literal

from studyblocks.core.contracts.block import (
    Block,
    BlockId,
    BlockType,
    PendingId,
    coerce_content,
    is_text_family,
    new_pending_id,
    retype,
)
from studyblocks.core.ordering import (
    check_dense,
    index_of,
    insert_block,
    order_pairs,
    plan_move,
    reindex,
    remove_block,
)
from studyblocks.core.persistence.queue import PersistenceQueue
from studyblocks.core.persistence.repository import (
    BlockRepository,
    PersistenceError,
    StaleIdentityError,
)
from studyblocks.core.selection import SelectionController
from studyblocks.core.settings import get_logger, load_settings

FocusEdge = Literal["start", "end"]

logger = get_logger(__name__)


@dataclass(frozen=True, slots=True)
class FocusTarget:
    """Which block should receive editing focus, and at which edge."""

    key: str
    edge: FocusEdge


class OptimisticStore:
    """Ordered blocks of one document plus the operations that edit them."""

    def __init__(
        self,
        doc_id: str,
        repository: BlockRepository,
        blocks: Iterable[Block] = (),
        *,
        rollback: bool | None = None,
    ) -> None:
        self.doc_id = doc_id
        self._repo = repository
        self._queue = PersistenceQueue(doc_id)
        self._blocks: list[Block] = reindex(sorted(blocks, key=lambda b: b.order))
        self._rollback = (
            load_settings().rollback_failed_mutations if rollback is None else rollback
        )
        self._resolved: dict[str, str] = {}
        self._failures: list[PersistenceError] = []
        self.focus: FocusTarget | None = None

    @classmethod
    async def open(
        cls, doc_id: str, repository: BlockRepository, *, rollback: bool | None = None
    ) -> OptimisticStore:
        """Load the persisted blocks of ``doc_id`` into a new store."""
        return cls(doc_id, repository, await repository.list_blocks(doc_id), rollback=rollback)

    # ------------------------------------------------------------------ reads

    @property
    def blocks(self) -> list[Block]:
        """Current blocks in document order."""
        return list(self._blocks)

    @property
    def failures(self) -> tuple[PersistenceError, ...]:
        return tuple(self._failures)

    @property
    def pending_calls(self) -> int:
        return self._queue.pending

    def __len__(self) -> int:
        return len(self._blocks)

    def index(self, key: str) -> int:
        """Position of block ``key`` (temporary keys are still accepted).

        Raises
        ------
        KeyError
            If no such block is in the document.
        """
        position = self._locate(key)
        if position == -1:
            raise KeyError(key)
        return position

    def get(self, key: str) -> Block:
        return self._blocks[self.index(key)]

    def canonical(self, key: str) -> str:
        """Current id of the block first known as ``key``."""
        return self._resolved.get(key, key)

    # -------------------------------------------------------------- mutations

    def create(
        self,
        block_type: BlockType | str,
        after_index: int,
        focus_edge: FocusEdge = "start",
        initial_content: Any = None,
    ) -> list[Block]:
        """Insert a new block right after ``after_index`` (``-1`` for the front)."""
        btype = BlockType.parse(block_type)
        position = min(max(after_index + 1, 0), len(self._blocks))
        block = Block(
            id=new_pending_id(),
            type=btype,
            content=coerce_content(btype, initial_content),
            order=position,
        )
        self._blocks = insert_block(self._blocks, block, position)
        self.focus = FocusTarget(block.key, focus_edge)
        self._persist_create(self._blocks[position])
        return self.blocks

    def bulk_create(self, blocks: Sequence[Block]) -> list[Block]:
        """Append pending blocks (e.g. materializer output) in their given order."""
        offset = len(self._blocks)
        incoming = []
        for block in sorted(blocks, key=lambda b: b.order):
            if not isinstance(block.id, PendingId):
                raise ValueError(f"bulk_create expects pending blocks, got {block.key}")
            incoming.append(block)
        self._blocks = reindex(self._blocks + incoming)
        for block in self._blocks[offset:]:
            self._persist_create(block)
        logger.info("document %s: appended %d blocks", self.doc_id, len(incoming))
        return self.blocks

    def update(
        self, key: str, content: Any, block_type: BlockType | str | None = None
    ) -> list[Block]:
        """Replace a block's content, and optionally its type."""
        position = self.index(key)
        before = self._blocks[position]
        btype = BlockType.parse(block_type) if block_type is not None else before.type
        after = before.model_copy(update={"type": btype, "content": coerce_content(btype, content)})
        self._blocks[position] = after
        self._persist_update(before, after, send_type=block_type is not None)
        return self.blocks

    def retype(self, key: str, target: BlockType | str, *, level: int = 1) -> list[Block]:
        """Change a block's type in place; see :func:`~studyblocks.core.contracts.block.retype`."""
        position = self.index(key)
        before = self._blocks[position]
        after = retype(before, target, level=level)
        if after == before:
            return self.blocks
        self._blocks[position] = after
        self._persist_update(before, after, send_type=True)
        return self.blocks

    def delete(self, key: str) -> list[Block]:
        """Remove a block; focus moves to the end of the block before it."""
        position = self._locate(key)
        if position == -1:
            return self.blocks
        self._blocks, removed, position = remove_block(self._blocks, self._blocks[position].key)
        if removed is None:
            return self.blocks
        if position > 0:
            self.focus = FocusTarget(self._blocks[position - 1].key, "end")
        elif self.focus is not None and self.focus.key == removed.key:
            self.focus = None
        self._persist_delete(removed, position)
        return self.blocks

    def move(
        self,
        source_index: int,
        destination_index: int,
        selection: SelectionController | None = None,
    ) -> list[Block]:
        """Apply a drag from ``source_index`` to ``destination_index``.

        When the dragged block belongs to a multi-block ``selection`` the whole
        selection moves as a group. Persisted as one bulk reorder call.
        """
        before = self.blocks
        selected: frozenset[str] = frozenset()
        if selection is not None:
            selection.rekey(self.canonical)
            selected = selection.keys
        after = plan_move(before, source_index, destination_index, selected)
        if [b.key for b in before] == [b.key for b in after]:
            return self.blocks
        self._blocks = after
        self._persist_reorder(before, after)
        return self.blocks

    def merge(self, index: int) -> list[Block]:
        """Fold the block at ``index`` into the text block before it.

        A silent no-op unless both blocks belong to the text family.
        """
        if not 0 < index < len(self._blocks):
            return self.blocks
        previous, current = self._blocks[index - 1], self._blocks[index]
        if not (is_text_family(previous) and is_text_family(current)):
            return self.blocks
        self.update(previous.key, previous.text() + current.text())
        self.delete(current.key)
        self.focus = FocusTarget(previous.key, "end")
        return self.blocks

    def split(self, index: int) -> list[Block]:
        """Start a new empty text block after ``index`` and focus its start."""
        return self.create(BlockType.TEXT, index, "start")

    def focus_next(self, index: int) -> FocusTarget | None:
        if index < len(self._blocks) - 1:
            self.focus = FocusTarget(self._blocks[index + 1].key, "start")
        return self.focus

    def focus_prev(self, index: int) -> FocusTarget | None:
        if 0 < index <= len(self._blocks) - 1:
            self.focus = FocusTarget(self._blocks[index - 1].key, "end")
        return self.focus

    async def flush(self) -> list[Block]:
        """Wait for every queued persistence call, then return the blocks."""
        await self._queue.flush()
        return self.blocks

    async def aclose(self) -> None:
        await self._queue.aclose()

    # ------------------------------------------------------------ persistence

    def _persist_create(self, block: Block) -> asyncio.Future[Any]:
        temp = block.key
        snapshot = block

        async def call() -> Block:
            return await self._repo.create_block(
                self.doc_id, snapshot.type, snapshot.content, snapshot.order, snapshot.provenance
            )

        def committed(persisted: Block) -> None:
            self._resolved[temp] = persisted.key
            position = index_of(self._blocks, temp)
            if position != -1:
                self._blocks[position] = self._blocks[position].commit(persisted.key)
                if self.focus is not None and self.focus.key == temp:
                    self.focus = FocusTarget(persisted.key, self.focus.edge)

        def failed(error: PersistenceError) -> None:
            self._failures.append(error)
            if self._rollback:
                self._blocks, removed, _ = remove_block(self._blocks, temp)
                if removed is not None and self.focus is not None and self.focus.key == temp:
                    self.focus = None
            # Creates queued behind this one counted the missing block in their order.
            self._persist_resync()

        return self._queue.submit(f"create {temp}", call, on_success=committed, on_failure=failed)

    def _persist_update(self, before: Block, after: Block, *, send_type: bool) -> asyncio.Future[Any]:
        key = before.key

        async def call() -> Block:
            return await self._repo.update_block(
                self._resolve(before.id, "update"),
                after.content,
                after.type if send_type else None,
            )

        def failed(error: PersistenceError) -> None:
            self._failures.append(error)
            if not self._rollback:
                return
            position = self._locate(key)
            if position == -1:
                return
            current = self._blocks[position]
            if current.type == after.type and current.content == after.content:
                self._blocks[position] = current.model_copy(
                    update={"type": before.type, "content": before.content}
                )

        return self._queue.submit(f"update {key}", call, on_failure=failed)

    def _persist_delete(self, removed: Block, position: int) -> asyncio.Future[Any]:
        async def call() -> None:
            await self._repo.delete_block(self._resolve(removed.id, "delete"))

        def failed(error: PersistenceError) -> None:
            self._failures.append(error)
            if not self._rollback or isinstance(error, StaleIdentityError):
                return
            restored = removed
            permanent = self._resolved.get(removed.key)
            if permanent is not None and restored.is_pending:
                restored = restored.commit(permanent)
            self._blocks = insert_block(self._blocks, restored, position)

        return self._queue.submit(f"delete {removed.key}", call, on_failure=failed)

    def _persist_reorder(self, before: list[Block], after: list[Block]) -> asyncio.Future[Any]:
        pairs = order_pairs(after)

        async def call() -> None:
            resolved: list[tuple[str, int]] = []
            for block_id, order in pairs:
                try:
                    resolved.append((self._resolve(block_id, "reorder"), order))
                except StaleIdentityError:
                    continue
            await self._repo.reorder_blocks(self.doc_id, resolved)

        def failed(error: PersistenceError) -> None:
            self._failures.append(error)
            if not self._rollback or not self._arranged_as(after):
                return
            current = {b.key: b for b in self._blocks}
            restored = [current[self._resolved.get(b.key, b.key)] for b in before]
            self._blocks = reindex(restored)

        return self._queue.submit(f"reorder {self.doc_id}", call, on_failure=failed)

    def _persist_resync(self) -> asyncio.Future[Any]:
        """Queue a reorder that sends the local arrangement as it is when it runs.

        Blocks without a permanent id by then are left out.
        """

        async def call() -> None:
            resolved: list[tuple[str, int]] = []
            for block_id, order in order_pairs(self._blocks):
                try:
                    resolved.append((self._resolve(block_id, "resync"), order))
                except StaleIdentityError:
                    continue
            if resolved:
                await self._repo.reorder_blocks(self.doc_id, resolved)

        return self._queue.submit(
            f"resync {self.doc_id}", call, on_failure=self._failures.append
        )

    # ---------------------------------------------------------------- helpers

    def _locate(self, key: str) -> int:
        position = index_of(self._blocks, key)
        if position == -1 and key in self._resolved:
            position = index_of(self._blocks, self._resolved[key])
        return position

    def _resolve(self, block_id: BlockId, label: str) -> str:
        """Permanent id for ``block_id`` at execution time."""
        if not isinstance(block_id, PendingId):
            return block_id.value
        permanent = self._resolved.get(block_id.value)
        if permanent is None:
            raise StaleIdentityError(f"{label} {block_id.value} (never persisted)")
        return permanent

    def _arranged_as(self, blocks: Sequence[Block]) -> bool:
        """True when the local list holds ``blocks``' ids in the same order.

        Temporary ids committed since ``blocks`` was captured compare equal to
        their permanent ids.
        """
        canon = [self._resolved.get(b.key, b.key) for b in blocks]
        return [b.key for b in self._blocks] == canon

    def check(self) -> None:
        """Assert the dense order invariant on the local list."""
        check_dense(self._blocks)


__all__ = ["FocusEdge", "FocusTarget", "OptimisticStore"]
