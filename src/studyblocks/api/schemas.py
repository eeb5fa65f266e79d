"""
Request/response models for the document HTTP API.

Blocks are exposed with their string key and a ``pending`` flag instead of
the internal identity union, so clients never see the ``PendingId`` /
``CommittedId`` wrapper.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field

from studyblocks.agents.materializer import RejectedItem
from studyblocks.agents.source_files import SourceFile
from studyblocks.core.contracts.block import Block, BlockContent, Provenance
from studyblocks.core.store import OptimisticStore


class BlockView(BaseModel):
    id: str
    pending: bool
    type: str
    content: BlockContent
    order: int
    provenance: Provenance | None = None

    @classmethod
    def from_block(cls, block: Block) -> BlockView:
        return cls(
            id=block.key,
            pending=block.is_pending,
            type=block.type.value,
            content=block.content,
            order=block.order,
            provenance=block.provenance,
        )


class FocusView(BaseModel):
    key: str
    edge: str


class DocumentView(BaseModel):
    """The document after a request, once persistence has settled."""

    doc_id: str
    blocks: list[BlockView]
    focus: FocusView | None = None
    failures: list[str] = Field(
        default_factory=list, description="Persistence failures seen by this session."
    )

    @classmethod
    def from_store(cls, store: OptimisticStore) -> DocumentView:
        focus = store.focus
        return cls(
            doc_id=store.doc_id,
            blocks=[BlockView.from_block(b) for b in store.blocks],
            focus=FocusView(key=focus.key, edge=focus.edge) if focus is not None else None,
            failures=[str(f) for f in store.failures],
        )


class CreateBlockRequest(BaseModel):
    type: str = Field(default="text", description="Block type tag.")
    after_index: int | None = Field(
        default=None, description="Insert after this index; -1 for the front, omit to append."
    )
    focus_edge: str = Field(default="start", pattern="^(start|end)$")
    content: Any = None


class UpdateBlockRequest(BaseModel):
    content: Any
    type: str | None = None


class RetypeRequest(BaseModel):
    target: str = Field(..., description="Block type or text variant.")
    level: int = Field(default=1, ge=1, le=6, description="Heading level.")


class MoveRequest(BaseModel):
    source_index: int
    destination_index: int
    selected: list[str] = Field(
        default_factory=list,
        description="Selected block ids; a group move when the dragged block is one of several.",
    )


class IndexRequest(BaseModel):
    index: int


class MaterializeRequest(BaseModel):
    items: list[Any] = Field(..., description="Raw proposed blocks from a generation step.")
    policy: str | None = Field(default=None, description="auto | manual | suppress")
    files: list[SourceFile] = Field(default_factory=list)


class MaterializeResponse(BaseModel):
    document: DocumentView
    rejected: list[RejectedItem] = Field(default_factory=list)


__all__ = [
    "BlockView",
    "CreateBlockRequest",
    "DocumentView",
    "FocusView",
    "IndexRequest",
    "MaterializeRequest",
    "MaterializeResponse",
    "MoveRequest",
    "RetypeRequest",
    "UpdateBlockRequest",
]
