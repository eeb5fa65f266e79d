"""
Document editing routes.

Every mutating route applies the change to the document's optimistic store,
then waits for the persistence queue to drain before answering, so the
response already carries committed ids (or the rolled-back state).

Endpoints
---------
- ``GET    /documents/{doc_id}/blocks``
- ``POST   /documents/{doc_id}/blocks``
- ``PATCH  /documents/{doc_id}/blocks/{key}``
- ``POST   /documents/{doc_id}/blocks/{key}/retype``
- ``DELETE /documents/{doc_id}/blocks/{key}``
- ``POST   /documents/{doc_id}/move``
- ``POST   /documents/{doc_id}/merge``
- ``POST   /documents/{doc_id}/split``
- ``POST   /documents/{doc_id}/materialize``
"""

from __future__ import annotations

import asyncio

from fastapi import APIRouter, status

from studyblocks.agents.image_search import GoogleImageSearch
from studyblocks.agents.materializer import Materializer, ResolutionPolicy
from studyblocks.api.schemas import (
    CreateBlockRequest,
    DocumentView,
    IndexRequest,
    MaterializeRequest,
    MaterializeResponse,
    MoveRequest,
    RetypeRequest,
    UpdateBlockRequest,
)
from studyblocks.api.sessions import get_sessions
from studyblocks.core.selection import SelectionController
from studyblocks.core.settings import load_settings
from studyblocks.core.store import OptimisticStore

router = APIRouter(prefix="/documents/{doc_id}", tags=["Documents"])


async def _settled(store: OptimisticStore) -> DocumentView:
    await store.flush()
    return DocumentView.from_store(store)


@router.get("/blocks", response_model=DocumentView, summary="List a document's blocks")
async def list_blocks(doc_id: str) -> DocumentView:
    store = await get_sessions().open(doc_id)
    return DocumentView.from_store(store)


@router.post(
    "/blocks",
    response_model=DocumentView,
    status_code=status.HTTP_201_CREATED,
    summary="Create a block",
)
async def create_block(doc_id: str, request: CreateBlockRequest) -> DocumentView:
    store = await get_sessions().open(doc_id)
    after = len(store) - 1 if request.after_index is None else request.after_index
    store.create(
        request.type,
        after,
        "end" if request.focus_edge == "end" else "start",
        request.content,
    )
    return await _settled(store)


@router.patch("/blocks/{key}", response_model=DocumentView, summary="Edit a block's content")
async def update_block(doc_id: str, key: str, request: UpdateBlockRequest) -> DocumentView:
    store = await get_sessions().open(doc_id)
    store.update(key, request.content, request.type)
    return await _settled(store)


@router.post("/blocks/{key}/retype", response_model=DocumentView, summary="Change a block's type")
async def retype_block(doc_id: str, key: str, request: RetypeRequest) -> DocumentView:
    store = await get_sessions().open(doc_id)
    store.retype(key, request.target, level=request.level)
    return await _settled(store)


@router.delete("/blocks/{key}", response_model=DocumentView, summary="Delete a block")
async def delete_block(doc_id: str, key: str) -> DocumentView:
    store = await get_sessions().open(doc_id)
    store.delete(key)
    return await _settled(store)


@router.post("/move", response_model=DocumentView, summary="Move one block or the selection")
async def move_blocks(doc_id: str, request: MoveRequest) -> DocumentView:
    store = await get_sessions().open(doc_id)
    selection = SelectionController.from_keys(request.selected) if request.selected else None
    store.move(request.source_index, request.destination_index, selection)
    return await _settled(store)


@router.post("/merge", response_model=DocumentView, summary="Merge a block into the one above")
async def merge_blocks(doc_id: str, request: IndexRequest) -> DocumentView:
    store = await get_sessions().open(doc_id)
    store.merge(request.index)
    return await _settled(store)


@router.post("/split", response_model=DocumentView, summary="Start a new text block below")
async def split_block(doc_id: str, request: IndexRequest) -> DocumentView:
    store = await get_sessions().open(doc_id)
    store.split(request.index)
    return await _settled(store)


@router.post(
    "/materialize",
    response_model=MaterializeResponse,
    summary="Append generated blocks to the document",
)
async def materialize_blocks(doc_id: str, request: MaterializeRequest) -> MaterializeResponse:
    sessions = get_sessions()
    store = await sessions.open(doc_id)
    policy = ResolutionPolicy.parse(request.policy or load_settings().image_policy)
    lookup = sessions.lookup
    if lookup is None and policy is ResolutionPolicy.AUTO:
        lookup = GoogleImageSearch()
    materializer = Materializer(policy, request.files, lookup)
    result = await asyncio.to_thread(materializer.materialize, request.items)
    store.bulk_create(result.blocks)
    return MaterializeResponse(document=await _settled(store), rejected=result.rejected)


__all__ = ["router"]
