"""
Summary generation pipeline: input files to a persisted block document.

Flow
----
1. Load every input file (:func:`load_sources`).
2. Ask the generation collaborator for proposed blocks.
3. Materialize them under the run's resolution policy.
4. Append the result to the document through
   :meth:`OptimisticStore.bulk_create` and wait for persistence.

Each stage writes its artifact to the blackboard and takes a trace
snapshot, so a run can be replayed or dumped with :class:`TraceWriter`:

- ``generation_output``    raw :class:`GenerationOutput`
- ``materialized_blocks``  blocks handed to the store (pending ids)
- ``rejected_items``       items the materializer dropped
- ``document_blocks``      the document after persistence settled
"""

from __future__ import annotations

import asyncio
from collections.abc import Sequence
from dataclasses import dataclass, field
from pathlib import Path

from studyblocks.agents.generator import (
    GenerationCollaborator,
    GenerationOutput,
    LLMSummaryGenerator,
)
from studyblocks.agents.image_search import GoogleImageSearch, ImageLookup
from studyblocks.agents.materializer import Materializer, RejectedItem, ResolutionPolicy
from studyblocks.agents.source_files import load_sources
from studyblocks.core.blackboard.memory import Blackboard
from studyblocks.core.contracts.block import Block
from studyblocks.core.persistence.repository import BlockRepository, PersistenceError
from studyblocks.core.settings import get_logger, load_settings
from studyblocks.core.store import OptimisticStore
from studyblocks.llm.client import LLMClient

logger = get_logger(__name__)

_GENERATION_OUTPUT_KEY = "generation_output"
_MATERIALIZED_KEY = "materialized_blocks"
_REJECTED_KEY = "rejected_items"
_DOCUMENT_KEY = "document_blocks"


@dataclass(slots=True)
class GenerationRun:
    """Outcome of one :func:`run_generation` call."""

    doc_id: str
    title: str
    policy: ResolutionPolicy
    blocks: list[Block]
    rejected: list[RejectedItem] = field(default_factory=list)
    failures: list[PersistenceError] = field(default_factory=list)
    blackboard: Blackboard = field(default_factory=Blackboard)

    @property
    def ok(self) -> bool:
        """True when every block reached persistence."""
        return not self.failures


async def run_generation(
    paths: Sequence[str | Path],
    *,
    doc_id: str,
    repository: BlockRepository,
    policy: ResolutionPolicy | str | None = None,
    llm: LLMClient | None = None,
    generator: GenerationCollaborator | None = None,
    lookup: ImageLookup | None = None,
    blackboard: Blackboard | None = None,
) -> GenerationRun:
    """Generate a summary document from ``paths`` and persist it under ``doc_id``.

    Parameters
    ----------
    paths:
        Input files (txt, md, pdf, docx).
    doc_id:
        Document the blocks are appended to.
    repository:
        Persistence collaborator.
    policy:
        Placeholder resolution policy; defaults to ``settings.image_policy``.
    llm, generator:
        The generation collaborator, or the client an
        :class:`LLMSummaryGenerator` is built around.
    lookup:
        Image lookup for the ``auto`` policy; defaults to
        :class:`GoogleImageSearch`.
    blackboard:
        Where artifacts and traces go; a fresh one by default.

    Raises
    ------
    FileNotFoundError, ValueError
        For missing or unsupported input files.
    GenerationError
        If the generation step fails.
    """
    bb = blackboard if blackboard is not None else Blackboard()
    resolved_policy = ResolutionPolicy.parse(policy or load_settings().image_policy)
    if generator is None:
        generator = LLMSummaryGenerator(llm)
    if lookup is None and resolved_policy is ResolutionPolicy.AUTO:
        lookup = GoogleImageSearch()

    sources = load_sources(paths)
    logger.info("generating document %s from %d files", doc_id, len(sources))

    output: GenerationOutput = await asyncio.to_thread(generator.generate, sources)
    bb.put(_GENERATION_OUTPUT_KEY, output)
    bb.trace("after generate")

    materializer = Materializer(resolved_policy, [s.file for s in sources], lookup)
    result = await asyncio.to_thread(materializer.materialize, output.items)
    bb.put(_MATERIALIZED_KEY, result.blocks)
    bb.put(_REJECTED_KEY, result.rejected)
    bb.trace("after materialize")

    store = await OptimisticStore.open(doc_id, repository)
    try:
        store.bulk_create(result.blocks)
        blocks = await store.flush()
        failures = list(store.failures)
    finally:
        await store.aclose()
    bb.put(_DOCUMENT_KEY, blocks)
    bb.trace("after persist")

    if failures:
        logger.warning("document %s: %d blocks failed to persist", doc_id, len(failures))

    return GenerationRun(
        doc_id=doc_id,
        title=output.title,
        policy=resolved_policy,
        blocks=blocks,
        rejected=list(result.rejected),
        failures=failures,
        blackboard=bb,
    )


__all__ = ["GenerationRun", "run_generation"]
