"""
Per-document persistence queue.

All persistence calls for one open document go through a single consumer
task, so they reach the backend strictly in the order they were issued. A
slow early reorder can therefore never land after, and overwrite, a later
one.

Each job may carry ``on_success`` / ``on_failure`` hooks. They run on the
worker right after the call finishes and before the next job starts, which
lets the store commit a temporary id before any later job needs to resolve
it.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any, Generic, TypeVar

from studyblocks.core.persistence.repository import PersistenceError
from studyblocks.core.result import Err, Ok, Result, capture
from studyblocks.core.settings import get_logger

T = TypeVar("T")

logger = get_logger(__name__)


@dataclass(slots=True)
class PersistenceJob(Generic[T]):
    """One queued call and the future its outcome is delivered to."""

    label: str
    call: Callable[[], Awaitable[T]]
    future: asyncio.Future[Result[T, PersistenceError]]
    on_success: Callable[[T], None] | None = None
    on_failure: Callable[[PersistenceError], None] | None = None


class PersistenceQueue:
    """Single-consumer FIFO of persistence jobs for one document."""

    def __init__(self, doc_id: str) -> None:
        self.doc_id = doc_id
        self._queue: asyncio.Queue[PersistenceJob[Any]] | None = None
        self._worker: asyncio.Task[None] | None = None
        self.issued = 0
        self.completed = 0

    @property
    def pending(self) -> int:
        """Jobs issued but not finished yet."""
        return self.issued - self.completed

    def submit(
        self,
        label: str,
        call: Callable[[], Awaitable[T]],
        *,
        on_success: Callable[[T], None] | None = None,
        on_failure: Callable[[PersistenceError], None] | None = None,
    ) -> asyncio.Future[Result[T, PersistenceError]]:
        """Queue ``call`` behind every job submitted before it.

        Must be called with a running event loop.
        """
        loop = asyncio.get_running_loop()
        queue = self._ensure_worker(loop)
        future: asyncio.Future[Result[T, PersistenceError]] = loop.create_future()
        queue.put_nowait(PersistenceJob(label, call, future, on_success, on_failure))
        self.issued += 1
        return future

    async def flush(self) -> None:
        """Wait until every job submitted so far has finished."""
        if self._queue is not None and self._worker is not None and not self._worker.done():
            await self._queue.join()

    async def aclose(self) -> None:
        """Flush and stop the worker."""
        await self.flush()
        if self._worker is not None:
            self._worker.cancel()
            try:
                await self._worker
            except asyncio.CancelledError:
                pass
        self._worker = None
        self._queue = None

    def _ensure_worker(
        self, loop: asyncio.AbstractEventLoop
    ) -> asyncio.Queue[PersistenceJob[Any]]:
        worker = self._worker
        if self._queue is None or worker is None or worker.done() or worker.get_loop() is not loop:
            # A new loop (or a dead worker) gets a fresh queue and worker.
            self._queue = asyncio.Queue()
            self._worker = loop.create_task(
                self._drain(self._queue), name=f"persist:{self.doc_id}"
            )
        return self._queue

    async def _drain(self, queue: asyncio.Queue[PersistenceJob[Any]]) -> None:
        while True:
            job = await queue.get()
            try:
                await self._run(job)
            finally:
                self.completed += 1
                queue.task_done()

    async def _run(self, job: PersistenceJob[Any]) -> None:
        raw = await capture(job.call())
        outcome: Result[Any, PersistenceError]
        try:
            if isinstance(raw, Ok):
                outcome = raw
                if job.on_success is not None:
                    job.on_success(raw.value)
            else:
                cause = raw.unwrap_err()
                if isinstance(cause, PersistenceError):
                    error = cause
                else:
                    error = PersistenceError(job.label, cause)
                outcome = Err(error)
                logger.warning("document %s: %s", self.doc_id, error)
                if job.on_failure is not None:
                    job.on_failure(error)
        except Exception:
            # A broken hook must not stall the jobs queued behind this one.
            logger.exception("document %s: hook for %s raised", self.doc_id, job.label)
        if not job.future.done():
            job.future.set_result(outcome)


__all__ = ["PersistenceJob", "PersistenceQueue"]
