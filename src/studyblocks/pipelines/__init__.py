"""End-to-end pipelines wiring agents to the optimistic store."""

from __future__ import annotations

from studyblocks.pipelines.summary_generation import GenerationRun, run_generation

__all__ = ["GenerationRun", "run_generation"]
