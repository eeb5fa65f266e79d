"""
Generation collaborator: source text in, unordered proposed blocks out.

The model is asked for a JSON object ``{"title", "blocks": [...]}`` where
each block is ``{"type": "text" | "latex" | "image_request", "content",
"page", "source_file", "order"}``. Nothing here validates the blocks; the
raw list is handed to the materializer, which owns that step.

Replies wrapped in a Markdown code fence, or consisting of a bare JSON list,
are tolerated. Anything that is not JSON raises :class:`GenerationError`.
"""

from __future__ import annotations

import json
import re
from collections.abc import Mapping, Sequence
from typing import Any, Protocol

from pydantic import BaseModel, Field

from studyblocks.agents.source_files import SourceDocument
from studyblocks.core.settings import get_logger, load_settings
from studyblocks.llm.client import LLMClient

logger = get_logger(__name__)

DEFAULT_TITLE = "Summary"

_FENCE = re.compile(r"^```[a-zA-Z0-9_-]*\s*\n(?P<body>.*?)\n?```\s*$", re.DOTALL)

_SYSTEM_PROMPT = """\
You write study summaries for university students from their lecture files.
The summary should help them solve exercises: keep it understandable, but
focus on what can be applied.

Content
1. Separate derivations from formulas. Formulas that matter for applying
   the material must stand out.
2. Extract the important concepts and definitions.
3. Whenever a diagram, graph, schematic or figure would help, emit an
   "image_request" block. Never produce TikZ or LaTeX code for pictures.
   Describe the needed image precisely in English, give the page number
   where it (or a similar one) appears, and the source file name.
4. Give the summary a short, fitting title.

Return ONLY a JSON object, no Markdown around it:
{
  "title": "string",
  "blocks": [
    {
      "type": "text" | "latex" | "image_request",
      "content": "string",
      "page": number,
      "source_file": "string",
      "order": number
    }
  ]
}

- "text": HTML content. Use <h1>-<h3> for headings, <p>, <ul>/<li> and
  <strong>.
- "latex": plain LaTeX, e.g. "E = mc^2".
- "image_request": English description of the picture; "page" and
  "source_file" are only used for this type.
"""


class GenerationError(RuntimeError):
    """The generation model failed or replied with something other than JSON."""


class GenerationOutput(BaseModel):
    """Raw generation result, before materialization."""

    title: str = Field(default=DEFAULT_TITLE)
    items: list[Any] = Field(
        default_factory=list,
        description="Unvalidated proposed blocks, in the order the model emitted them.",
    )


class GenerationCollaborator(Protocol):
    def generate(self, sources: Sequence[SourceDocument]) -> GenerationOutput: ...


def build_messages(sources: Sequence[SourceDocument]) -> list[dict[str, str]]:
    """System prompt plus one user message carrying every non-empty source."""
    parts = [
        f"File: {doc.file.name} (URL: {doc.file.url})\nContent:\n{doc.text}"
        for doc in sources
        if not doc.is_empty
    ]
    return [
        {"role": "system", "content": _SYSTEM_PROMPT},
        {"role": "user", "content": "\n\n---\n\n".join(parts)},
    ]


def _strip_fence(raw: str) -> str:
    text = raw.strip()
    match = _FENCE.match(text)
    return match.group("body") if match else text


def parse_generation(raw: str, *, default_title: str = DEFAULT_TITLE) -> GenerationOutput:
    """Parse the model's reply into a :class:`GenerationOutput`.

    Raises
    ------
    GenerationError
        If the reply is not JSON, or is JSON of an unusable shape.
    """
    try:
        data = json.loads(_strip_fence(raw))
    except json.JSONDecodeError as exc:
        raise GenerationError(f"generation reply is not valid JSON: {exc}") from exc

    if isinstance(data, list):
        return GenerationOutput(title=default_title, items=data)
    if not isinstance(data, Mapping):
        raise GenerationError("generation reply must be a JSON object or list")

    blocks = data.get("blocks", [])
    if not isinstance(blocks, list):
        raise GenerationError("generation reply field 'blocks' must be a list")
    title = data.get("title")
    if not isinstance(title, str) or not title.strip():
        title = default_title
    return GenerationOutput(title=title.strip(), items=blocks)


class LLMSummaryGenerator:
    """:class:`GenerationCollaborator` backed by :class:`LLMClient`.

    Parameters
    ----------
    llm:
        Client to call; defaults to :meth:`LLMClient.from_env`.
    model:
        Registry alias or model ID; defaults to ``settings.generator_model``.
    """

    def __init__(self, llm: LLMClient | None = None, *, model: str | None = None) -> None:
        self.model = model or load_settings().generator_model
        self.llm = llm if llm is not None else LLMClient.from_env(default_model_alias=self.model)

    def generate(self, sources: Sequence[SourceDocument]) -> GenerationOutput:
        """Ask the model for a summary of ``sources``.

        Raises
        ------
        GenerationError
            If there is no usable source text, the call fails, or the reply
            cannot be parsed.
        """
        if all(doc.is_empty for doc in sources):
            raise GenerationError("no source text to summarize")

        messages = build_messages(sources)
        try:
            raw = self.llm.generate(messages, model=self.model, json_mode=True)
        except RuntimeError as exc:
            raise GenerationError(f"generation call failed: {exc}") from exc

        output = parse_generation(raw)
        logger.info("generated %r with %d proposed blocks", output.title, len(output.items))
        return output


__all__ = [
    "DEFAULT_TITLE",
    "GenerationCollaborator",
    "GenerationError",
    "GenerationOutput",
    "LLMSummaryGenerator",
    "build_messages",
    "parse_generation",
]
