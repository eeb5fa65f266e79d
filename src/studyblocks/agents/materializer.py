"""
Block materializer: loosely typed generation output in, ordered blocks out.

Pipeline
--------
1. **Parse.** Each raw item is validated into a :class:`ProposedBlock` or
   turned into a :class:`RejectedItem` (:func:`parse_proposal` returns a
   ``Result``). Structurally invalid items are dropped and logged; they
   never fail the run.
2. **Resolve.** Placeholders ("an image is needed here") are replaced
   according to the run's :class:`ResolutionPolicy`:

   - ``auto``      ask the image lookup; a URL gives an ``image`` block,
                   anything else a visible placeholder annotation,
   - ``manual``    a ``pending-image`` block with description, page hint
                   and the best-guess source file URL,
   - ``suppress``  the placeholder annotation, without a lookup.

3. **Order.** Substitution is one-for-one, so the output keeps the input
   order; each block's ``order`` is its output position. Page hints never
   resequence anything.

The resulting blocks carry pending ids and go straight into
:meth:`OptimisticStore.bulk_create`.
"""

from __future__ import annotations

import html
from collections.abc import Mapping, Sequence
from enum import Enum
from pathlib import PurePosixPath
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

from studyblocks.agents.image_search import ImageLookup
from studyblocks.agents.source_files import SourceFile
from studyblocks.core.contracts.block import (
    Block,
    BlockContent,
    BlockType,
    ImageContent,
    PendingImageContent,
    Provenance,
    new_pending_id,
)
from studyblocks.core.result import Result, err, ok
from studyblocks.core.settings import get_logger

logger = get_logger(__name__)

ProposedKind = Literal["text", "formula", "image", "placeholder"]

_KIND_ALIASES: dict[str, ProposedKind] = {
    "text": "text",
    "formula": "formula",
    "latex": "formula",
    "math": "formula",
    "image": "image",
    "placeholder": "placeholder",
    "image_request": "placeholder",
    "image-request": "placeholder",
    "pending-image": "placeholder",
    "pending_image": "placeholder",
}


class ResolutionPolicy(str, Enum):
    """How placeholders are resolved during one materialization run."""

    AUTO = "auto"
    MANUAL = "manual"
    SUPPRESS = "suppress"

    @classmethod
    def parse(cls, value: str | ResolutionPolicy) -> ResolutionPolicy:
        """Accept the policy names plus ``google`` (auto) and ``none`` (suppress).

        Raises
        ------
        ValueError
            For any other value.
        """
        if isinstance(value, ResolutionPolicy):
            return value
        tag = str(value).strip().lower()
        return cls({"google": "auto", "none": "suppress"}.get(tag, tag))


class ProposedBlock(BaseModel):
    """One validated item of generation output."""

    model_config = ConfigDict(frozen=True)

    kind: ProposedKind
    content: str = Field(..., description="Markup, URL, or image description.")
    page_hint: int | None = Field(default=None, ge=1)
    source_file_hint: str | None = None


class RejectedItem(BaseModel):
    """A raw item that could not be parsed, with the reason."""

    model_config = ConfigDict(frozen=True)

    index: int
    reason: str
    raw: str = Field(default="", description="repr() of the offending item, truncated.")


class MaterializationResult(BaseModel):
    blocks: list[Block] = Field(default_factory=list)
    rejected: list[RejectedItem] = Field(default_factory=list)


# ---- Parse -------------------------------------------------------------------


def _first(data: Mapping[str, Any], *names: str) -> Any:
    for name in names:
        if name in data and data[name] is not None:
            return data[name]
    return None


def _page(value: Any) -> int | None:
    """Positive page number, or ``None`` for anything unparseable."""
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value if value >= 1 else None
    if isinstance(value, float) and value.is_integer():
        return _page(int(value))
    if isinstance(value, str):
        try:
            return _page(int(value.strip()))
        except ValueError:
            return None
    return None


def _reject(index: int, reason: str, raw: Any) -> Result[ProposedBlock, RejectedItem]:
    return err(RejectedItem(index=index, reason=reason, raw=repr(raw)[:200]))


def parse_proposal(raw: Any, index: int = 0) -> Result[ProposedBlock, RejectedItem]:
    """Validate one untrusted item of generation output."""
    if not isinstance(raw, Mapping):
        return _reject(index, "item is not an object", raw)

    tag = _first(raw, "type", "kind")
    if not isinstance(tag, str):
        return _reject(index, "missing block type", raw)
    kind = _KIND_ALIASES.get(tag.strip().lower())
    if kind is None:
        return _reject(index, f"unknown block type {tag!r}", raw)

    content = _first(raw, "content", "descriptionText", "description")
    if not isinstance(content, str):
        return _reject(index, "content must be a string", raw)

    source = _first(raw, "source_file", "sourceFileHint", "source_file_hint")
    return ok(
        ProposedBlock(
            kind=kind,
            content=content,
            page_hint=_page(_first(raw, "page", "pageHint", "page_hint")),
            source_file_hint=(source.strip() or None) if isinstance(source, str) else None,
        )
    )


# ---- Resolve -----------------------------------------------------------------


def match_source_file(hint: str | None, files: Sequence[SourceFile]) -> SourceFile | None:
    """Best candidate file for ``hint``.

    Tried in turn: exact name, URL ending with the hint, then a
    case-insensitive comparison of the extension-less stems.
    """
    if not hint:
        return None
    for f in files:
        if f.name == hint:
            return f
    for f in files:
        if f.url.endswith(hint):
            return f
    stem = PurePosixPath(hint).stem.lower()
    for f in files:
        if PurePosixPath(f.name).stem.lower() == stem:
            return f
    return None


def placeholder_annotation(description: str, page: int | None = None) -> str:
    """Visible text-block markup standing in for an unresolved image."""
    suffix = f" (Page {page})" if page is not None else ""
    return (
        '<p class="image-placeholder">🖼️ <strong>Image Placeholder:</strong> '
        f"{html.escape(description)}{suffix}</p>"
    )


class Materializer:
    """Turn proposed blocks into a final, ordered block sequence.

    Parameters
    ----------
    policy:
        Resolution policy for the whole run.
    files:
        Candidate input files used for provenance and manual file URLs.
    lookup:
        Image lookup for the ``auto`` policy. Without one, every placeholder
        falls back to its annotation.
    """

    def __init__(
        self,
        policy: ResolutionPolicy | str,
        files: Sequence[SourceFile] = (),
        lookup: ImageLookup | None = None,
    ) -> None:
        self.policy = ResolutionPolicy.parse(policy)
        self.files = list(files)
        self.lookup = lookup

    def materialize(self, items: Sequence[Any]) -> MaterializationResult:
        blocks: list[Block] = []
        rejected: list[RejectedItem] = []
        for index, raw in enumerate(items):
            parsed = parse_proposal(raw, index)
            if parsed.is_err():
                item = parsed.unwrap_err()
                logger.warning("dropping proposed block %d: %s", index, item.reason)
                rejected.append(item)
                continue
            block_type, content = self._resolve(parsed.unwrap())
            blocks.append(
                Block(
                    id=new_pending_id(),
                    type=block_type,
                    content=content,
                    order=len(blocks),
                    provenance=self._provenance(parsed.unwrap()),
                )
            )
        return MaterializationResult(blocks=blocks, rejected=rejected)

    def _resolve(self, item: ProposedBlock) -> tuple[BlockType, BlockContent]:
        if item.kind == "text":
            return BlockType.TEXT, item.content
        if item.kind == "formula":
            return BlockType.FORMULA, item.content
        if item.kind == "image":
            return BlockType.IMAGE, ImageContent(url=item.content.strip())

        if self.policy is ResolutionPolicy.MANUAL:
            return BlockType.PENDING_IMAGE, PendingImageContent(
                description=item.content,
                page_hint=item.page_hint,
                file_url=self._file_url(item.source_file_hint),
            )
        if self.policy is ResolutionPolicy.AUTO:
            url = self._lookup(item.content)
            if url:
                return BlockType.IMAGE, ImageContent(url=url)
        return BlockType.TEXT, placeholder_annotation(item.content, item.page_hint)

    def _lookup(self, description: str) -> str | None:
        if self.lookup is None:
            return None
        try:
            return self.lookup.search(description)
        except Exception:
            logger.exception("image lookup for %r raised", description)
            return None

    def _file_url(self, hint: str | None) -> str | None:
        # A lone candidate file wins whatever the hint says.
        if len(self.files) == 1:
            return self.files[0].url
        matched = match_source_file(hint, self.files)
        return matched.url if matched is not None else None

    def _provenance(self, item: ProposedBlock) -> Provenance | None:
        matched = match_source_file(item.source_file_hint, self.files)
        if matched is None:
            return None
        return Provenance(source_page=item.page_hint, source_file_id=matched.id)


__all__ = [
    "MaterializationResult",
    "Materializer",
    "ProposedBlock",
    "RejectedItem",
    "ResolutionPolicy",
    "match_source_file",
    "parse_proposal",
    "placeholder_annotation",
]
