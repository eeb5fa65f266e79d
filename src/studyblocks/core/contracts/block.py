"""
Block Contract

A :class:`Block` is the atomic unit of a study document: one paragraph of
rich text, one formula, one image, or one image that is still waiting for a
human to supply it. A document is an ordered list of blocks whose ``order``
values are always exactly ``0..N-1``.

Identity
--------
A block created in the editor gets a temporary id until the persistence
backend confirms it. The id is modelled as a sum type,
``PendingId | CommittedId``, and :meth:`Block.commit` performs the one-way
transition in place.

Content
-------
``content`` is shaped by ``type``:

- ``text``           rich text markup (HTML string)
- ``formula``        raw LaTeX markup (string)
- ``image``          :class:`ImageContent` (url + optional width hint)
- ``pending-image``  :class:`PendingImageContent` (description, page, file url)
"""

from __future__ import annotations

import json
import re
import uuid
from collections.abc import Mapping
from enum import Enum
from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator


class BlockType(str, Enum):
    """Closed set of block types."""

    TEXT = "text"
    FORMULA = "formula"
    IMAGE = "image"
    PENDING_IMAGE = "pending-image"

    @classmethod
    def parse(cls, value: str | BlockType) -> BlockType:
        """Resolve a type tag, accepting the legacy spellings.

        Raises
        ------
        ValueError
            If ``value`` is not a known tag or alias.
        """
        if isinstance(value, BlockType):
            return value
        tag = str(value).strip().lower()
        tag = _TYPE_ALIASES.get(tag, tag)
        return cls(tag)


_TYPE_ALIASES: dict[str, str] = {
    "latex": "formula",
    "math": "formula",
    "pending_image": "pending-image",
    "pendingimage": "pending-image",
}

#: Types whose content is rich text and can be merged/split.
TEXT_FAMILY: frozenset[BlockType] = frozenset({BlockType.TEXT})

TextVariant = Literal[
    "paragraph", "heading", "bulletList", "orderedList", "taskList", "blockquote"
]
TEXT_VARIANTS: frozenset[str] = frozenset(
    {"paragraph", "heading", "bulletList", "orderedList", "taskList", "blockquote"}
)


# ---- Content payloads --------------------------------------------------------


class ImageContent(BaseModel):
    """Resolved image reference."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    url: str = Field(default="", description="Resolved image URL ('' while unset).")
    width: int | None = Field(default=None, gt=0, description="Presentation width hint (px).")


class PendingImageContent(BaseModel):
    """An image that still has to be supplied by the user."""

    model_config = ConfigDict(frozen=True, extra="forbid", populate_by_name=True)

    description: str = Field(default="", description="What the image should show.")
    page_hint: int | None = Field(
        default=None, ge=1, alias="pageHint", description="Page in the source file."
    )
    file_url: str | None = Field(
        default=None, alias="candidateFileUrl", description="Best-guess source file URL."
    )


BlockContent = str | ImageContent | PendingImageContent


def empty_content(block_type: BlockType) -> BlockContent:
    """Return the empty payload for ``block_type``."""
    if block_type is BlockType.IMAGE:
        return ImageContent()
    if block_type is BlockType.PENDING_IMAGE:
        return PendingImageContent()
    return ""


def coerce_content(block_type: BlockType, raw: Any) -> BlockContent:
    """Shape a loosely typed payload into the content model for ``block_type``.

    Strings are accepted for every type: an image string is taken as its URL
    and a pending-image string may be the JSON blob older clients stored.
    """
    if raw is None:
        return empty_content(block_type)
    if block_type is BlockType.IMAGE:
        if isinstance(raw, ImageContent):
            return raw
        if isinstance(raw, str):
            return ImageContent(url=raw.strip())
        return ImageContent.model_validate(raw)
    if block_type is BlockType.PENDING_IMAGE:
        if isinstance(raw, PendingImageContent):
            return raw
        if isinstance(raw, str):
            try:
                decoded = json.loads(raw)
            except json.JSONDecodeError:
                return PendingImageContent(description=raw)
            if isinstance(decoded, Mapping):
                return _pending_from_mapping(decoded)
            return PendingImageContent(description=raw)
        if isinstance(raw, Mapping):
            return _pending_from_mapping(raw)
        return PendingImageContent.model_validate(raw)
    if not isinstance(raw, str):
        raise ValueError(f"{block_type.value} content must be a string")
    return raw


def _pending_from_mapping(data: Mapping[str, Any]) -> PendingImageContent:
    # Older records used `page` / `fileUrl`.
    page = data.get("page_hint", data.get("pageHint", data.get("page")))
    file_url = data.get("file_url", data.get("candidateFileUrl", data.get("fileUrl")))
    return PendingImageContent(
        description=str(data.get("description") or ""),
        page_hint=page if isinstance(page, int) and page >= 1 else None,
        file_url=str(file_url) if file_url else None,
    )


# ---- Identity ----------------------------------------------------------------


class PendingId(BaseModel):
    """Client-minted id, valid until the create call resolves."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["pending"] = "pending"
    value: str


class CommittedId(BaseModel):
    """Permanent id assigned by the persistence backend."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["committed"] = "committed"
    value: str


BlockId = Annotated[PendingId | CommittedId, Field(discriminator="kind")]


def new_pending_id() -> PendingId:
    """Mint a fresh temporary id."""
    return PendingId(value=f"tmp-{uuid.uuid4().hex[:12]}")


# ---- Block -------------------------------------------------------------------


class Provenance(BaseModel):
    """Where a generated block came from."""

    model_config = ConfigDict(frozen=True)

    source_page: int | None = Field(default=None, ge=1)
    source_file_id: str | None = None


class Block(BaseModel):
    """One block of a study document."""

    model_config = ConfigDict(frozen=True)

    id: BlockId
    type: BlockType
    content: BlockContent = ""
    order: int = Field(..., ge=0, description="0-based position in the document.")
    provenance: Provenance | None = None

    @model_validator(mode="before")
    @classmethod
    def _shape_content(cls, data: Any) -> Any:
        if not isinstance(data, Mapping) or "type" not in data:
            return data
        shaped = dict(data)
        block_type = BlockType.parse(shaped["type"])
        shaped["type"] = block_type
        shaped["content"] = coerce_content(block_type, shaped.get("content"))
        return shaped

    @property
    def key(self) -> str:
        """String form of the id, used for lookups and selection."""
        return self.id.value

    @property
    def is_pending(self) -> bool:
        return isinstance(self.id, PendingId)

    def commit(self, permanent_id: str) -> Block:
        """Return this block carrying its permanent id.

        Raises
        ------
        ValueError
            If the block is already committed.
        """
        if not self.is_pending:
            raise ValueError(f"block {self.key} is already committed")
        return self.model_copy(update={"id": CommittedId(value=permanent_id)})

    def text(self) -> str:
        """Content as a plain string (markup for text/formula, url/description otherwise)."""
        if isinstance(self.content, ImageContent):
            return self.content.url
        if isinstance(self.content, PendingImageContent):
            return self.content.description
        return self.content


def is_text_family(block: Block) -> bool:
    return block.type in TEXT_FAMILY


# ---- Retype ------------------------------------------------------------------

_WRAPPER = re.compile(
    r"^\s*<(p|h[1-6]|ul|ol|li|blockquote)(\s[^>]*)?>(.*)</\1>\s*$",
    flags=re.DOTALL | re.IGNORECASE,
)


def _unwrap(markup: str) -> str:
    """Peel single top-level block wrappers (<p>, <h2>, <ul><li>...) off markup."""
    inner = markup.strip()
    while True:
        match = _WRAPPER.match(inner)
        if match is None:
            return inner
        tag, body = match.group(1).lower(), match.group(3)
        # `<p>a</p><p>b</p>` is two siblings, not one wrapper.
        if re.search(rf"<{tag}[\s>]", body, flags=re.IGNORECASE):
            return inner
        inner = body.strip()


def apply_text_variant(markup: str, variant: str, *, level: int = 1) -> str:
    """Re-wrap the text of ``markup`` in the structure named by ``variant``."""
    body = _unwrap(markup)
    if variant == "heading":
        h = min(max(level, 1), 6)
        return f"<h{h}>{body}</h{h}>"
    if variant == "bulletList":
        return f"<ul><li><p>{body}</p></li></ul>"
    if variant == "orderedList":
        return f"<ol><li><p>{body}</p></li></ol>"
    if variant == "taskList":
        return (
            '<ul data-type="taskList"><li data-type="taskItem" data-checked="false">'
            f"<p>{body}</p></li></ul>"
        )
    if variant == "blockquote":
        return f"<blockquote><p>{body}</p></blockquote>"
    if variant == "paragraph":
        return f"<p>{body}</p>"
    raise ValueError(f"unknown text variant: {variant!r}")


def retype(block: Block, target: BlockType | str, *, level: int = 1) -> Block:
    """Change a block's type in place, keeping its id, order and provenance.

    A text variant (``heading``, ``bulletList`` ...) applied to a non-text
    block first coerces it to an empty text block. Any other type change
    replaces the content with the empty value of the new type; nothing is
    carried over.
    """
    if isinstance(target, str) and target in TEXT_VARIANTS:
        base = block
        if not is_text_family(block):
            base = block.model_copy(update={"type": BlockType.TEXT, "content": ""})
        return base.model_copy(
            update={"content": apply_text_variant(base.text(), target, level=level)}
        )

    new_type = BlockType.parse(target)
    if new_type is block.type:
        return block
    return block.model_copy(update={"type": new_type, "content": empty_content(new_type)})


__all__ = [
    "TEXT_FAMILY",
    "TEXT_VARIANTS",
    "Block",
    "BlockContent",
    "BlockId",
    "BlockType",
    "CommittedId",
    "ImageContent",
    "PendingId",
    "PendingImageContent",
    "Provenance",
    "TextVariant",
    "apply_text_variant",
    "coerce_content",
    "empty_content",
    "is_text_family",
    "new_pending_id",
    "retype",
]
