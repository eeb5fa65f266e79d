"""Materializer: parsing untrusted proposals and resolving placeholders."""

from __future__ import annotations

from typing import Any

import pytest

from studyblocks.agents.image_search import GoogleImageSearch
from studyblocks.agents.materializer import (
    Materializer,
    ResolutionPolicy,
    match_source_file,
    parse_proposal,
    placeholder_annotation,
)
from studyblocks.agents.source_files import SourceFile
from studyblocks.core.contracts.block import BlockType, ImageContent, PendingImageContent

LECTURE = SourceFile(id="lecture3.pdf", name="lecture3.pdf", url="file:///tmp/lecture3.pdf")
NOTES = SourceFile(id="notes.md", name="notes.md", url="file:///tmp/notes.md")


class StubLookup:
    def __init__(self, url: str | None) -> None:
        self.url = url
        self.queries: list[str] = []

    def search(self, query: str) -> str | None:
        self.queries.append(query)
        return self.url


class ExplodingLookup:
    def search(self, query: str) -> str | None:
        raise ConnectionError("offline")


def test_placeholder_without_credentials_falls_back_to_text() -> None:
    lookup = GoogleImageSearch(api_key="", cse_id="")
    result = Materializer("auto", lookup=lookup).materialize(
        [{"type": "placeholder", "descriptionText": "circuit diagram"}]
    )
    assert len(result.blocks) == 1
    block = result.blocks[0]
    assert block.type is BlockType.TEXT
    assert "circuit diagram" in block.text()
    assert not any(b.type is BlockType.IMAGE for b in result.blocks)


def test_auto_policy_uses_lookup_url() -> None:
    lookup = StubLookup("https://img.example/diagram.png")
    result = Materializer(ResolutionPolicy.AUTO, lookup=lookup).materialize(
        [{"type": "placeholder", "description": "bode plot", "page": 4}]
    )
    assert lookup.queries == ["bode plot"]
    assert result.blocks[0].type is BlockType.IMAGE
    assert result.blocks[0].content == ImageContent(url="https://img.example/diagram.png")


def test_auto_policy_survives_a_raising_lookup() -> None:
    result = Materializer("auto", lookup=ExplodingLookup()).materialize(
        [{"type": "placeholder", "content": "x-ray", "page": 2}]
    )
    assert result.blocks[0].type is BlockType.TEXT
    assert result.blocks[0].text() == placeholder_annotation("x-ray", 2)


def test_suppress_policy_never_looks_up() -> None:
    lookup = StubLookup("https://img.example/a.png")
    result = Materializer("none", lookup=lookup).materialize(
        [{"type": "placeholder", "content": "graph"}]
    )
    assert lookup.queries == []
    assert result.blocks[0].type is BlockType.TEXT


def test_manual_policy_keeps_pending_image_with_single_file() -> None:
    result = Materializer("manual", files=[LECTURE]).materialize(
        [
            {
                "type": "placeholder",
                "content": "free body diagram",
                "page": "7",
                "source_file": "something-else.pdf",
            }
        ]
    )
    block = result.blocks[0]
    assert block.type is BlockType.PENDING_IMAGE
    assert block.content == PendingImageContent(
        description="free body diagram", page_hint=7, file_url=LECTURE.url
    )
    # The hint matched nothing, so no provenance is claimed.
    assert block.provenance is None


def test_manual_policy_picks_file_by_hint() -> None:
    result = Materializer("manual", files=[LECTURE, NOTES]).materialize(
        [
            {"type": "pending-image", "content": "table", "source_file": "Notes"},
            {"type": "pending-image", "content": "chart"},
        ]
    )
    first, second = result.blocks
    assert isinstance(first.content, PendingImageContent)
    assert first.content.file_url == NOTES.url
    assert isinstance(second.content, PendingImageContent)
    assert second.content.file_url is None


def test_order_follows_output_position_and_skips_rejects() -> None:
    items: list[Any] = [
        {"type": "text", "content": "<p>intro</p>", "order": 9},
        "not an object",
        {"type": "latex", "content": "E=mc^2", "page": 3},
        {"type": "video", "content": "nope"},
        {"type": "image", "content": " https://img.example/x.png "},
        {"content": "no type"},
        {"type": "text", "content": 42},
    ]
    result = Materializer("suppress").materialize(items)
    assert [b.type for b in result.blocks] == [BlockType.TEXT, BlockType.FORMULA, BlockType.IMAGE]
    assert [b.order for b in result.blocks] == [0, 1, 2]
    assert all(b.is_pending for b in result.blocks)
    assert result.blocks[2].content == ImageContent(url="https://img.example/x.png")
    assert [r.index for r in result.rejected] == [1, 3, 5, 6]
    assert result.rejected[1].reason == "unknown block type 'video'"


def test_provenance_only_when_hint_matches() -> None:
    result = Materializer("suppress", files=[LECTURE, NOTES]).materialize(
        [
            {"type": "text", "content": "a", "page": 2, "source_file": "lecture3.pdf"},
            {"type": "text", "content": "b", "page": 2},
        ]
    )
    matched, unmatched = result.blocks
    assert matched.provenance is not None
    assert matched.provenance.source_file_id == "lecture3.pdf"
    assert matched.provenance.source_page == 2
    assert unmatched.provenance is None


@pytest.mark.parametrize(
    ("raw", "expected"),
    [(3, 3), (3.0, 3), (" 5 ", 5), (0, None), (-1, None), (True, None), ("p4", None)],
)
def test_page_hint_parsing(raw: Any, expected: int | None) -> None:
    parsed = parse_proposal({"type": "text", "content": "x", "page": raw}).unwrap()
    assert parsed.page_hint == expected


def test_match_source_file_strategies() -> None:
    files = [LECTURE, NOTES]
    assert match_source_file("notes.md", files) is NOTES
    assert match_source_file("tmp/lecture3.pdf", files) is LECTURE
    assert match_source_file("LECTURE3", files) is LECTURE
    assert match_source_file("other.pdf", files) is None
    assert match_source_file(None, files) is None


def test_placeholder_annotation_escapes_description() -> None:
    markup = placeholder_annotation("<b>x</b> & y", 3)
    assert "&lt;b&gt;x&lt;/b&gt; &amp; y" in markup
    assert markup.endswith("(Page 3)</p>")
    assert 'class="image-placeholder"' in markup


def test_policy_parse_rejects_unknown_names() -> None:
    assert ResolutionPolicy.parse("Google") is ResolutionPolicy.AUTO
    with pytest.raises(ValueError):
        ResolutionPolicy.parse("sometimes")
