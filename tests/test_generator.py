"""Generation collaborator: prompt assembly and reply parsing."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Any

import pytest

from studyblocks.agents.generator import (
    DEFAULT_TITLE,
    GenerationError,
    LLMSummaryGenerator,
    build_messages,
    parse_generation,
)
from studyblocks.agents.source_files import SourceDocument, SourceFile
from studyblocks.llm.client import LLMClient


class FakeLLM(LLMClient):
    """LLMClient returning a canned reply and recording the request."""

    def __init__(self, reply: str | Exception) -> None:
        super().__init__(api_key="", base_url="https://unused.example")
        self.reply = reply
        self.calls: list[dict[str, Any]] = []

    def generate(  # type: ignore[override]
        self,
        messages: Sequence[Mapping[str, str]],
        *,
        model: str | None = None,
        temperature: float | None = None,
        max_tokens: int | None = None,
        json_mode: bool = False,
    ) -> str:
        self.calls.append({"messages": list(messages), "model": model, "json_mode": json_mode})
        if isinstance(self.reply, Exception):
            raise self.reply
        return self.reply


def _doc(name: str, text: str) -> SourceDocument:
    return SourceDocument(
        file=SourceFile(id=name, name=name, url=f"https://files.example/{name}"), text=text
    )


def test_build_messages_skips_empty_sources() -> None:
    messages = build_messages([_doc("a.pdf", "[Page 1]\nOhm's law"), _doc("b.md", "   ")])
    assert [m["role"] for m in messages] == ["system", "user"]
    user = messages[1]["content"]
    assert user.startswith("File: a.pdf (URL: https://files.example/a.pdf)\nContent:\n")
    assert "b.md" not in user


def test_parse_generation_accepts_fenced_object() -> None:
    raw = '```json\n{"title": " Circuits ", "blocks": [{"type": "text", "content": "x"}]}\n```'
    out = parse_generation(raw)
    assert out.title == "Circuits"
    assert out.items == [{"type": "text", "content": "x"}]


def test_parse_generation_accepts_bare_list_and_missing_title() -> None:
    assert parse_generation('[{"type": "latex", "content": "V=IR"}]').title == DEFAULT_TITLE
    assert parse_generation('{"blocks": []}', default_title="Notes").title == "Notes"


@pytest.mark.parametrize("raw", ["not json", '"just a string"', '{"blocks": {"a": 1}}'])
def test_parse_generation_rejects_unusable_replies(raw: str) -> None:
    with pytest.raises(GenerationError):
        parse_generation(raw)


def test_llm_generator_requests_json_with_configured_model() -> None:
    llm = FakeLLM('{"title": "T", "blocks": [{"type": "text", "content": "<p>a</p>"}]}')
    out = LLMSummaryGenerator(llm, model="fast").generate([_doc("a.txt", "hello")])
    assert out.title == "T"
    assert len(out.items) == 1
    assert llm.calls[0]["model"] == "fast"
    assert llm.calls[0]["json_mode"] is True


def test_llm_generator_wraps_client_errors() -> None:
    generator = LLMSummaryGenerator(FakeLLM(RuntimeError("HTTP 500")), model="fast")
    with pytest.raises(GenerationError, match="HTTP 500"):
        generator.generate([_doc("a.txt", "hello")])


def test_llm_generator_refuses_empty_input() -> None:
    llm = FakeLLM("{}")
    with pytest.raises(GenerationError):
        LLMSummaryGenerator(llm, model="fast").generate([_doc("a.txt", "")])
    assert llm.calls == []
