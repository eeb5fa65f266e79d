"""HTTP API over open document sessions."""

from __future__ import annotations

from collections.abc import Iterator
from typing import Any

import pytest
from fastapi.testclient import TestClient

from studyblocks import __version__
from studyblocks.api.app import create_app
from studyblocks.api.sessions import SessionRegistry


class StubLookup:
    def search(self, query: str) -> str | None:
        return f"https://img.example/{query.replace(' ', '-')}.png"


@pytest.fixture  # type: ignore[misc]
def client() -> Iterator[TestClient]:
    SessionRegistry.reset()
    with TestClient(create_app()) as c:
        yield c
    SessionRegistry.reset()


def _create(client: TestClient, content: str, **extra: Any) -> dict[str, Any]:
    resp = client.post("/documents/d1/blocks", json={"content": content, **extra})
    assert resp.status_code == 201, resp.text
    body: dict[str, Any] = resp.json()
    return body


def _texts(body: dict[str, Any]) -> list[Any]:
    return [b["content"] for b in body["blocks"]]


def test_health(client: TestClient) -> None:
    resp = client.get("/health")
    assert resp.status_code == 200
    data = resp.json()
    assert data["status"] == "ok"
    assert data["version"] == __version__


def test_create_returns_committed_blocks_and_focus(client: TestClient) -> None:
    _create(client, "<p>a</p>")
    body = _create(client, "<p>b</p>", focus_edge="end")
    assert _texts(body) == ["<p>a</p>", "<p>b</p>"]
    assert [b["order"] for b in body["blocks"]] == [0, 1]
    assert not any(b["pending"] for b in body["blocks"])
    assert body["focus"] == {"key": body["blocks"][1]["id"], "edge": "end"}

    front = _create(client, "<p>first</p>", after_index=-1)
    assert _texts(front)[0] == "<p>first</p>"

    listed = client.get("/documents/d1/blocks").json()
    assert _texts(listed) == ["<p>first</p>", "<p>a</p>", "<p>b</p>"]


def test_documents_are_independent(client: TestClient) -> None:
    _create(client, "<p>a</p>")
    other = client.get("/documents/d2/blocks").json()
    assert other["blocks"] == []


def test_update_and_retype(client: TestClient) -> None:
    key = _create(client, "<p>a</p>")["blocks"][0]["id"]

    updated = client.patch(f"/documents/d1/blocks/{key}", json={"content": "<p>edited</p>"})
    assert updated.status_code == 200
    assert _texts(updated.json()) == ["<p>edited</p>"]

    heading = client.post(
        f"/documents/d1/blocks/{key}/retype", json={"target": "heading", "level": 3}
    )
    assert _texts(heading.json()) == ["<h3>edited</h3>"]

    formula = client.post(f"/documents/d1/blocks/{key}/retype", json={"target": "formula"})
    block = formula.json()["blocks"][0]
    assert block["type"] == "formula"
    assert block["content"] == ""


def test_unknown_block_is_404(client: TestClient) -> None:
    resp = client.patch("/documents/d1/blocks/nope", json={"content": "x"})
    assert resp.status_code == 404
    assert resp.json()["error"] == "Not Found"


def test_bad_input_is_400(client: TestClient) -> None:
    _create(client, "<p>a</p>")
    assert client.post("/documents/d1/blocks", json={"type": "video"}).status_code == 400
    assert client.post(
        "/documents/d1/move", json={"source_index": 5, "destination_index": 0}
    ).status_code == 400


def test_delete_block(client: TestClient) -> None:
    _create(client, "<p>a</p>")
    body = _create(client, "<p>b</p>")
    key = body["blocks"][1]["id"]
    resp = client.delete(f"/documents/d1/blocks/{key}")
    assert resp.status_code == 200
    assert _texts(resp.json()) == ["<p>a</p>"]
    assert resp.json()["focus"]["edge"] == "end"


def test_single_and_group_move(client: TestClient) -> None:
    for text in "ABCDE":
        body = _create(client, text)
    keys = [b["id"] for b in body["blocks"]]

    single = client.post("/documents/d1/move", json={"source_index": 0, "destination_index": 3})
    assert _texts(single.json()) == ["B", "C", "D", "A", "E"]

    # Selection {B, D}; dragging B to index 1 of the list without B.
    group = client.post(
        "/documents/d1/move",
        json={"source_index": 0, "destination_index": 1, "selected": [keys[1], keys[3]]},
    )
    assert _texts(group.json()) == ["C", "B", "D", "A", "E"]
    assert [b["order"] for b in group.json()["blocks"]] == [0, 1, 2, 3, 4]


def test_merge_and_split(client: TestClient) -> None:
    _create(client, "foo")
    _create(client, "bar")

    merged = client.post("/documents/d1/merge", json={"index": 1})
    assert _texts(merged.json()) == ["foobar"]

    split = client.post("/documents/d1/split", json={"index": 0})
    body = split.json()
    assert _texts(body) == ["foobar", ""]
    assert body["focus"] == {"key": body["blocks"][1]["id"], "edge": "start"}


def test_materialize_manual_policy(client: TestClient) -> None:
    _create(client, "<p>my notes</p>")
    payload = {
        "policy": "manual",
        "files": [{"id": "f1", "name": "lecture.pdf", "url": "https://files.example/lecture.pdf"}],
        "items": [
            {"type": "text", "content": "<h1>Summary</h1>"},
            {
                "type": "image_request",
                "content": "phasor diagram",
                "page": 5,
                "source_file": "lecture.pdf",
            },
            {"type": "nonsense"},
        ],
    }
    resp = client.post("/documents/d1/materialize", json=payload)
    assert resp.status_code == 200, resp.text
    data = resp.json()

    blocks = data["document"]["blocks"]
    assert [b["type"] for b in blocks] == ["text", "text", "pending-image"]
    assert [b["order"] for b in blocks] == [0, 1, 2]
    assert blocks[2]["content"] == {
        "description": "phasor diagram",
        "pageHint": 5,
        "candidateFileUrl": "https://files.example/lecture.pdf",
    }
    assert blocks[2]["provenance"] == {"source_page": 5, "source_file_id": "f1"}
    assert [r["index"] for r in data["rejected"]] == [2]


def test_materialize_auto_policy_uses_registry_lookup(client: TestClient) -> None:
    SessionRegistry.get_instance().lookup = StubLookup()
    resp = client.post(
        "/documents/d1/materialize",
        json={"policy": "auto", "items": [{"type": "image_request", "content": "bode plot"}]},
    )
    block = resp.json()["document"]["blocks"][0]
    assert block["type"] == "image"
    assert block["content"]["url"] == "https://img.example/bode-plot.png"
