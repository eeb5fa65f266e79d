"""Google image lookup with the HTTP seam patched out."""

from __future__ import annotations

from typing import Any
from urllib.parse import parse_qs, urlparse

import pytest

from studyblocks.agents.image_search import CSE_ENDPOINT, GoogleImageSearch


def test_build_url_carries_image_search_params() -> None:
    search = GoogleImageSearch(api_key="k", cse_id="cx")
    url = search.build_url("mitochondria cross section")
    assert url.startswith(CSE_ENDPOINT)
    params = parse_qs(urlparse(url).query)
    assert params["q"] == ["mitochondria cross section"]
    assert params["searchType"] == ["image"]
    assert params["num"] == ["1"]
    assert params["key"] == ["k"]
    assert params["cx"] == ["cx"]


def test_search_returns_first_link(monkeypatch: Any) -> None:
    seen: list[str] = []

    def fake_get(self: GoogleImageSearch, url: str) -> dict[str, Any]:
        seen.append(url)
        return {"items": [{"link": "https://img/1.jpg"}, {"link": "https://img/2.jpg"}]}

    monkeypatch.setattr(GoogleImageSearch, "_get", fake_get)
    assert GoogleImageSearch(api_key="k", cse_id="cx").search("cell") == "https://img/1.jpg"
    assert len(seen) == 1


@pytest.mark.parametrize("payload", [{}, {"items": []}, {"items": [{"title": "no link"}]}])
def test_search_without_results_is_none(monkeypatch: Any, payload: dict[str, Any]) -> None:
    monkeypatch.setattr(GoogleImageSearch, "_get", lambda self, url: payload)
    assert GoogleImageSearch(api_key="k", cse_id="cx").search("cell") is None


def test_search_errors_become_none(monkeypatch: Any) -> None:
    def boom(self: GoogleImageSearch, url: str) -> dict[str, Any]:
        raise RuntimeError("search HTTP error 403: Forbidden")

    monkeypatch.setattr(GoogleImageSearch, "_get", boom)
    assert GoogleImageSearch(api_key="k", cse_id="cx").search("cell") is None


def test_unconfigured_search_never_calls_out(monkeypatch: Any) -> None:
    def fail(self: GoogleImageSearch, url: str) -> dict[str, Any]:
        raise AssertionError("network must not be touched")

    monkeypatch.setattr(GoogleImageSearch, "_get", fail)
    search = GoogleImageSearch(api_key="", cse_id="")
    assert not search.configured
    assert search.search("cell") is None
    assert GoogleImageSearch(api_key="k", cse_id="cx").search("   ") is None
