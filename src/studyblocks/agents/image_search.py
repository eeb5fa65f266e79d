"""
External image lookup used by the materializer's auto-resolve policy.

:class:`GoogleImageSearch` asks the Google Custom Search JSON API for the
single best large photo matching a description. Every failure mode (missing
credentials, HTTP or network errors, an empty result) ends in ``None``: the
caller then falls back to a visible placeholder annotation.
"""

from __future__ import annotations

import json
import urllib.error
import urllib.parse
import urllib.request
from collections.abc import Mapping
from typing import Any, Protocol

from studyblocks.core.settings import get_logger, load_settings

logger = get_logger(__name__)

CSE_ENDPOINT = "https://www.googleapis.com/customsearch/v1"


class ImageLookup(Protocol):
    """Anything that can turn a description into an image URL."""

    def search(self, query: str) -> str | None: ...


class GoogleImageSearch:
    """Image lookup over the Google Custom Search JSON API.

    Parameters
    ----------
    api_key, cse_id:
        Credentials; default to ``GOOGLE_API_KEY`` / ``GOOGLE_CSE_ID`` from
        settings.
    timeout_seconds:
        Network timeout for each request.
    """

    def __init__(
        self,
        api_key: str | None = None,
        cse_id: str | None = None,
        *,
        timeout_seconds: float = 10.0,
    ) -> None:
        cfg = load_settings()
        self.api_key = api_key if api_key is not None else cfg.google_api_key
        self.cse_id = cse_id if cse_id is not None else cfg.google_cse_id
        self.timeout_seconds = timeout_seconds

    @property
    def configured(self) -> bool:
        return bool(self.api_key and self.cse_id)

    def build_url(self, query: str) -> str:
        params = {
            "key": self.api_key or "",
            "cx": self.cse_id or "",
            "q": query,
            "searchType": "image",
            "num": "1",
            "imgSize": "large",
            "imgType": "photo",
        }
        return f"{CSE_ENDPOINT}?{urllib.parse.urlencode(params)}"

    def search(self, query: str) -> str | None:
        """Return the link of the first image result for ``query``, or ``None``."""
        if not self.configured:
            logger.warning("GOOGLE_API_KEY or GOOGLE_CSE_ID not set; skipping image search")
            return None
        if not query.strip():
            return None

        try:
            payload = self._get(self.build_url(query))
        except RuntimeError as exc:
            logger.warning("image search for %r failed: %s", query, exc)
            return None

        link = self._first_link(payload)
        if link is None:
            logger.info("image search for %r returned no results", query)
        return link

    def _get(self, url: str) -> dict[str, Any]:
        """GET ``url`` and decode the JSON reply (test seam).

        Raises
        ------
        RuntimeError
            On HTTP/network errors or a non-JSON body.
        """
        request = urllib.request.Request(url=url, method="GET")
        try:
            with urllib.request.urlopen(request, timeout=self.timeout_seconds) as resp:
                raw = resp.read()
        except urllib.error.HTTPError as exc:
            raise RuntimeError(f"search HTTP error {exc.code}: {exc.reason}") from exc
        except urllib.error.URLError as exc:
            raise RuntimeError(f"search network error: {exc}") from exc

        try:
            decoded: dict[str, Any] = json.loads(raw.decode("utf-8"))
        except json.JSONDecodeError as exc:
            raise RuntimeError("Failed to decode search response as JSON") from exc
        return decoded

    @staticmethod
    def _first_link(payload: Mapping[str, Any]) -> str | None:
        items = payload.get("items")
        if not isinstance(items, list) or not items:
            return None
        first = items[0]
        if not isinstance(first, Mapping):
            return None
        link = first.get("link")
        return link if isinstance(link, str) and link else None


__all__ = ["CSE_ENDPOINT", "GoogleImageSearch", "ImageLookup"]
