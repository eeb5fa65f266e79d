# -----------------------------------------------------------------------------
# Small, synchronous LLM client.
#
#   - reads provider API keys / base URLs from environment variables
#   - resolves logical aliases through the model registry
#   - exposes a single ``generate()`` returning one text completion
#
# Only ``urllib.request`` is used for HTTP. Tests replace ``_post()`` so no
# real request is made.
#
# Two protocol families are spoken:
#
# 1. OpenAI-compatible chat completions (``POST {base}/chat/completions``),
#    used by every provider other than Google.
# 2. Google Gemini ``POST {base}/models/{model}:generateContent``. System
#    messages become ``systemInstruction``; assistant turns use role "model".
# -----------------------------------------------------------------------------
from __future__ import annotations

import json
import os
import urllib.error
import urllib.request
from collections.abc import Mapping, MutableMapping, Sequence
from dataclasses import dataclass
from typing import Any

from .models import DEFAULT_ALIAS, ModelConfig, get_model

_API_KEY_ENV: dict[str, str] = {
    "openai": "OPENAI_API_KEY",
    "deepseek": "DEEPSEEK_API_KEY",
    "moonshot": "MOONSHOT_API_KEY",
    "xai": "XAI_API_KEY",
}
_BASE_URL_ENV: dict[str, str] = {
    "openai": "OPENAI_BASE_URL",
    "deepseek": "DEEPSEEK_BASE_URL",
    "moonshot": "MOONSHOT_API_BASE_URL",
    "xai": "XAI_BASE_URL",
}


@dataclass(slots=True)
class LLMClient:
    """Multi-provider LLM client with a simple ``generate()`` API.

    Parameters
    ----------
    api_key:
        Default key for OpenAI. Other providers read their own environment
        variable when a request is made.
    base_url:
        Default base URL for OpenAI-compatible endpoints.
    default_model_alias:
        Registry alias used when :meth:`generate` gets no ``model``.
    timeout_seconds:
        Network timeout for each HTTP request.
    """

    api_key: str
    base_url: str
    default_model_alias: str = DEFAULT_ALIAS
    timeout_seconds: float = 120.0

    @classmethod
    def from_env(cls, default_model_alias: str = DEFAULT_ALIAS) -> LLMClient:
        """Build a client from ``OPENAI_API_KEY`` / ``OPENAI_BASE_URL``.

        ``GOOGLE_API_KEY`` (and ``GOOGLE_API_BASE_URL``) as well as the other
        providers' variables are read lazily inside :meth:`generate`.
        """
        return cls(
            api_key=os.getenv("OPENAI_API_KEY", ""),
            base_url=os.getenv("OPENAI_BASE_URL", "https://api.openai.com/v1"),
            default_model_alias=default_model_alias,
        )

    def generate(
        self,
        messages: Sequence[Mapping[str, str]],
        *,
        model: str | None = None,
        temperature: float | None = None,
        max_tokens: int | None = None,
        json_mode: bool = False,
    ) -> str:
        """Generate a single text completion from chat ``messages``.

        Parameters
        ----------
        messages:
            Chat-style ``{"role": ..., "content": ...}`` mappings.
        model:
            Registry alias or concrete model ID; defaults to
            :attr:`default_model_alias`.
        temperature, max_tokens:
            Per-request overrides of the model defaults.
        json_mode:
            Ask the provider for a JSON-only reply.

        Raises
        ------
        RuntimeError
            On a missing API key, an HTTP/network failure, or a response
            without text content.
        """
        config = get_model(model or self.default_model_alias)
        effective_temperature = float(
            temperature if temperature is not None else config.temperature
        )
        effective_max_tokens = int(max_tokens if max_tokens is not None else config.max_tokens)

        if config.provider.lower().strip() == "google":
            response = self._generate_gemini(
                config=config,
                messages=messages,
                temperature=effective_temperature,
                max_tokens=effective_max_tokens,
                json_mode=json_mode,
            )
            return self._extract_content_gemini(response)

        response = self._generate_openai_compatible(
            config=config,
            messages=messages,
            temperature=effective_temperature,
            max_tokens=effective_max_tokens,
            json_mode=json_mode,
        )
        return self._extract_content_openai(response)

    def _generate_openai_compatible(
        self,
        *,
        config: ModelConfig,
        messages: Sequence[Mapping[str, str]],
        temperature: float,
        max_tokens: int,
        json_mode: bool,
    ) -> dict[str, Any]:
        provider = config.provider.lower().strip()
        api_key_env = _API_KEY_ENV.get(provider, "OPENAI_API_KEY")
        api_key = os.getenv(api_key_env, "")
        if not api_key and provider == "openai":
            api_key = self.api_key
        if not api_key:
            raise RuntimeError(
                f"Missing API key for provider '{provider}'. "
                f"Expected environment variable '{api_key_env}' to be set."
            )

        base_url = (
            os.getenv(_BASE_URL_ENV.get(provider, "OPENAI_BASE_URL"))
            or config.base_url
            or self.base_url
        ).rstrip("/")

        payload: MutableMapping[str, Any] = {
            "model": config.name,
            "messages": [{"role": m["role"], "content": m["content"]} for m in messages],
            "temperature": temperature,
            "max_tokens": max_tokens,
        }
        if json_mode:
            payload["response_format"] = {"type": "json_object"}

        headers = {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {api_key}",
        }
        return self._post(url=base_url + "/chat/completions", headers=headers, payload=payload)

    def _generate_gemini(
        self,
        *,
        config: ModelConfig,
        messages: Sequence[Mapping[str, str]],
        temperature: float,
        max_tokens: int,
        json_mode: bool,
    ) -> dict[str, Any]:
        api_key = os.getenv("GOOGLE_API_KEY", "")
        if not api_key:
            raise RuntimeError("Missing GOOGLE_API_KEY; cannot call Google Gemini models.")

        base_url = (
            os.getenv("GOOGLE_API_BASE_URL")
            or config.base_url
            or "https://generativelanguage.googleapis.com/v1beta"
        ).rstrip("/")

        system = [m["content"] for m in messages if m["role"] == "system"]
        contents = [
            {
                "role": "model" if m["role"] == "assistant" else "user",
                "parts": [{"text": m["content"]}],
            }
            for m in messages
            if m["role"] != "system"
        ]
        generation_config: dict[str, Any] = {
            "temperature": temperature,
            "maxOutputTokens": max_tokens,
        }
        if json_mode:
            generation_config["responseMimeType"] = "application/json"

        payload: MutableMapping[str, Any] = {
            "contents": contents,
            "generationConfig": generation_config,
        }
        if system:
            payload["systemInstruction"] = {"parts": [{"text": "\n\n".join(system)}]}

        headers = {
            "Content-Type": "application/json",
            "x-goog-api-key": api_key,
        }
        return self._post(
            url=f"{base_url}/models/{config.name}:generateContent",
            headers=headers,
            payload=payload,
        )

    def _post(
        self,
        *,
        url: str,
        headers: Mapping[str, str],
        payload: Mapping[str, Any],
    ) -> dict[str, Any]:
        """POST ``payload`` as JSON and decode the JSON reply.

        This is the test seam: tests patch it to return a canned response.

        Raises
        ------
        RuntimeError
            If the request fails or the body is not JSON.
        """
        request = urllib.request.Request(
            url=url,
            data=json.dumps(payload).encode("utf-8"),
            headers=dict(headers),
            method="POST",
        )
        try:
            with urllib.request.urlopen(request, timeout=self.timeout_seconds) as resp:
                raw = resp.read()
        except urllib.error.HTTPError as exc:
            detail = exc.read().decode("utf-8", errors="ignore")
            raise RuntimeError(f"LLM HTTP error {exc.code}: {exc.reason}; body={detail!r}") from exc
        except urllib.error.URLError as exc:
            raise RuntimeError(f"LLM network error: {exc}") from exc

        try:
            decoded: dict[str, Any] = json.loads(raw.decode("utf-8"))
        except json.JSONDecodeError as exc:
            raise RuntimeError("Failed to decode LLM response as JSON") from exc
        return decoded

    @staticmethod
    def _extract_content_openai(response: Mapping[str, Any]) -> str:
        """Return ``choices[0].message.content``."""
        choices = response.get("choices")
        if not isinstance(choices, list) or not choices:
            raise RuntimeError("LLM response has no choices; cannot extract content.")
        message = choices[0].get("message")
        if not isinstance(message, Mapping):
            raise RuntimeError("LLM response choice[0].message is missing or invalid.")
        content = message.get("content")
        if not isinstance(content, str) or not content:
            raise RuntimeError("LLM response choice[0].message.content is empty.")
        return content

    @staticmethod
    def _extract_content_gemini(response: Mapping[str, Any]) -> str:
        """Concatenate the text parts of ``candidates[0].content``."""
        candidates = response.get("candidates")
        if not isinstance(candidates, list) or not candidates:
            raise RuntimeError("Gemini response has no candidates; cannot extract content.")
        content = candidates[0].get("content")
        if not isinstance(content, Mapping):
            raise RuntimeError("Gemini response candidates[0].content is missing or invalid.")
        parts = content.get("parts")
        if not isinstance(parts, list) or not parts:
            raise RuntimeError("Gemini response candidates[0].content.parts is empty.")
        texts = [
            part["text"]
            for part in parts
            if isinstance(part, Mapping) and isinstance(part.get("text"), str)
        ]
        if not texts:
            raise RuntimeError(
                "Gemini response parts contain no text fields; cannot extract content."
            )
        return "".join(texts)


__all__ = ["LLMClient"]
