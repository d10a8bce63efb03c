from __future__ import annotations

from typing import Optional, Protocol

import httpx
from openai import APIConnectionError, APIStatusError, APITimeoutError, OpenAI

from .config import AnalysisSettings
from .llm_http import JSON_RESPONSE_FORMAT, HttpxTextGenerator, extract_content, get_api_key, get_base_url


class TextGenerator(Protocol):
    name: str

    def generate(self, prompt: str, *, model: str, timeout_seconds: float) -> str:
        """Return the raw model text for ``prompt``; raise on any failure."""


def _status_message(exc: APIStatusError) -> str:
    return (getattr(exc, "message", "") or str(exc)).lower()


def _unsupported_response_format(exc: APIStatusError) -> bool:
    message = _status_message(exc)
    return "response_format" in message or "json_object" in message


class OpenAITextGenerator:
    """Chat-completions through the official SDK."""

    name = "openai"

    def __init__(self, http_client: Optional[httpx.Client] = None) -> None:
        self._http_client = http_client

    def _build_client(self, timeout_seconds: float) -> OpenAI:
        return OpenAI(
            base_url=get_base_url(),
            api_key=get_api_key(),
            timeout=timeout_seconds,
            max_retries=0,
            http_client=self._http_client,
        )

    def generate(self, prompt: str, *, model: str, timeout_seconds: float) -> str:
        client = self._build_client(timeout_seconds)
        kwargs = {
            "model": model,
            "messages": [{"role": "user", "content": prompt}],
            "response_format": JSON_RESPONSE_FORMAT,
        }

        while True:
            try:
                response = client.chat.completions.create(**kwargs)
                break
            except APIStatusError as exc:
                if "response_format" in kwargs and _unsupported_response_format(exc):
                    kwargs.pop("response_format")
                    continue
                detail = getattr(exc, "message", None) or str(exc)
                raise RuntimeError(f"LLM request failed ({exc.status_code}): {detail}") from exc
            except APITimeoutError as exc:
                raise RuntimeError("LLM request timed out.") from exc
            except APIConnectionError as exc:
                raise RuntimeError(f"Failed to connect to LLM provider: {exc}") from exc

        choice = response.choices[0] if response.choices else None
        if choice is None:
            raise RuntimeError("LLM response did not contain choices.")
        content = extract_content(choice.message.content)
        if not content:
            raise RuntimeError("LLM response content is empty.")
        return content


class OfflineTextGenerator:
    """Never reaches a model; every derivation takes its local fallback."""

    name = "offline"

    def generate(self, prompt: str, *, model: str, timeout_seconds: float) -> str:
        raise RuntimeError("LLM provider is offline.")


def build_text_generator(settings: AnalysisSettings) -> TextGenerator:
    if settings.llm_provider == "offline":
        return OfflineTextGenerator()
    if settings.llm_provider == "openai":
        return OpenAITextGenerator()
    return HttpxTextGenerator()
