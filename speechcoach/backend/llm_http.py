import json
import os
from typing import Any, Dict, List, Optional

import httpx

from .config import DEFAULT_BASE_URL
from .constants import MAX_ERROR_CHARS


JSON_RESPONSE_FORMAT = {"type": "json_object"}


def _truncate(text: str, max_chars: int = MAX_ERROR_CHARS) -> str:
    value = (text or "").strip()
    if len(value) <= max_chars:
        return value
    return value[: max_chars - 3] + "..."


def get_api_key() -> str:
    api_key = os.getenv("LLM_API_KEY", "").strip()
    if not api_key:
        raise RuntimeError(
            'Missing LLM_API_KEY. Set it to enable model enrichment (example: export LLM_API_KEY="YOUR_KEY_HERE").'
        )
    return api_key


def get_base_url() -> str:
    return os.getenv("LLM_BASE_URL", DEFAULT_BASE_URL).strip() or DEFAULT_BASE_URL


def _auth_headers() -> Dict[str, str]:
    api_key = get_api_key()
    mode = os.getenv("LLM_AUTH_MODE", "authorization").strip().lower()
    headers = {"Content-Type": "application/json"}
    if mode == "x-api-key":
        headers["x-api-key"] = api_key
    else:
        headers["Authorization"] = f"Bearer {api_key}"
    return headers


def extract_content(value: Any) -> str:
    if isinstance(value, str):
        return value
    if isinstance(value, list):
        parts: List[str] = []
        for item in value:
            if isinstance(item, dict):
                text = item.get("text")
                if text:
                    parts.append(str(text))
        return "\n".join(parts).strip()
    return str(value or "").strip()


def _is_response_format_unsupported(error_message: str) -> bool:
    lowered = (error_message or "").lower()
    return "response_format" in lowered or "json_object" in lowered


def _error_detail(response: httpx.Response) -> str:
    try:
        error_payload = response.json()
    except ValueError:
        return response.text or ""
    if isinstance(error_payload, dict):
        error = error_payload.get("error")
        if isinstance(error, dict):
            return str(error.get("message") or "")
    return ""


def _first_choice_content(body: Any) -> str:
    choices = body.get("choices") if isinstance(body, dict) else None
    if not choices or not isinstance(choices, list):
        raise RuntimeError("LLM response did not contain choices.")
    message = choices[0].get("message") if isinstance(choices[0], dict) else None
    content = extract_content(message.get("content") if isinstance(message, dict) else "")
    if not content:
        raise RuntimeError("LLM returned empty assistant content.")
    return content


def request_chat_completion(client: httpx.Client, *, model: str, prompt: str, timeout_seconds: float) -> str:
    """POST one user prompt; drops ``response_format`` once if the gateway rejects it."""
    payload: Dict[str, Any] = {
        "model": model,
        "messages": [{"role": "user", "content": prompt}],
        "response_format": JSON_RESPONSE_FORMAT,
    }
    endpoint = get_base_url().rstrip("/") + "/chat/completions"
    headers = _auth_headers()

    def _send(json_payload: Dict[str, Any]) -> httpx.Response:
        try:
            return client.post(endpoint, headers=headers, json=json_payload, timeout=timeout_seconds)
        except httpx.TimeoutException as exc:
            raise RuntimeError(f"LLM request timed out after {timeout_seconds:g} seconds.") from exc
        except httpx.HTTPError as exc:
            raise RuntimeError(f"Failed to call LLM provider: {exc}") from exc

    response = _send(payload)
    if response.status_code == 400 and _is_response_format_unsupported(_error_detail(response)):
        payload.pop("response_format")
        response = _send(payload)

    if response.status_code >= 400:
        detail = _truncate(_error_detail(response) or "Unknown provider error")
        raise RuntimeError(f"LLM provider error {response.status_code}: {detail}")

    try:
        body = response.json()
    except json.JSONDecodeError as exc:
        raise RuntimeError("LLM provider returned a non-JSON HTTP response.") from exc
    return _first_choice_content(body)


class HttpxTextGenerator:
    """Chat-completions over plain HTTP; works with any OpenAI-compatible gateway."""

    name = "httpx"

    def __init__(self, transport: Optional[httpx.BaseTransport] = None) -> None:
        self._transport = transport

    def generate(self, prompt: str, *, model: str, timeout_seconds: float) -> str:
        with httpx.Client(transport=self._transport) as client:
            return request_chat_completion(client, model=model, prompt=prompt, timeout_seconds=timeout_seconds)
