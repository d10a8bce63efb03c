import json

import httpx
import pytest

from speechcoach.backend.config import AnalysisSettings
from speechcoach.backend.llm_client import (
    OfflineTextGenerator,
    OpenAITextGenerator,
    build_text_generator,
)
from speechcoach.backend.llm_http import HttpxTextGenerator


BASE_URL = "https://llm.test/v1"
REPLY = '{"title": "Growth Story"}'


def _completion(content):
    return {
        "id": "chatcmpl-1",
        "object": "chat.completion",
        "created": 0,
        "model": "model-t",
        "choices": [
            {"index": 0, "finish_reason": "stop", "message": {"role": "assistant", "content": content}}
        ],
    }


class RecordingHandler:
    """Replays canned responses in order and keeps every request body."""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.bodies = []
        self.urls = []

    def __call__(self, request):
        self.bodies.append(json.loads(request.content))
        self.urls.append(str(request.url))
        return self.responses.pop(0)


@pytest.fixture(autouse=True)
def llm_env(monkeypatch):
    monkeypatch.setenv("LLM_API_KEY", "test-key")
    monkeypatch.setenv("LLM_BASE_URL", BASE_URL)


def test_httpx_generator_returns_assistant_content():
    handler = RecordingHandler(httpx.Response(200, json=_completion(REPLY)))
    generator = HttpxTextGenerator(transport=httpx.MockTransport(handler))

    assert generator.generate("name it", model="model-t", timeout_seconds=2.0) == REPLY
    assert handler.urls == [BASE_URL + "/chat/completions"]
    assert handler.bodies[0]["model"] == "model-t"
    assert handler.bodies[0]["messages"] == [{"role": "user", "content": "name it"}]
    assert handler.bodies[0]["response_format"] == {"type": "json_object"}


def test_httpx_generator_retries_without_response_format():
    handler = RecordingHandler(
        httpx.Response(400, json={"error": {"message": "response_format json_object is not supported"}}),
        httpx.Response(200, json=_completion(REPLY)),
    )
    generator = HttpxTextGenerator(transport=httpx.MockTransport(handler))

    assert generator.generate("name it", model="model-t", timeout_seconds=2.0) == REPLY
    assert "response_format" in handler.bodies[0]
    assert "response_format" not in handler.bodies[1]


def test_httpx_generator_maps_provider_errors():
    handler = RecordingHandler(httpx.Response(500, json={"error": {"message": "upstream overloaded"}}))
    generator = HttpxTextGenerator(transport=httpx.MockTransport(handler))

    with pytest.raises(RuntimeError, match="LLM provider error 500: upstream overloaded"):
        generator.generate("name it", model="model-t", timeout_seconds=2.0)
    assert len(handler.bodies) == 1


def test_httpx_generator_rejects_empty_choices():
    handler = RecordingHandler(httpx.Response(200, json={"choices": []}))
    generator = HttpxTextGenerator(transport=httpx.MockTransport(handler))

    with pytest.raises(RuntimeError, match="did not contain choices"):
        generator.generate("name it", model="model-t", timeout_seconds=2.0)


def test_httpx_generator_maps_transport_timeouts():
    def handler(request):
        raise httpx.ReadTimeout("too slow", request=request)

    generator = HttpxTextGenerator(transport=httpx.MockTransport(handler))

    with pytest.raises(RuntimeError, match="timed out after 2 seconds"):
        generator.generate("name it", model="model-t", timeout_seconds=2.0)


def test_httpx_generator_requires_api_key(monkeypatch):
    monkeypatch.delenv("LLM_API_KEY")
    generator = HttpxTextGenerator(transport=httpx.MockTransport(RecordingHandler()))

    with pytest.raises(RuntimeError, match="LLM_API_KEY"):
        generator.generate("name it", model="model-t", timeout_seconds=2.0)


def test_openai_generator_retries_without_response_format():
    handler = RecordingHandler(
        httpx.Response(400, json={"error": {"message": "response_format is not supported by this model"}}),
        httpx.Response(200, json=_completion(REPLY)),
    )
    generator = OpenAITextGenerator(http_client=httpx.Client(transport=httpx.MockTransport(handler)))

    assert generator.generate("name it", model="model-t", timeout_seconds=2.0) == REPLY
    assert "response_format" in handler.bodies[0]
    assert "response_format" not in handler.bodies[1]


def test_openai_generator_maps_status_errors():
    handler = RecordingHandler(httpx.Response(401, json={"error": {"message": "bad key"}}))
    generator = OpenAITextGenerator(http_client=httpx.Client(transport=httpx.MockTransport(handler)))

    with pytest.raises(RuntimeError, match=r"LLM request failed \(401\)"):
        generator.generate("name it", model="model-t", timeout_seconds=2.0)
    assert len(handler.bodies) == 1


def test_offline_generator_always_fails():
    with pytest.raises(RuntimeError):
        OfflineTextGenerator().generate("anything", model="m", timeout_seconds=1.0)


@pytest.mark.parametrize(
    ("provider", "expected"),
    [("offline", OfflineTextGenerator), ("openai", OpenAITextGenerator), ("httpx", HttpxTextGenerator)],
)
def test_build_text_generator_picks_provider(provider, expected):
    assert isinstance(build_text_generator(AnalysisSettings(llm_provider=provider)), expected)
