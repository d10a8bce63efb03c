from __future__ import annotations

import threading

import pytest

from speechcoach.backend.config import AnalysisSettings
from speechcoach.backend.models import Token


def build_tokens(rows, conversation_id="c1"):
    return [
        Token(
            id=f"t{index}",
            conversation_id=conversation_id,
            start_ms=start_ms,
            end_ms=end_ms,
            text=text,
        )
        for index, (text, start_ms, end_ms) in enumerate(rows)
    ]


def continuous_rows(count, start_ms=0, word_ms=500, gap_ms=100, text="word"):
    step = word_ms + gap_ms
    return [(text, start_ms + step * i, start_ms + step * i + word_ms) for i in range(count)]


class ScriptedGenerator:
    """Answers each enrichment prompt with a canned payload, by prompt kind."""

    name = "scripted"

    def __init__(self, issues=None, title=None, highlights=None):
        self.replies = {"issues": issues, "title": title, "highlights": highlights}
        self.calls = []
        self._lock = threading.Lock()

    @staticmethod
    def kind_of(prompt: str) -> str:
        if prompt.startswith("Title this speech"):
            return "title"
        if "coaching feedback" in prompt:
            return "highlights"
        return "issues"

    def generate(self, prompt, *, model, timeout_seconds):
        kind = self.kind_of(prompt)
        with self._lock:
            self.calls.append((kind, model, timeout_seconds))
        reply = self.replies[kind]
        if isinstance(reply, Exception):
            raise reply
        if reply is None:
            raise RuntimeError(f"no reply scripted for {kind}")
        return reply


class FailingGenerator:
    name = "failing"

    def generate(self, prompt, *, model, timeout_seconds):
        raise RuntimeError("provider unavailable")


class BlockingGenerator:
    name = "blocking"

    def __init__(self):
        self.release = threading.Event()

    def generate(self, prompt, *, model, timeout_seconds):
        self.release.wait(5)
        return '{"title": "Too Late"}'


@pytest.fixture
def make_tokens():
    return build_tokens


@pytest.fixture
def fast_settings():
    return AnalysisSettings(llm_timeout_seconds=1.0, enrichment_timeout_seconds=2.0)


@pytest.fixture
def blocking_generator():
    generator = BlockingGenerator()
    yield generator
    generator.release.set()
