import re

import pytest

from speechcoach.backend.analysis_job import ingest_words, process_analysis_job
from speechcoach.backend.llm_client import OfflineTextGenerator
from speechcoach.backend.models import IngestWord
from speechcoach.backend.pipeline import EmptyTranscriptError, TranscriptInputError
from speechcoach.backend.result_store import InMemoryResultStore, ResultStoreError
from speechcoach.backend.storage import InMemoryConversationStore


WORDS = [
    IngestWord(word=" so ", start=0.0, end=0.2),
    IngestWord(word="today", start=0.3, end=0.7),
    IngestWord(word="we", start=3.0, end=3.2),
    IngestWord(word="launch", start=3.2, end=3.6),
]


class BrokenResultStore(InMemoryResultStore):
    def save(self, conversation_id, result):
        raise ResultStoreError("bucket unavailable")


class StatusFailingStore(InMemoryConversationStore):
    def set_status(self, conversation_id, status):
        raise RuntimeError("status table locked")


def _run(conversation_store, result_store, settings, conversation_id=None):
    return process_analysis_job(
        conversation_store,
        result_store,
        conversation_id,
        generator=OfflineTextGenerator(),
        settings=settings,
    )


def test_ingest_converts_seconds_with_offset():
    store = InMemoryConversationStore()

    first = ingest_words(store, "c1", WORDS[:2])
    second = ingest_words(store, "c1", WORDS[2:], offset_seconds=10.0)

    assert [(t.text, t.start_ms, t.end_ms) for t in first.new_tokens] == [("so", 0, 200), ("today", 300, 700)]
    assert [(t.start_ms, t.end_ms) for t in second.new_tokens] == [(13_000, 13_200), (13_200, 13_600)]
    assert second.full_transcript == "so today we launch"
    assert len(second.all_tokens) == 4
    assert re.fullmatch(r"c1-13000-[0-9a-f]{8}", second.new_tokens[0].id)


def test_ingest_skips_blank_words():
    store = InMemoryConversationStore()
    outcome = ingest_words(store, "c1", [IngestWord(word="  ", start=0, end=0.1)])
    assert outcome.new_tokens == []
    assert store.list_tokens("c1") == []


def test_job_saves_result_and_marks_finished(fast_settings):
    conversations = InMemoryConversationStore()
    results = InMemoryResultStore()
    ingest_words(conversations, "c1", WORDS)

    outcome = _run(conversations, results, fast_settings, "c1")

    assert outcome.file_name == "c1-analysis.json"
    assert results.load("c1")["segments"][0]["id"] == "seg-c1-0"
    assert [(r.conversation_id, r.status) for r in conversations.list_conversations()] == [("c1", "finished")]


def test_job_without_id_uses_latest_conversation(fast_settings):
    conversations = InMemoryConversationStore()
    results = InMemoryResultStore()
    ingest_words(conversations, "older", WORDS)
    ingest_words(conversations, "newer", WORDS)

    outcome = _run(conversations, results, fast_settings)

    assert outcome.conversation_id == "newer"
    assert results.load_latest()[0] == "newer-analysis.json"


def test_job_without_any_tokens_raises(fast_settings):
    with pytest.raises(EmptyTranscriptError):
        _run(InMemoryConversationStore(), InMemoryResultStore(), fast_settings)
    with pytest.raises(EmptyTranscriptError):
        _run(InMemoryConversationStore(), InMemoryResultStore(), fast_settings, "missing")


def test_upload_failure_is_fatal_and_status_not_finished(fast_settings):
    conversations = InMemoryConversationStore()
    ingest_words(conversations, "c1", WORDS)

    with pytest.raises(ResultStoreError):
        _run(conversations, BrokenResultStore(), fast_settings, "c1")

    assert [r.status for r in conversations.list_conversations()] == ["processing"]


def test_status_failure_after_upload_is_not_fatal(fast_settings):
    conversations = StatusFailingStore()
    results = InMemoryResultStore()
    ingest_words(conversations, "c1", WORDS)

    outcome = _run(conversations, results, fast_settings, "c1")

    assert outcome.conversation_id == "c1"
    assert results.load("c1") is not None


def test_conversation_status_upsert_keeps_one_row():
    store = InMemoryConversationStore()
    store.set_status("c1", "recording")
    store.set_status("c2", "recording")
    store.set_status("c1", "finished")

    records = {r.conversation_id: r.status for r in store.list_conversations()}
    assert records == {"c1": "finished", "c2": "recording"}


def test_unknown_conversation_leaves_no_status_record(fast_settings):
    conversations = InMemoryConversationStore()

    with pytest.raises(EmptyTranscriptError):
        _run(conversations, InMemoryResultStore(), fast_settings, "nope")

    assert conversations.list_conversations() == []


def test_malformed_tokens_do_not_mark_processing(fast_settings):
    conversations = InMemoryConversationStore()
    ingest_words(
        conversations,
        "c1",
        [IngestWord(word="a", start=0.0, end=0.5), IngestWord(word="b", start=0.4, end=0.8)],
    )
    conversations.set_status("c1", "recording")

    with pytest.raises(TranscriptInputError):
        _run(conversations, InMemoryResultStore(), fast_settings, "c1")

    assert [r.status for r in conversations.list_conversations()] == ["recording"]
