from __future__ import annotations

import logging
import time
import uuid
from dataclasses import dataclass
from typing import Optional

from .config import AnalysisSettings
from .llm_client import TextGenerator
from .metrics import round_half_up
from .models import AnalysisResult, IngestWord, Token
from .pipeline import EmptyTranscriptError, analyze_tokens, validate_tokens
from .result_store import ResultStore, result_file_name
from .storage import ConversationStore


logger = logging.getLogger("uvicorn.error")


@dataclass(frozen=True)
class AnalysisJobOutcome:
    conversation_id: str
    file_name: str
    location: str
    result: AnalysisResult
    total_time_ms: int


@dataclass(frozen=True)
class IngestOutcome:
    new_tokens: list[Token]
    all_tokens: list[Token]

    @property
    def full_transcript(self) -> str:
        return " ".join(token.text for token in self.all_tokens)


def build_token_id(conversation_id: str, start_ms: int) -> str:
    return f"{conversation_id}-{start_ms}-{uuid.uuid4().hex[:8]}"


def words_to_tokens(conversation_id: str, words: list[IngestWord], offset_seconds: float = 0.0) -> list[Token]:
    base_ms = int(round_half_up(offset_seconds * 1000))
    tokens: list[Token] = []
    for word in words:
        text = word.word.strip()
        if not text:
            continue
        start_ms = base_ms + int(round_half_up(word.start * 1000))
        tokens.append(
            Token(
                id=build_token_id(conversation_id, start_ms),
                conversation_id=conversation_id,
                start_ms=start_ms,
                end_ms=base_ms + int(round_half_up(word.end * 1000)),
                text=text,
                tags=[],
            )
        )
    return tokens


def ingest_words(
    conversation_store: ConversationStore,
    conversation_id: str,
    words: list[IngestWord],
    offset_seconds: float = 0.0,
) -> IngestOutcome:
    """Store one chunk of timed words; ``offset_seconds`` is where the chunk starts in the recording."""
    new_tokens = words_to_tokens(conversation_id, words, offset_seconds)
    conversation_store.insert_tokens(new_tokens)
    all_tokens = conversation_store.list_tokens(conversation_id)
    logger.info(
        "conversation_id=%s tokens_ingested new=%s total=%s offset_seconds=%s",
        conversation_id,
        len(new_tokens),
        len(all_tokens),
        offset_seconds,
    )
    return IngestOutcome(new_tokens=new_tokens, all_tokens=all_tokens)


def _set_status_quietly(conversation_store: ConversationStore, conversation_id: str, status: str) -> None:
    try:
        conversation_store.set_status(conversation_id, status)
    except Exception:
        logger.warning(
            "conversation_id=%s status_update_failed status=%s",
            conversation_id,
            status,
            exc_info=True,
        )


def process_analysis_job(
    conversation_store: ConversationStore,
    result_store: ResultStore,
    conversation_id: Optional[str] = None,
    *,
    generator: TextGenerator,
    settings: AnalysisSettings,
) -> AnalysisJobOutcome:
    start_ts = time.monotonic()
    target_id = conversation_id or conversation_store.latest_conversation_id()
    if not target_id:
        raise EmptyTranscriptError("No tokens found in the store to infer a conversation.")

    logger.info("conversation_id=%s analysis_job_started source=%s", target_id, "explicit" if conversation_id else "latest")

    fetch_ts = time.monotonic()
    tokens = conversation_store.list_tokens(target_id)
    token_fetch_ms = int((time.monotonic() - fetch_ts) * 1000)
    validate_tokens(tokens, target_id)
    _set_status_quietly(conversation_store, target_id, "processing")

    result = analyze_tokens(
        tokens,
        target_id,
        generator=generator,
        settings=settings,
        token_fetch_ms=token_fetch_ms,
    )

    location = result_store.save(target_id, result)
    logger.info("conversation_id=%s analysis_uploaded location=%s", target_id, location)
    _set_status_quietly(conversation_store, target_id, "finished")

    total_time_ms = int((time.monotonic() - start_ts) * 1000)
    logger.info("conversation_id=%s analysis_job_done total_ms=%s", target_id, total_time_ms)
    return AnalysisJobOutcome(
        conversation_id=target_id,
        file_name=result_file_name(target_id),
        location=location,
        result=result,
        total_time_ms=total_time_ms,
    )
