from __future__ import annotations

import logging
import random
import threading
import time
from typing import Optional

from .assembler import assemble_analysis
from .config import AnalysisSettings
from .enrichment_orchestrator import build_enrichment_input, run_enrichment
from .llm_client import TextGenerator
from .metrics import calculate_metrics
from .models import AnalysisResult, AnalysisTiming, BiometricReadings, Segment, Token, utc_now
from .punctuation import punctuate_tokens
from .segmentation import segment_tokens
from .tagging import tag_segment


logger = logging.getLogger("uvicorn.error")


class TranscriptInputError(ValueError):
    """The token list cannot be analyzed as given."""


class EmptyTranscriptError(TranscriptInputError):
    pass


def _elapsed_ms(since: float) -> int:
    return int((time.monotonic() - since) * 1000)


def validate_tokens(tokens: list[Token], conversation_id: str) -> None:
    if not tokens:
        raise EmptyTranscriptError(f"No tokens found for conversation {conversation_id}.")
    previous: Optional[Token] = None
    for token in tokens:
        if token.end_ms < token.start_ms:
            raise TranscriptInputError(
                f"Token {token.id} ends before it starts ({token.start_ms} > {token.end_ms})."
            )
        if previous is not None and token.start_ms < previous.end_ms:
            raise TranscriptInputError(
                f"Token {token.id} starts at {token.start_ms} before token {previous.id} ends at {previous.end_ms}."
            )
        previous = token


def analyze_tokens(
    tokens: list[Token],
    conversation_id: str,
    *,
    generator: TextGenerator,
    settings: AnalysisSettings,
    biometrics: Optional[BiometricReadings] = None,
    cancel_event: Optional[threading.Event] = None,
    rng: Optional[random.Random] = None,
    token_fetch_ms: int = 0,
) -> AnalysisResult:
    """Turn one conversation's timed tokens into a full analysis result."""
    start_ts = time.monotonic()
    validate_tokens(tokens, conversation_id)

    stage_ts = time.monotonic()
    punctuated = punctuate_tokens(tokens)
    punctuation_ms = _elapsed_ms(stage_ts)

    stage_ts = time.monotonic()
    token_groups, pauses = segment_tokens(punctuated)
    segmentation_ms = _elapsed_ms(stage_ts)

    stage_ts = time.monotonic()
    blocks: list[list[Segment]] = []
    segment_index = 0
    for groups in token_groups:
        block_segments = []
        for group in groups:
            block_segments.append(tag_segment(group, segment_index, conversation_id))
            segment_index += 1
        blocks.append(block_segments)
    speech_segments = [segment for block in blocks for segment in block]
    segment_analysis_ms = _elapsed_ms(stage_ts)
    logger.info(
        "conversation_id=%s segmentation_done blocks=%s segments=%s pauses=%s",
        conversation_id,
        len(blocks),
        len(speech_segments),
        len(pauses),
    )

    stage_ts = time.monotonic()
    metrics = calculate_metrics(speech_segments, pauses, biometrics=biometrics, rng=rng)
    metrics_ms = _elapsed_ms(stage_ts)

    stage_ts = time.monotonic()
    context = build_enrichment_input(conversation_id, speech_segments, metrics)
    enrichment = run_enrichment(context, generator, settings, cancel_event=cancel_event)
    ai_calls_ms = _elapsed_ms(stage_ts)

    timing = AnalysisTiming(
        total_ms=_elapsed_ms(start_ts) + token_fetch_ms,
        token_fetch_ms=token_fetch_ms,
        punctuation_ms=punctuation_ms,
        segmentation_ms=segmentation_ms,
        segment_analysis_ms=segment_analysis_ms,
        metrics_ms=metrics_ms,
        ai_calls_ms=ai_calls_ms,
        token_count=len(tokens),
        segment_count=len(speech_segments) + len(pauses),
        word_count=metrics.total_words,
        analyzed_at=utc_now().isoformat(),
    )
    result = assemble_analysis(
        conversation_id,
        blocks,
        pauses,
        title=enrichment.title,
        metrics=metrics,
        issues=enrichment.issues,
        highlights=enrichment.highlights,
        timing=timing,
    )
    logger.info(
        "conversation_id=%s analysis_done segments=%s issues=%s total_ms=%s",
        conversation_id,
        len(result.segments),
        len(result.issues),
        timing.total_ms,
    )
    return result
