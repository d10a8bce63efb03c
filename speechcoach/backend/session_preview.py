from __future__ import annotations

import logging
import random
from typing import Optional

from .enrichment_title import UNTITLED, fallback_title
from .metrics import count_token_tags, placeholder_biometrics, round_half_up
from .models import Metrics, SessionPreview, Token, utc_now
from .pipeline import EmptyTranscriptError
from .storage import ConversationStore
from .tagging import tag_segment


logger = logging.getLogger("uvicorn.error")

STRESS_WPM_FLOOR = 160
STRESS_WPM_SPAN = 100


def quick_title(transcript: str) -> str:
    title = fallback_title(transcript)
    if title == UNTITLED:
        return f"Session {utc_now().date().isoformat()}"
    return title


def _quick_metrics(tokens: list[Token], filler_count: int, rng: Optional[random.Random]) -> Metrics:
    duration_sec = int(round_half_up((tokens[-1].end_ms - tokens[0].start_ms) / 1000.0))
    avg_wpm = int(round_half_up(len(tokens) / duration_sec * 60)) if duration_sec > 0 else 0
    filler_per_minute = round_half_up(filler_count / duration_sec * 60, 1) if duration_sec > 0 else 0.0
    stress_speed_index = 0.0
    if avg_wpm > STRESS_WPM_FLOOR:
        stress_speed_index = round_half_up(min(1.0, (avg_wpm - STRESS_WPM_FLOOR) / STRESS_WPM_SPAN), 2)

    readings = placeholder_biometrics(rng)
    return Metrics(
        duration_sec=duration_sec,
        total_words=len(tokens),
        avg_wpm=avg_wpm,
        filler_count=filler_count,
        filler_per_minute=filler_per_minute,
        avg_heart_rate=readings.avg_heart_rate,
        peak_heart_rate=readings.peak_heart_rate,
        movement_score=readings.movement_score,
        stress_speed_index=stress_speed_index,
    )


def build_session_preview(
    conversation_store: ConversationStore,
    conversation_id: Optional[str] = None,
    *,
    rng: Optional[random.Random] = None,
) -> SessionPreview:
    """Summarize the stored tokens as one speech segment, without segmentation or model calls.

    Durations are wall-clock from the first word to the last, and the rate
    metrics use the rounded duration in seconds.
    """
    target_id = conversation_id or conversation_store.latest_conversation_id()
    if not target_id:
        raise EmptyTranscriptError("No tokens found in the store to infer a conversation.")
    tokens = conversation_store.list_tokens(target_id)
    if not tokens:
        raise EmptyTranscriptError(f"No tokens found for conversation {target_id}.")

    segment = tag_segment(tokens, 0, target_id)
    metrics = _quick_metrics(tokens, count_token_tags([segment], "filler"), rng)
    preview = SessionPreview(
        id=target_id,
        title=quick_title(segment.text),
        duration_sec=metrics.duration_sec,
        segments=[segment],
        metrics=metrics,
    )
    logger.info(
        "conversation_id=%s preview_built tokens=%s duration_sec=%s",
        target_id,
        len(tokens),
        metrics.duration_sec,
    )
    return preview
