from __future__ import annotations

import logging
import math
import random
from typing import Optional

from .models import BiometricReadings, Metrics, Pause, Segment


logger = logging.getLogger("uvicorn.error")

AVG_HEART_RATE_RANGE = (75, 95)
PEAK_HEART_RATE_RANGE = (120, 145)
MOVEMENT_SCORE_RANGE = (0.35, 0.65)


def round_half_up(value: float, digits: int = 0) -> float:
    factor = 10 ** digits
    return math.floor(value * factor + 0.5) / factor


def _safe_ratio(numerator: float, denominator: float) -> float:
    if denominator <= 0:
        return 0.0
    return numerator / denominator


def placeholder_biometrics(rng: Optional[random.Random] = None) -> BiometricReadings:
    """Stand-in wearable readings until a real heart-rate/motion feed exists."""
    source = rng or random.Random()
    return BiometricReadings(
        avg_heart_rate=int(round_half_up(source.uniform(*AVG_HEART_RATE_RANGE))),
        peak_heart_rate=int(round_half_up(source.uniform(*PEAK_HEART_RATE_RANGE))),
        movement_score=round_half_up(source.uniform(*MOVEMENT_SCORE_RANGE), 2),
    )


def count_token_tags(segments: list[Segment], kind: str) -> int:
    return sum(
        1
        for segment in segments
        for token in segment.tokens
        for tag in token.tags
        if tag.kind == kind
    )


def calculate_metrics(
    segments: list[Segment],
    pauses: list[Pause],
    biometrics: Optional[BiometricReadings] = None,
    rng: Optional[random.Random] = None,
) -> Metrics:
    """Aggregate tagged speech segments into session metrics.

    ``avg_wpm`` is measured over speaking time only (the sum of segment
    spans), while ``filler_per_minute`` is measured over the whole session
    from first word to last word.
    """
    total_words = sum(len(segment.tokens) for segment in segments)
    session_ms = segments[-1].end_ms - segments[0].start_ms if segments else 0
    duration_sec = session_ms / 1000.0
    speaking_ms = sum(segment.end_ms - segment.start_ms for segment in segments)

    avg_wpm = _safe_ratio(total_words, speaking_ms / 1000.0) * 60.0
    filler_count = count_token_tags(segments, "filler")
    filler_per_minute = _safe_ratio(filler_count, duration_sec) * 60.0
    fast_segments = sum(1 for segment in segments if segment.has_tag("fast"))
    stress_speed_index = _safe_ratio(fast_segments, len(segments))

    readings = biometrics or placeholder_biometrics(rng)

    logger.debug(
        "metrics_calculated segments=%s pauses=%s words=%s speaking_ms=%s",
        len(segments),
        len(pauses),
        total_words,
        speaking_ms,
    )
    return Metrics(
        duration_sec=int(round_half_up(duration_sec)),
        total_words=total_words,
        avg_wpm=int(round_half_up(avg_wpm)),
        filler_count=filler_count,
        filler_per_minute=round_half_up(filler_per_minute, 1),
        avg_heart_rate=readings.avg_heart_rate,
        peak_heart_rate=readings.peak_heart_rate,
        movement_score=readings.movement_score,
        stress_speed_index=round_half_up(stress_speed_index, 2),
    )
