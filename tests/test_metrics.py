import random

from speechcoach.backend.metrics import (
    AVG_HEART_RATE_RANGE,
    PEAK_HEART_RATE_RANGE,
    calculate_metrics,
    count_token_tags,
    placeholder_biometrics,
    round_half_up,
)
from speechcoach.backend.models import BiometricReadings
from speechcoach.backend.segmentation import split_into_blocks
from speechcoach.backend.tagging import tag_segment


READINGS = BiometricReadings(avg_heart_rate=80, peak_heart_rate=130, movement_score=0.5)


def _worked_example(make_tokens):
    tokens = make_tokens([("ok", 0, 200), ("um", 2500, 2900), ("great", 2900, 3100)])
    blocks, pauses = split_into_blocks(tokens)
    segments = [tag_segment(block, index, "c1") for index, block in enumerate(blocks)]
    return segments, pauses


def test_worked_example_metrics(make_tokens):
    segments, pauses = _worked_example(make_tokens)

    metrics = calculate_metrics(segments, pauses, biometrics=READINGS)

    assert metrics.total_words == 3
    assert metrics.duration_sec == 3
    assert metrics.avg_wpm == 225
    assert metrics.filler_count == 1
    assert metrics.filler_per_minute == 19.4
    assert metrics.stress_speed_index == 0.5
    assert (metrics.avg_heart_rate, metrics.peak_heart_rate, metrics.movement_score) == (80, 130, 0.5)


def test_filler_count_matches_token_tags(make_tokens):
    rows = [(word, i * 400, i * 400 + 300) for i, word in enumerate(["um", "so", "we", "uh", "like", "it"])]
    segment = tag_segment(make_tokens(rows), 0, "c1")

    metrics = calculate_metrics([segment], [], biometrics=READINGS)

    assert metrics.filler_count == count_token_tags([segment], "filler") == 4


def test_empty_session_short_circuits_to_zero():
    metrics = calculate_metrics([], [], biometrics=READINGS)
    assert metrics.total_words == 0
    assert metrics.duration_sec == 0
    assert metrics.avg_wpm == 0
    assert metrics.filler_per_minute == 0
    assert metrics.stress_speed_index == 0


def test_zero_duration_segment_has_zero_rates(make_tokens):
    segment = tag_segment(make_tokens([("um", 500, 500)]), 0, "c1")
    metrics = calculate_metrics([segment], [], biometrics=READINGS)
    assert metrics.filler_count == 1
    assert metrics.avg_wpm == 0
    assert metrics.filler_per_minute == 0


def test_placeholder_biometrics_are_seeded_and_in_range():
    first = placeholder_biometrics(random.Random(7))
    second = placeholder_biometrics(random.Random(7))
    assert first == second
    assert AVG_HEART_RATE_RANGE[0] <= first.avg_heart_rate <= AVG_HEART_RATE_RANGE[1]
    assert PEAK_HEART_RATE_RANGE[0] <= first.peak_heart_rate <= PEAK_HEART_RATE_RANGE[1]
    assert 0.35 <= first.movement_score <= 0.65


def test_round_half_up():
    assert round_half_up(2.5) == 3
    assert round_half_up(3.5) == 4
    assert round_half_up(0.125, 2) == 0.13
