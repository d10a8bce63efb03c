from __future__ import annotations

import logging

from .constants import (
    BASE_PAUSE_THRESHOLD_MS,
    LONG_SEGMENT_THRESHOLD_MS,
    MAX_SEGMENT_DURATION_MS,
    MAX_SENTENCES_PER_SEGMENT,
    MIN_TERMINATORS_FOR_SENTENCE_SPLIT,
    MIN_TOKENS_FOR_SENTENCE_SPLIT,
    REDUCED_PAUSE_THRESHOLD_MS,
)
from .models import Pause, Token


logger = logging.getLogger("uvicorn.error")

SENTENCE_TERMINATORS = (".", "!", "?")


def pause_threshold_ms(running_duration_ms: int) -> int:
    if running_duration_ms >= LONG_SEGMENT_THRESHOLD_MS:
        return REDUCED_PAUSE_THRESHOLD_MS
    return BASE_PAUSE_THRESHOLD_MS


def split_into_blocks(tokens: list[Token]) -> tuple[list[list[Token]], list[Pause]]:
    """Split tokens into speech blocks at pauses, capping block duration.

    The pause threshold drops from 2s to 1s once a block has run for 20s, and
    a block is force-closed once it reaches 25s. Returns the blocks plus one
    pause per boundary; pauses created by the cap are marked ``forced``.
    """
    if not tokens:
        return [], []

    blocks: list[list[Token]] = []
    pauses: list[Pause] = []
    current: list[Token] = []
    block_start_ms = tokens[0].start_ms

    for index, token in enumerate(tokens):
        current.append(token)
        if index == len(tokens) - 1:
            break

        running_ms = token.end_ms - block_start_ms
        next_token = tokens[index + 1]
        gap_ms = next_token.start_ms - token.end_ms

        natural_pause = gap_ms >= pause_threshold_ms(running_ms)
        over_cap = running_ms >= MAX_SEGMENT_DURATION_MS
        if not (natural_pause or over_cap):
            continue

        blocks.append(current)
        pauses.append(
            Pause(
                start_ms=token.end_ms,
                end_ms=next_token.start_ms,
                duration_ms=gap_ms,
                forced=not natural_pause,
            )
        )
        current = []
        block_start_ms = next_token.start_ms

    if current:
        blocks.append(current)

    logger.debug(
        "pause_segmentation blocks=%s pauses=%s forced=%s",
        len(blocks),
        len(pauses),
        sum(1 for pause in pauses if pause.forced),
    )
    return blocks, pauses


def _is_terminator(token: Token) -> bool:
    return token.text.rstrip().endswith(SENTENCE_TERMINATORS)


def count_sentence_terminators(tokens: list[Token]) -> int:
    return sum(1 for token in tokens if _is_terminator(token))


def split_block_by_sentences(
    block: list[Token],
    max_sentences: int = MAX_SENTENCES_PER_SEGMENT,
) -> list[list[Token]]:
    if not block:
        return []
    if (
        len(block) < MIN_TOKENS_FOR_SENTENCE_SPLIT
        or count_sentence_terminators(block) < MIN_TERMINATORS_FOR_SENTENCE_SPLIT
    ):
        return [block]

    segments: list[list[Token]] = []
    current: list[Token] = []
    sentence_count = 0
    for token in block:
        current.append(token)
        if not _is_terminator(token):
            continue
        sentence_count += 1
        if sentence_count >= max_sentences:
            segments.append(current)
            current = []
            sentence_count = 0

    if current:
        segments.append(current)
    return segments


def segment_tokens(tokens: list[Token]) -> tuple[list[list[list[Token]]], list[Pause]]:
    """Run both passes: pause blocks first, then sentence groups inside each block."""
    blocks, pauses = split_into_blocks(tokens)
    return [split_block_by_sentences(block) for block in blocks], pauses
