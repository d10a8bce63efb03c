from __future__ import annotations

import logging
import re

from .constants import LONG_PAUSE_MS, SHORT_PAUSE_MS
from .models import Token


logger = logging.getLogger("uvicorn.error")

QUESTION_WORDS = {"what", "where", "when", "why", "how", "who", "which"}
_TRAILING_PUNCTUATION = re.compile(r"[.,!?;:]$")


def _punctuate_text(text: str, gap_ms: int | None) -> str:
    if gap_ms is None:
        return text + "."
    if gap_ms >= LONG_PAUSE_MS:
        last_word = text.lower().split(" ")[-1]
        return text + ("?" if last_word in QUESTION_WORDS else ".")
    if gap_ms >= SHORT_PAUSE_MS:
        return text + ","
    return text


def punctuate_tokens(tokens: list[Token]) -> list[Token]:
    """Attach punctuation to each token based on the silence that follows it.

    Long gaps close a sentence, medium gaps become commas and the final token
    always ends the last sentence. Tokens that already carry punctuation are
    returned as-is. The input list is never modified.
    """
    result: list[Token] = []
    for index, token in enumerate(tokens):
        text = token.text.strip()
        if _TRAILING_PUNCTUATION.search(text):
            result.append(token)
            continue

        gap_ms = None
        if index < len(tokens) - 1:
            gap_ms = tokens[index + 1].start_ms - token.end_ms

        punctuated = _punctuate_text(text, gap_ms)
        result.append(token if punctuated == token.text else token.model_copy(update={"text": punctuated}))

    logger.debug("punctuation_applied tokens=%s", len(result))
    return result
