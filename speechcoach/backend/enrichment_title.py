from __future__ import annotations

import logging
import re

from pydantic import BaseModel, Field

from .enrichment_input import EnrichmentInput
from .json_extract import parse_model_output
from .llm_client import TextGenerator
from .prompts.title import TITLE_VERSION, USER_PROMPT_TEMPLATE


logger = logging.getLogger("uvicorn.error")

UNTITLED = "Untitled Session"
TITLE_EXCERPT_WORDS = 100
MIN_EXCERPT_CHARS = 20
MAX_TITLE_CHARS = 50
_NON_LETTERS = re.compile(r"[^a-zA-Z\s]")
_WRAPPING_QUOTES = re.compile(r"^[\"']|[\"']$")


class TitlePayload(BaseModel):
    title: str = Field(min_length=1)


def build_title_prompt(excerpt: str) -> str:
    return USER_PROMPT_TEMPLATE.replace("{transcript_excerpt}", excerpt)


def fallback_title(excerpt: str) -> str:
    words = [word for word in _NON_LETTERS.sub("", excerpt).split() if len(word) > 3]
    if len(words) < 2:
        return UNTITLED
    return " ".join(word.capitalize() for word in words[:3]) + "..."


def _clean_title(raw_title: str) -> str:
    title = _WRAPPING_QUOTES.sub("", raw_title).strip()
    if len(title) > MAX_TITLE_CHARS:
        title = title[: MAX_TITLE_CHARS - 3] + "..."
    return title


def derive_title(context: EnrichmentInput, generator: TextGenerator, *, model: str, timeout_seconds: float) -> str:
    excerpt = context.transcript_excerpt(TITLE_EXCERPT_WORDS)
    if len(excerpt) < MIN_EXCERPT_CHARS:
        return UNTITLED

    raw_content = generator.generate(build_title_prompt(excerpt), model=model, timeout_seconds=timeout_seconds)
    title = _clean_title(parse_model_output(raw_content, TitlePayload).title)
    if not title:
        raise ValueError("Model returned a blank title.")
    logger.info("conversation_id=%s title_derived chars=%s version=%s", context.conversation_id, len(title), TITLE_VERSION)
    return title


def title_fallback_for(context: EnrichmentInput) -> str:
    excerpt = context.transcript_excerpt(TITLE_EXCERPT_WORDS)
    if len(excerpt) < MIN_EXCERPT_CHARS:
        return UNTITLED
    return fallback_title(excerpt)
