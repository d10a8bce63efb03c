from __future__ import annotations

import logging
from typing import List, Optional, Union

from pydantic import BaseModel

from .constants import FAST_WPM, SLOW_WPM, VERY_FAST_WPM
from .enrichment_input import EnrichmentInput
from .json_extract import parse_model_output
from .llm_client import TextGenerator
from .models import SEVERITY_RANK, CoachingHighlight, HighlightType, Issue, Metrics, Severity
from .prompts.highlights import HIGHLIGHTS_VERSION, USER_PROMPT_TEMPLATE


logger = logging.getLogger("uvicorn.error")

HIGHLIGHTS_EXCERPT_WORDS = 150
MAX_HIGHLIGHTS = 6


class HighlightPayload(BaseModel):
    type: HighlightType
    title: str = "General feedback"
    detail: str = ""
    severity: Optional[Severity] = None


class HighlightsEnvelope(BaseModel):
    highlights: List[HighlightPayload]


HighlightsPayload = Union[HighlightsEnvelope, List[HighlightPayload]]


def _pace_note(context: EnrichmentInput) -> str:
    counts = context.counts()
    if counts.fast > 2:
        return "rushing in parts"
    if counts.slow > 2:
        return "dragging in parts"
    return "consistent"


def build_highlights_prompt(context: EnrichmentInput) -> str:
    metrics = context.metrics
    issue_messages = "; ".join(issue.message for issue in context.baseline_issues[:3]) or "none"
    replacements = {
        "{transcript_excerpt}": context.transcript_excerpt(HIGHLIGHTS_EXCERPT_WORDS),
        "{duration_sec}": str(metrics.duration_sec),
        "{total_words}": str(metrics.total_words),
        "{avg_wpm}": str(metrics.avg_wpm),
        "{pace_note}": _pace_note(context),
        "{filler_count}": str(metrics.filler_count),
        "{filler_per_minute}": str(metrics.filler_per_minute),
        "{filler_examples}": ", ".join(context.filler_examples()) or "none",
        "{issue_messages}": issue_messages,
    }
    prompt = USER_PROMPT_TEMPLATE
    for placeholder, value in replacements.items():
        prompt = prompt.replace(placeholder, value)
    return prompt


def fallback_highlights(metrics: Metrics, issues: list[Issue]) -> list[CoachingHighlight]:
    highlights: list[CoachingHighlight] = []

    if SLOW_WPM <= metrics.avg_wpm <= FAST_WPM:
        highlights.append(
            CoachingHighlight(
                type="strength",
                title="Good speaking pace",
                detail=f"Your average pace of {metrics.avg_wpm} WPM is in the ideal range for clear communication.",
            )
        )
    elif metrics.avg_wpm > FAST_WPM:
        highlights.append(
            CoachingHighlight(
                type="improvement",
                title="Slow down your pace",
                detail=(
                    f"At {metrics.avg_wpm} WPM, you're speaking faster than ideal (110-160 WPM). "
                    "Try adding brief pauses between key points."
                ),
                severity="high" if metrics.avg_wpm > VERY_FAST_WPM else "medium",
            )
        )
    else:
        highlights.append(
            CoachingHighlight(
                type="improvement",
                title="Speed up your pace",
                detail=(
                    f"At {metrics.avg_wpm} WPM, you're speaking slower than ideal (110-160 WPM). "
                    "Try to maintain more energy and momentum."
                ),
                severity="low",
            )
        )

    if metrics.filler_per_minute < 2:
        highlights.append(
            CoachingHighlight(
                type="strength",
                title="Minimal filler words",
                detail="You kept filler words to a minimum, which makes your speech sound confident and polished.",
            )
        )
    elif metrics.filler_per_minute > 3:
        highlights.append(
            CoachingHighlight(
                type="improvement",
                title="Reduce filler words",
                detail=(
                    f"You used {metrics.filler_count} filler words. "
                    "Try replacing them with silent pauses for more impact."
                ),
                severity="high" if metrics.filler_per_minute > 5 else "medium",
            )
        )

    if issues and not any(highlight.type == "improvement" for highlight in highlights):
        top_issue = sorted(issues, key=lambda issue: SEVERITY_RANK[issue.severity])[0]
        highlights.append(
            CoachingHighlight(
                type="improvement",
                title=top_issue.kind.replace("_", " ", 1),
                detail=top_issue.message,
                severity=top_issue.severity,
            )
        )

    return highlights


def derive_highlights(
    context: EnrichmentInput, generator: TextGenerator, *, model: str, timeout_seconds: float
) -> list[CoachingHighlight]:
    raw_content = generator.generate(build_highlights_prompt(context), model=model, timeout_seconds=timeout_seconds)
    parsed = parse_model_output(raw_content, HighlightsPayload)
    items = parsed.highlights if isinstance(parsed, HighlightsEnvelope) else parsed
    if not items:
        raise ValueError("Model returned no highlights.")

    highlights = [
        CoachingHighlight(
            type=item.type,
            title=item.title.strip() or "General feedback",
            detail=item.detail.strip(),
            severity=item.severity,
        )
        for item in items[:MAX_HIGHLIGHTS]
    ]
    logger.info(
        "conversation_id=%s highlights_derived count=%s version=%s",
        context.conversation_id,
        len(highlights),
        HIGHLIGHTS_VERSION,
    )
    return highlights
