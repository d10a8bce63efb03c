from __future__ import annotations

import logging
from typing import List, Union

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from .constants import FAST_WPM, SLOW_WPM, VERY_FAST_WPM
from .enrichment_input import EnrichmentInput
from .json_extract import parse_model_output
from .llm_client import TextGenerator
from .models import SEVERITY_RANK, Issue, Metrics, Segment, Severity
from .prompts.issues import ISSUES_VERSION, USER_PROMPT_TEMPLATE


logger = logging.getLogger("uvicorn.error")
MAX_ISSUES = 5


class IssuePayload(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    kind: str = "general"
    severity: Severity = "medium"
    message: str = Field(min_length=1)
    segment_indices: List[int] = Field(default_factory=list)


class IssuesEnvelope(BaseModel):
    issues: List[IssuePayload]


IssuesPayload = Union[IssuesEnvelope, List[IssuePayload]]


def _segment_flags(segments: tuple[Segment, ...]) -> str:
    flagged = []
    for index, segment in enumerate(segments):
        kinds = sorted({tag.kind for tag in segment.tags})
        if kinds:
            flagged.append(f"{index}:{'+'.join(kinds)}")
    return ", ".join(flagged) or "none"


def build_issues_prompt(context: EnrichmentInput) -> str:
    counts = context.counts()
    return (
        USER_PROMPT_TEMPLATE.replace("{segment_count}", str(counts.segments))
        .replace("{filler_count}", str(counts.filler_tokens))
        .replace("{fast_count}", str(counts.fast))
        .replace("{slow_count}", str(counts.slow))
        .replace("{hedging_count}", str(counts.hedging))
        .replace("{segment_flags}", _segment_flags(context.segments))
    )


def rank_issues(conversation_id: str, drafts: list[dict]) -> list[Issue]:
    ordered = sorted(drafts, key=lambda draft: SEVERITY_RANK[draft["severity"]])[:MAX_ISSUES]
    return [
        Issue(id=f"issue-{conversation_id}-{index}", **draft)
        for index, draft in enumerate(ordered)
    ]


def fallback_issues(conversation_id: str, segments: tuple[Segment, ...], metrics: Metrics) -> list[Issue]:
    """Deterministic issue list built from metrics and segment tags alone."""
    drafts: list[dict] = []

    if metrics.filler_per_minute > 3:
        filler_segments = [
            segment
            for segment in segments
            if any(tag.kind == "filler" for token in segment.tokens for tag in token.tags)
        ]
        drafts.append(
            {
                "kind": "filler",
                "severity": "high" if metrics.filler_per_minute > 5 else "medium",
                "message": f"Frequent filler words ({metrics.filler_per_minute}/min)",
                "segment_ids": [segment.id for segment in filler_segments],
                "token_ids": [
                    token.id
                    for segment in filler_segments
                    for token in segment.tokens
                    if any(tag.kind == "filler" for tag in token.tags)
                ],
            }
        )

    if metrics.avg_wpm > FAST_WPM:
        drafts.append(
            {
                "kind": "pace",
                "severity": "high" if metrics.avg_wpm > VERY_FAST_WPM else "medium",
                "message": f"Speaking too fast ({metrics.avg_wpm} WPM, target 110-160)",
                "segment_ids": [s.id for s in segments if s.has_tag("fast", "very_fast")],
            }
        )
    elif metrics.avg_wpm < SLOW_WPM:
        drafts.append(
            {
                "kind": "pace",
                "severity": "low",
                "message": f"Speaking too slowly ({metrics.avg_wpm} WPM, target 110-160)",
                "segment_ids": [s.id for s in segments if s.has_tag("slow")],
            }
        )

    hedged = [segment.id for segment in segments if segment.has_tag("hedging")]
    if hedged:
        drafts.append(
            {
                "kind": "hedging",
                "severity": "medium" if len(hedged) > 1 else "low",
                "message": "Hedging phrases weaken your key points",
                "segment_ids": hedged,
            }
        )

    return rank_issues(conversation_id, drafts)


def derive_issues(context: EnrichmentInput, generator: TextGenerator, *, model: str, timeout_seconds: float) -> list[Issue]:
    raw_content = generator.generate(build_issues_prompt(context), model=model, timeout_seconds=timeout_seconds)
    parsed = parse_model_output(raw_content, IssuesPayload)
    items = parsed.issues if isinstance(parsed, IssuesEnvelope) else parsed
    if not items:
        raise ValueError("Model returned no issues.")

    segment_count = len(context.segments)
    drafts = [
        {
            "kind": item.kind.strip().lower() or "general",
            "severity": item.severity,
            "message": item.message.strip(),
            "segment_ids": [
                context.segments[index].id
                for index in dict.fromkeys(item.segment_indices)
                if 0 <= index < segment_count
            ],
        }
        for item in items
    ]
    issues = rank_issues(context.conversation_id, drafts)
    logger.info(
        "conversation_id=%s issues_derived count=%s version=%s", context.conversation_id, len(issues), ISSUES_VERSION
    )
    return issues
