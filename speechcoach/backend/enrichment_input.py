from __future__ import annotations

from dataclasses import dataclass

from .models import Issue, Metrics, Segment
from .tagging import normalize_word


@dataclass(frozen=True)
class SegmentCounts:
    segments: int
    filler_tokens: int
    fast: int
    slow: int
    hedging: int


@dataclass(frozen=True)
class EnrichmentInput:
    """Read-only snapshot shared by the concurrent enrichment branches."""

    conversation_id: str
    segments: tuple[Segment, ...]
    metrics: Metrics
    baseline_issues: tuple[Issue, ...] = ()

    def transcript_excerpt(self, max_words: int) -> str:
        words = " ".join(segment.text for segment in self.segments).split()
        return " ".join(words[:max_words])

    def counts(self) -> SegmentCounts:
        return SegmentCounts(
            segments=len(self.segments),
            filler_tokens=sum(
                1
                for segment in self.segments
                for token in segment.tokens
                if any(tag.kind == "filler" for tag in token.tags)
            ),
            fast=sum(1 for segment in self.segments if segment.has_tag("fast", "very_fast")),
            slow=sum(1 for segment in self.segments if segment.has_tag("slow")),
            hedging=sum(1 for segment in self.segments if segment.has_tag("hedging")),
        )

    def filler_examples(self, limit: int = 3) -> list[str]:
        examples: list[str] = []
        for segment in self.segments:
            for token in segment.tokens:
                if len(examples) >= limit:
                    break
                if any(tag.kind == "filler" for tag in token.tags):
                    examples.append(normalize_word(token.text))
        return list(dict.fromkeys(examples))
