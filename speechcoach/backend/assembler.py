from __future__ import annotations

from typing import Optional

from .constants import LONG_PAUSE_SEVERITY_MS
from .models import (
    AnalysisResult,
    AnalysisTiming,
    CoachingHighlight,
    Issue,
    Metrics,
    Pause,
    PauseTagData,
    Segment,
    Tag,
)


def pause_segment(pause: Pause, conversation_id: str, block_index: int) -> Segment:
    segment_id = f"pause-{conversation_id}-{block_index}"
    return Segment(
        id=segment_id,
        start_ms=pause.start_ms,
        end_ms=pause.end_ms,
        kind="pause",
        text="",
        tokens=[],
        tags=[
            Tag(
                id=f"{segment_id}-pause",
                kind="pause",
                severity="medium" if pause.duration_ms > LONG_PAUSE_SEVERITY_MS else "low",
                label=f"Pause: {pause.duration_ms / 1000:.1f}s",
                data=PauseTagData(duration_ms=pause.duration_ms, forced=pause.forced),
            )
        ],
    )


def assemble_analysis(
    conversation_id: str,
    blocks: list[list[Segment]],
    pauses: list[Pause],
    *,
    title: str,
    metrics: Metrics,
    issues: list[Issue],
    highlights: list[CoachingHighlight],
    timing: Optional[AnalysisTiming] = None,
) -> AnalysisResult:
    """Lay the tagged speech segments of each block out with the pause after it."""
    timeline: list[Segment] = []
    for block_index, block_segments in enumerate(blocks):
        timeline.extend(block_segments)
        if block_index < len(pauses):
            timeline.append(pause_segment(pauses[block_index], conversation_id, block_index))

    return AnalysisResult(
        title=title,
        segments=timeline,
        metrics=metrics,
        issues=issues,
        coaching_highlights=highlights,
        analysis_timing=timing,
    )
