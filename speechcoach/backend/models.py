from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Annotated, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


Severity = Literal["low", "medium", "high"]
SegmentKind = Literal["speech", "pause"]
HighlightType = Literal["strength", "improvement"]
ConversationStatus = Literal["recording", "processing", "finished"]

SEVERITY_RANK = {"high": 0, "medium": 1, "low": 2}


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class CamelModel(BaseModel):
    """Base for everything that is serialized into the analysis JSON."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
    )

    def to_json_dict(self) -> dict:
        return self.model_dump(by_alias=True, exclude_none=True)


class Token(CamelModel):
    id: str
    conversation_id: str
    start_ms: int
    end_ms: int
    text: str
    tags: List[str] = Field(default_factory=list)


class FillerTagData(CamelModel):
    type: Literal["filler"] = "filler"
    normalized: str
    start_index: int
    end_index: int


class HedgingTagData(CamelModel):
    type: Literal["hedging"] = "hedging"
    phrase: str
    start_index: int
    end_index: int


class PaceTagData(CamelModel):
    type: Literal["pace"] = "pace"
    wpm: float
    status: Literal["slow", "fast", "very_fast"]


class AggregateTagData(CamelModel):
    type: Literal["aggregate"] = "aggregate"
    count: int


class PauseTagData(CamelModel):
    type: Literal["pause"] = "pause"
    duration_ms: int
    forced: bool = False


TagData = Annotated[
    Union[FillerTagData, HedgingTagData, PaceTagData, AggregateTagData, PauseTagData],
    Field(discriminator="type"),
]


class Tag(CamelModel):
    id: str
    kind: str
    severity: Severity
    label: str
    data: Optional[TagData] = None


class TokenWithTags(CamelModel):
    id: str
    start_ms: int
    end_ms: int
    text: str
    tags: List[Tag] = Field(default_factory=list)


class Segment(CamelModel):
    id: str
    start_ms: int
    end_ms: int
    kind: SegmentKind
    text: str
    tokens: List[TokenWithTags] = Field(default_factory=list)
    tags: List[Tag] = Field(default_factory=list)

    def has_tag(self, *kinds: str) -> bool:
        return any(tag.kind in kinds for tag in self.tags)


class Metrics(CamelModel):
    duration_sec: int
    total_words: int
    avg_wpm: int
    filler_count: int
    filler_per_minute: float
    avg_heart_rate: int
    peak_heart_rate: int
    movement_score: float
    stress_speed_index: float


class Issue(CamelModel):
    id: str
    kind: str
    severity: Severity
    message: str
    segment_ids: List[str] = Field(default_factory=list)
    token_ids: List[str] = Field(default_factory=list)


class CoachingHighlight(CamelModel):
    type: HighlightType
    title: str
    detail: str
    severity: Optional[Severity] = None


class AnalysisTiming(CamelModel):
    total_ms: int
    token_fetch_ms: int = 0
    punctuation_ms: int
    segmentation_ms: int
    segment_analysis_ms: int
    metrics_ms: int
    ai_calls_ms: int
    token_count: int
    segment_count: int
    word_count: int
    analyzed_at: str


class AnalysisResult(CamelModel):
    title: str
    segments: List[Segment]
    metrics: Metrics
    issues: List[Issue]
    coaching_highlights: List[CoachingHighlight]
    analysis_timing: Optional[AnalysisTiming] = None


class SessionPreview(CamelModel):
    """Provisional view of a conversation shown while the full analysis runs."""

    id: str
    title: str
    analysis_status: Literal["processing"] = "processing"
    duration_sec: int
    segments: List[Segment]
    metrics: Metrics
    issues: List[Issue] = Field(default_factory=list)


@dataclass(frozen=True)
class Pause:
    start_ms: int
    end_ms: int
    duration_ms: int
    forced: bool = False


@dataclass(frozen=True)
class BiometricReadings:
    avg_heart_rate: int
    peak_heart_rate: int
    movement_score: float


@dataclass
class ConversationRecord:
    conversation_id: str
    status: str
    timestamp: int


# --- HTTP payloads ---


class IngestWord(BaseModel):
    word: str
    start: float
    end: float


class IngestTokensRequest(BaseModel):
    words: List[IngestWord]
    timestamp: float = 0.0


class IngestTokensResponse(CamelModel):
    success: bool
    conversation_id: str
    new_tokens: List[Token]
    all_tokens: List[Token]
    full_transcript: str
    token_count: int


class AnalyzeSummary(CamelModel):
    segments: int
    issues: int
    metrics: Metrics


class AnalyzeResponse(CamelModel):
    success: bool
    conversation_id: str
    file_name: str
    summary: AnalyzeSummary
    total_time_ms: int


class UpdateStatusRequest(BaseModel):
    conversation_id: Optional[str] = None
    status: ConversationStatus


class ConversationResponse(BaseModel):
    conversation_id: str
    timestamp: int
    status: str
