from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from .constants import FAST_WPM, SLOW_WPM, VERY_FAST_WPM
from .models import (
    AggregateTagData,
    FillerTagData,
    HedgingTagData,
    PaceTagData,
    Segment,
    Tag,
    Token,
    TokenWithTags,
)


FILLER_WORDS = {
    "um",
    "uh",
    "uhm",
    "umm",
    "er",
    "ah",
    "like",
    "you know",
    "so",
    "basically",
    "actually",
    "literally",
    "right",
    "okay",
    "well",
}
HEDGING_PHRASES = [
    ("sort", "of"),
    ("kind", "of"),
    ("i", "think"),
    ("i", "guess"),
    ("i", "mean"),
    ("maybe",),
    ("perhaps",),
    ("probably",),
    ("might",),
    ("could", "be"),
]
MULTI_WORD_FILLERS = [
    tuple(phrase.split(" ")) for phrase in sorted(FILLER_WORDS) if " " in phrase
]


@dataclass(frozen=True)
class PhraseMatch:
    phrase: str
    start_index: int
    end_index: int


def normalize_word(raw_word: str) -> str:
    lowered = str(raw_word or "").lower().strip()
    return lowered.strip(",.!?;:")


def _matches_at(words: list[str], index: int, phrase: tuple[str, ...]) -> bool:
    end = index + len(phrase)
    return end <= len(words) and tuple(words[index:end]) == phrase


def find_fillers(words: list[str]) -> list[PhraseMatch]:
    matches: list[PhraseMatch] = []
    index = 0
    while index < len(words):
        word = words[index]
        multi = next((p for p in MULTI_WORD_FILLERS if _matches_at(words, index, p)), None)
        if multi is not None:
            matches.append(PhraseMatch(" ".join(multi), index, index + len(multi) - 1))
            index += len(multi)
            continue
        if word in FILLER_WORDS:
            matches.append(PhraseMatch(word, index, index))
        index += 1
    return matches


def find_hedging(words: list[str]) -> list[PhraseMatch]:
    matches: list[PhraseMatch] = []
    index = 0
    while index < len(words):
        phrase = next((p for p in HEDGING_PHRASES if _matches_at(words, index, p)), None)
        if phrase is None:
            index += 1
            continue
        matches.append(PhraseMatch(" ".join(phrase), index, index + len(phrase) - 1))
        index += len(phrase)
    return matches


def words_per_minute(token_count: int, duration_ms: int) -> float:
    if duration_ms <= 0:
        return 0.0
    return token_count / (duration_ms / 1000.0) * 60.0


def classify_pace(wpm: float) -> Optional[tuple[str, str]]:
    """Return ``(status, severity)`` for an out-of-band pace, ``None`` when normal.

    The three bands do not overlap, so at most one pace tag is ever produced.
    """
    if wpm < SLOW_WPM:
        return "slow", "medium"
    if wpm > VERY_FAST_WPM:
        return "very_fast", "high"
    if wpm > FAST_WPM:
        return "fast", "medium"
    return None


_PACE_LABEL_SUFFIX = {
    "very_fast": " - way too fast! Target 110-160",
    "fast": " - slightly fast, target 110-160",
    "slow": " - too slow, target 110-160",
}


def tag_segment(tokens: list[Token], segment_index: int, conversation_id: str) -> Segment:
    """Tag one speech segment with filler, hedging and pace findings.

    Pure function of its arguments: the same tokens always yield the same
    segment, tag ids included.
    """
    if not tokens:
        raise ValueError("Cannot tag an empty segment.")

    segment_id = f"seg-{conversation_id}-{segment_index}"
    start_ms = tokens[0].start_ms
    end_ms = tokens[-1].end_ms
    words = [normalize_word(token.text) for token in tokens]
    fillers = find_fillers(words)
    hedges = find_hedging(words)

    token_tags: list[list[Tag]] = [[] for _ in tokens]
    for filler in fillers:
        token = tokens[filler.start_index]
        token_tags[filler.start_index].append(
            Tag(
                id=f"{token.id}-filler",
                kind="filler",
                severity="medium",
                label=f"Filler word: '{filler.phrase}'",
                data=FillerTagData(
                    normalized=filler.phrase,
                    start_index=filler.start_index,
                    end_index=filler.end_index,
                ),
            )
        )
    for hedge in hedges:
        for position in range(hedge.start_index, hedge.end_index + 1):
            token_tags[position].append(
                Tag(
                    id=f"{tokens[position].id}-hedging",
                    kind="hedging",
                    severity="medium",
                    label=f"Hedging phrase: '{hedge.phrase}'",
                    data=HedgingTagData(
                        phrase=hedge.phrase,
                        start_index=hedge.start_index,
                        end_index=hedge.end_index,
                    ),
                )
            )

    tagged_tokens = [
        TokenWithTags(
            id=token.id,
            start_ms=token.start_ms,
            end_ms=token.end_ms,
            text=token.text,
            tags=tags,
        )
        for token, tags in zip(tokens, token_tags)
    ]

    segment_tags: list[Tag] = []
    wpm = words_per_minute(len(tokens), end_ms - start_ms)
    pace = classify_pace(wpm)
    if pace is not None:
        status, severity = pace
        segment_tags.append(
            Tag(
                id=f"{segment_id}-pace",
                kind=status,
                severity=severity,
                label=f"Segment spoken at ~{wpm:.0f} WPM{_PACE_LABEL_SUFFIX[status]}",
                data=PaceTagData(wpm=round(wpm, 1), status=status),
            )
        )

    filler_count = sum(1 for tags in token_tags for tag in tags if tag.kind == "filler")
    if filler_count > 2:
        segment_tags.append(
            Tag(
                id=f"{segment_id}-filler",
                kind="filler",
                severity="high" if filler_count > 4 else "medium",
                label=f"Multiple filler words detected ({filler_count})",
                data=AggregateTagData(count=filler_count),
            )
        )

    if len(hedges) > 1:
        segment_tags.append(
            Tag(
                id=f"{segment_id}-hedging",
                kind="hedging",
                severity="high" if len(hedges) > 2 else "medium",
                label=f"Multiple hedging phrases weaken your message ({len(hedges)} instances)",
                data=AggregateTagData(count=len(hedges)),
            )
        )

    return Segment(
        id=segment_id,
        start_ms=start_ms,
        end_ms=end_ms,
        kind="speech",
        text=" ".join(token.text for token in tokens),
        tokens=tagged_tokens,
        tags=segment_tags,
    )
