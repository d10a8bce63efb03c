from __future__ import annotations

import logging
import threading
import time
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from typing import Callable, Optional

from .config import AnalysisSettings
from .constants import MAX_ERROR_CHARS
from .enrichment_highlights import derive_highlights, fallback_highlights
from .enrichment_input import EnrichmentInput
from .enrichment_issues import derive_issues, fallback_issues
from .enrichment_title import derive_title, title_fallback_for
from .llm_client import TextGenerator
from .models import CoachingHighlight, Issue, Metrics, Segment


logger = logging.getLogger("uvicorn.error")

CANCEL_POLL_SECONDS = 0.05


@dataclass(frozen=True)
class EnrichmentResult:
    issues: list[Issue]
    title: str
    highlights: list[CoachingHighlight]
    sources: dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class _Branch:
    name: str
    model: str
    derive: Callable
    fallback: Callable[[], object]


def build_enrichment_input(conversation_id: str, segments: list[Segment], metrics: Metrics) -> EnrichmentInput:
    speech = tuple(segments)
    return EnrichmentInput(
        conversation_id=conversation_id,
        segments=speech,
        metrics=metrics,
        baseline_issues=tuple(fallback_issues(conversation_id, speech, metrics)),
    )


def _branches(context: EnrichmentInput, settings: AnalysisSettings) -> list[_Branch]:
    baseline = list(context.baseline_issues)
    return [
        _Branch("issues", settings.models.issues, derive_issues, lambda: baseline),
        _Branch("title", settings.models.title, derive_title, lambda: title_fallback_for(context)),
        _Branch(
            "highlights",
            settings.models.highlights,
            derive_highlights,
            lambda: fallback_highlights(context.metrics, baseline),
        ),
    ]


def _error_text(exc: BaseException) -> str:
    text = str(exc) or exc.__class__.__name__
    return text[:MAX_ERROR_CHARS]


def run_enrichment(
    context: EnrichmentInput,
    generator: TextGenerator,
    settings: AnalysisSettings,
    cancel_event: Optional[threading.Event] = None,
) -> EnrichmentResult:
    """Run the issues, title and highlights derivations concurrently.

    Every branch always yields a value: model output when the call succeeds
    within its timeout and parses, otherwise the branch's deterministic
    fallback. The join waits at most ``settings.enrichment_timeout_seconds``;
    setting ``cancel_event`` stops waiting early. ``sources`` records
    ``derived`` or ``fallback`` per branch.
    """
    start_ts = time.monotonic()
    deadline = start_ts + settings.enrichment_timeout_seconds
    branches = _branches(context, settings)
    values: dict[str, object] = {}
    sources: dict[str, str] = {}

    def _use_fallback(branch: _Branch, reason: str) -> None:
        values[branch.name] = branch.fallback()
        sources[branch.name] = "fallback"
        logger.warning(
            "conversation_id=%s enrichment_fallback branch=%s reason=%s",
            context.conversation_id,
            branch.name,
            reason,
        )

    pool = ThreadPoolExecutor(max_workers=len(branches), thread_name_prefix="enrichment")
    try:
        futures: dict[Future, _Branch] = {
            pool.submit(
                branch.derive,
                context,
                generator,
                model=branch.model,
                timeout_seconds=settings.llm_timeout_seconds,
            ): branch
            for branch in branches
        }
        pending = set(futures)
        stop_reason = "timeout"

        while pending:
            if cancel_event is not None and cancel_event.is_set():
                stop_reason = "cancelled"
                break
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                break
            if cancel_event is not None:
                remaining = min(remaining, CANCEL_POLL_SECONDS)
            done, pending = wait(pending, timeout=remaining, return_when=FIRST_COMPLETED)

            for future in done:
                branch = futures[future]
                try:
                    values[branch.name] = future.result()
                    sources[branch.name] = "derived"
                except Exception as exc:
                    _use_fallback(branch, _error_text(exc))

        for future in pending:
            future.cancel()
            _use_fallback(futures[future], stop_reason)
    finally:
        pool.shutdown(wait=False, cancel_futures=True)

    logger.info(
        "conversation_id=%s enrichment_done provider=%s sources=%s elapsed_ms=%s",
        context.conversation_id,
        getattr(generator, "name", type(generator).__name__),
        sources,
        int((time.monotonic() - start_ts) * 1000),
    )
    return EnrichmentResult(
        issues=values["issues"],
        title=values["title"],
        highlights=values["highlights"],
        sources=sources,
    )
