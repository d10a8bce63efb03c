import os
from dataclasses import dataclass, field


DEFAULT_BASE_URL = "https://api.openai.com/v1"
DEFAULT_FAST_MODEL = "gpt-5-nano-2025-08-07"
DEFAULT_QUALITY_MODEL = "gpt-5-mini-2025-08-07"
DEFAULT_LLM_TIMEOUT_SECONDS = 30.0
DEFAULT_ENRICHMENT_TIMEOUT_SECONDS = 45.0


def _env(name: str, default: str) -> str:
    return os.getenv(name, default).strip() or default


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        value = float(raw)
    except ValueError as exc:
        raise RuntimeError(f"{name} must be a number, got {raw!r}.") from exc
    if value <= 0:
        raise RuntimeError(f"{name} must be positive, got {raw!r}.")
    return value


@dataclass(frozen=True)
class EnrichmentModels:
    issues: str = DEFAULT_FAST_MODEL
    title: str = DEFAULT_FAST_MODEL
    highlights: str = DEFAULT_QUALITY_MODEL


@dataclass(frozen=True)
class AnalysisSettings:
    models: EnrichmentModels = field(default_factory=EnrichmentModels)
    llm_provider: str = "httpx"
    llm_timeout_seconds: float = DEFAULT_LLM_TIMEOUT_SECONDS
    enrichment_timeout_seconds: float = DEFAULT_ENRICHMENT_TIMEOUT_SECONDS


def load_settings() -> AnalysisSettings:
    models = EnrichmentModels(
        issues=_env("ISSUES_MODEL", DEFAULT_FAST_MODEL),
        title=_env("TITLE_MODEL", DEFAULT_FAST_MODEL),
        highlights=_env("HIGHLIGHTS_MODEL", DEFAULT_QUALITY_MODEL),
    )
    provider = _env("LLM_PROVIDER", "httpx").lower()
    if provider not in {"httpx", "openai", "offline"}:
        raise RuntimeError(f"LLM_PROVIDER must be one of httpx, openai, offline; got {provider!r}.")
    return AnalysisSettings(
        models=models,
        llm_provider=provider,
        llm_timeout_seconds=_env_float("LLM_TIMEOUT_SECONDS", DEFAULT_LLM_TIMEOUT_SECONDS),
        enrichment_timeout_seconds=_env_float(
            "ENRICHMENT_TIMEOUT_SECONDS", DEFAULT_ENRICHMENT_TIMEOUT_SECONDS
        ),
    )
