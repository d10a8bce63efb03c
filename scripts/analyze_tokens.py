#!/usr/bin/env python3
import argparse
import json
import logging
import random
import sys
from dataclasses import replace
from pathlib import Path
from typing import List

from pydantic import TypeAdapter

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from speechcoach.backend.analysis_job import words_to_tokens  # noqa: E402
from speechcoach.backend.config import load_settings  # noqa: E402
from speechcoach.backend.llm_client import build_text_generator  # noqa: E402
from speechcoach.backend.models import IngestWord, Token  # noqa: E402
from speechcoach.backend.pipeline import analyze_tokens  # noqa: E402


def load_tokens(path: Path, conversation_id: str) -> List[Token]:
    """Accept either stored token rows or a ``{"words": [...]}`` transcription payload."""
    payload = json.loads(path.read_text(encoding="utf-8"))
    if isinstance(payload, dict) and "words" in payload:
        words = TypeAdapter(List[IngestWord]).validate_python(payload["words"])
        return words_to_tokens(conversation_id, words, float(payload.get("timestamp", 0.0)))
    return TypeAdapter(List[Token]).validate_python(payload)


def main() -> None:
    parser = argparse.ArgumentParser(description="Run the speech analysis pipeline on a token file.")
    parser.add_argument("--tokens", required=True, help="Path to a JSON token list or words payload.")
    parser.add_argument("--conversation-id", default="local", help="Conversation id used for segment ids.")
    parser.add_argument(
        "--provider",
        choices=["offline", "httpx", "openai"],
        default="offline",
        help="LLM provider; offline uses deterministic fallbacks only.",
    )
    parser.add_argument("--seed", type=int, default=None, help="Seed for placeholder biometrics.")
    parser.add_argument("--output", default=None, help="Write the analysis JSON here instead of stdout.")
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(message)s")

    tokens_path = Path(args.tokens).expanduser().resolve()
    if not tokens_path.exists():
        raise FileNotFoundError(f"Token file not found: {tokens_path}")

    settings = replace(load_settings(), llm_provider=args.provider)
    tokens = load_tokens(tokens_path, args.conversation_id)
    result = analyze_tokens(
        tokens,
        args.conversation_id,
        generator=build_text_generator(settings),
        settings=settings,
        rng=random.Random(args.seed) if args.seed is not None else None,
    )

    rendered = json.dumps(result.to_json_dict(), ensure_ascii=False, indent=2)
    if args.output:
        Path(args.output).write_text(rendered + "\n", encoding="utf-8")
        print(f"wrote analysis: {args.output}")
    else:
        print(rendered)


if __name__ == "__main__":
    main()
