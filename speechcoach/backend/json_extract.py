from __future__ import annotations

import json
from typing import Any, Optional, TypeVar

from pydantic import TypeAdapter, ValidationError


T = TypeVar("T")

_CLOSERS = {"{": "}", "[": "]"}


def _balanced_span_end(text: str, start: int) -> Optional[int]:
    stack: list[str] = []
    in_string = False
    escaped = False
    for position in range(start, len(text)):
        char = text[position]
        if in_string:
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == '"':
                in_string = False
            continue
        if char == '"':
            in_string = True
        elif char in _CLOSERS:
            stack.append(_CLOSERS[char])
        elif char in ("}", "]"):
            if not stack or stack.pop() != char:
                return None
            if not stack:
                return position
    return None


def extract_json(raw_content: str) -> Any:
    """Best-effort recovery of the first JSON value embedded in model output.

    Plain JSON is parsed directly. Otherwise every ``{`` or ``[`` is tried in
    order and the first balanced span that parses wins, so code fences,
    preambles and trailing prose are tolerated.
    """
    content = (raw_content or "").strip()
    if not content:
        raise ValueError("Model output is empty.")
    try:
        return json.loads(content)
    except json.JSONDecodeError:
        pass

    for start, char in enumerate(content):
        if char not in _CLOSERS:
            continue
        end = _balanced_span_end(content, start)
        if end is None:
            continue
        try:
            return json.loads(content[start : end + 1])
        except json.JSONDecodeError:
            continue
    raise ValueError("Model output does not contain a parseable JSON object or array.")


def parse_model_output(raw_content: str, schema: Any) -> Any:
    """Extract JSON from ``raw_content`` and validate it against ``schema``.

    Validation failures are raised as ``ValueError`` so callers treat a bad
    shape exactly like unparseable text.
    """
    payload = extract_json(raw_content)
    try:
        return TypeAdapter(schema).validate_python(payload)
    except ValidationError as exc:
        raise ValueError(f"Model output failed schema validation: {exc.error_count()} error(s).") from exc
