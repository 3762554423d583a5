"""Recover a JSON value from free-form model output.

Models asked for JSON still wrap it in prose or markdown fences. Stages run in a
fixed order and the first one that parses wins:

1. the whole trimmed text,
2. the interior of a ```` ```json ```` fenced block,
3. the span from the first ``{`` to the last ``}``.

The brace span is a blunt heuristic: stray braces in surrounding prose can
splice two unrelated fragments together. Nothing smarter is attempted.
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass
from typing import Any, Union

FENCED_BLOCK = re.compile(r"```(?:\s*json)?\s*\n(.*?)\n```", re.IGNORECASE | re.DOTALL)

STAGE_DIRECT = "direct"
STAGE_FENCED = "fenced"
STAGE_BRACE = "brace"


@dataclass(frozen=True)
class Parsed:
    value: Any
    stage: str


@dataclass(frozen=True)
class Failed:
    raw_text: str


ExtractionOutcome = Union[Parsed, Failed]


def _reject_constant(name: str) -> Any:
    raise ValueError(f"Non-standard JSON constant: {name}")


def _loads(text: str) -> tuple[bool, Any]:
    try:
        return True, json.loads(text, parse_constant=_reject_constant)
    except (ValueError, RecursionError):
        # json.JSONDecodeError is a ValueError subclass; deep nesting exhausts the recursion limit
        return False, None


def _direct(text: str) -> tuple[bool, Any]:
    return _loads(text.strip())


def _fenced(text: str) -> tuple[bool, Any]:
    match = FENCED_BLOCK.search(text)
    if not match:
        return False, None
    return _loads(match.group(1).strip())


def _brace_span(text: str) -> tuple[bool, Any]:
    start = text.find("{")
    end = text.rfind("}")
    if start == -1 or end <= start:
        return False, None
    return _loads(text[start:end + 1])


def extract_json(text: str) -> ExtractionOutcome:
    """Run the recovery stages against ``text`` and return the first success."""
    for stage, attempt in (
        (STAGE_DIRECT, _direct),
        (STAGE_FENCED, _fenced),
        (STAGE_BRACE, _brace_span),
    ):
        ok, value = attempt(text)
        if ok:
            return Parsed(value, stage)
    return Failed(text)
