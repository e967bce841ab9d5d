"""
Coercion of freeform model output.

Every helper returns a ``ParseResult`` so call sites can tell whether the
model's answer was used as-is (``SUCCESS``), replaced by a default
(``FALLBACK``) or could not be read at all (``FAILED``).
"""

import json
import math
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional, Type

from .logger import logger


EVALUATION_FALLBACK_SCORE = 70


class ParseStatus(str, Enum):
    SUCCESS = "success"
    FALLBACK = "fallback"
    FAILED = "failed"


@dataclass
class ParseResult:
    status: ParseStatus
    value: Any = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status == ParseStatus.SUCCESS


def _try_parse(text: str, description: str = "") -> Optional[dict]:
    try:
        parsed = json.loads(text)
    except (json.JSONDecodeError, TypeError) as e:
        logger.debug(f"JSON parse attempt failed ({description})", error=str(e))
        return None
    return parsed if isinstance(parsed, dict) else None


def repair_json_string(json_text: str) -> str:
    """
    Escape raw newlines, carriage returns and tabs that appear inside JSON strings.

    Args:
        json_text: Potentially malformed JSON string

    Returns:
        Repaired JSON string
    """
    result = []
    in_string = False
    escape_next = False
    i = 0

    while i < len(json_text):
        char = json_text[i]

        if escape_next:
            result.append(char)
            escape_next = False
            i += 1
            continue

        if char == '\\':
            result.append(char)
            escape_next = True
            i += 1
            continue

        if char == '"':
            result.append(char)
            in_string = not in_string
            i += 1
            continue

        if in_string and char == '\n':
            result.append('\\n')
            i += 1
            continue

        if in_string and char == '\r':
            if i + 1 < len(json_text) and json_text[i + 1] == '\n':
                result.append('\\n')
                i += 2
                continue
            result.append('\\r')
            i += 1
            continue

        if in_string and char == '\t':
            result.append('\\t')
            i += 1
            continue

        result.append(char)
        i += 1

    return ''.join(result)


def _balanced_object_end(text: str, start: int) -> int:
    """Index of the brace closing the object opened at ``start``, or -1."""
    brace_count = 0
    in_string = False
    escape_next = False

    for i, char in enumerate(text[start:], start):
        if escape_next:
            escape_next = False
            continue
        if char == '\\':
            escape_next = True
            continue
        if char == '"':
            in_string = not in_string
            continue
        if not in_string:
            if char == '{':
                brace_count += 1
            elif char == '}':
                brace_count -= 1
                if brace_count == 0:
                    return i
    return -1


def extract_json_object(response_text: str) -> Optional[dict]:
    """
    Find a JSON object anywhere inside a model response.

    Tries, in order: the whole text, the greedy span from the first ``{`` to
    the last ``}``, then balanced-brace spans starting at each ``{``. Each
    candidate is also retried after ``repair_json_string``.
    """
    if not response_text:
        return None

    result = _try_parse(response_text.strip(), "direct")
    if result is not None:
        return result

    first_brace = response_text.find('{')
    last_brace = response_text.rfind('}')
    if first_brace == -1 or last_brace <= first_brace:
        return None

    greedy = response_text[first_brace:last_brace + 1]
    result = _try_parse(greedy, "greedy braces") or _try_parse(repair_json_string(greedy), "repaired greedy braces")
    if result is not None:
        return result

    start = first_brace
    while start != -1:
        end = _balanced_object_end(response_text, start)
        if end != -1:
            candidate = response_text[start:end + 1]
            result = _try_parse(candidate, "balanced braces") or _try_parse(repair_json_string(candidate), "repaired JSON")
            if result is not None:
                return result
        start = response_text.find('{', start + 1)

    return None


def parse_json_object(response_text: str) -> ParseResult:
    parsed = extract_json_object(response_text)
    if parsed is None:
        preview = (response_text or "")[:200]
        return ParseResult(ParseStatus.FAILED, error=f"No JSON object found in response: {preview}")
    return ParseResult(ParseStatus.SUCCESS, parsed)


def normalize_score(value: Any, default: int = 50) -> int:
    """
    Clamp a model-supplied score into [0, 100].

    Missing, boolean or non-numeric values become ``default``.
    """
    if value is None or isinstance(value, bool):
        return default
    try:
        number = float(value)
    except (TypeError, ValueError):
        return default
    if math.isnan(number):
        return default
    return int(round(min(100.0, max(0.0, number))))


def parse_evaluation(response_text: str) -> ParseResult:
    """
    Read ``{"score": ..., "feedback": ...}`` from a coaching response.

    Falls back to the fixed score with the raw text as feedback when no usable
    object is present.
    """
    parsed = extract_json_object(response_text)
    if parsed is not None and normalize_score(parsed.get("score"), default=-1) != -1:
        feedback = parsed.get("feedback")
        if not isinstance(feedback, str):
            feedback = json.dumps(feedback) if feedback is not None else ""
        return ParseResult(ParseStatus.SUCCESS, {
            "score": normalize_score(parsed.get("score")),
            "feedback": feedback,
        })

    return ParseResult(
        ParseStatus.FALLBACK,
        {"score": EVALUATION_FALLBACK_SCORE, "feedback": response_text or ""},
        error="Evaluation response did not contain a scored JSON object",
    )


def coerce_enum(value: Any, enum_cls: Type[Enum], default: Enum) -> ParseResult:
    """
    Case-insensitive match of a freeform label onto an enum member.

    "resume-based" and "Resume Based" both resolve to ``RESUME_BASED``.
    """
    if not isinstance(value, str) or not value.strip():
        return ParseResult(ParseStatus.FALLBACK, default)

    key = value.strip().upper().replace("-", "_").replace(" ", "_")
    member = enum_cls.__members__.get(key)
    if member is None:
        return ParseResult(ParseStatus.FALLBACK, default, error=f"Unknown {enum_cls.__name__}: {value}")
    return ParseResult(ParseStatus.SUCCESS, member)
