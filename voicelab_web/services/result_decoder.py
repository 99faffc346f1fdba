from __future__ import annotations

import json
import re
from typing import Any

from voicelab_web.domain.errors import DecodeError
from voicelab_web.domain.models import QUALITY_GRADES, AnalysisResult, ComparisonPoints

_FENCE_RE = re.compile(r"^```(?:json)?\s*(.*?)\s*```$", flags=re.DOTALL | re.IGNORECASE)


def extract_text(envelope: dict) -> str:
    """candidates[0].content.parts[0].text"""
    try:
        text = envelope["candidates"][0]["content"]["parts"][0]["text"]
    except (KeyError, IndexError, TypeError) as e:
        raise DecodeError("Response did not contain any model text.") from e
    if not isinstance(text, str):
        raise DecodeError("Model text is not a string.")
    return text


def _strip_fence(text: str) -> str:
    text = text.strip()
    m = _FENCE_RE.match(text)
    return m.group(1) if m else text


def _require(obj: dict, key: str, kind: type) -> Any:
    if key not in obj:
        raise DecodeError(f"Missing field: {key}")
    value = obj[key]
    # bool is an int subclass; keep it out of numeric fields
    if kind is int and isinstance(value, bool):
        raise DecodeError(f"Field {key} must be a number.")
    if kind is int and isinstance(value, float) and value.is_integer():
        value = int(value)
    if not isinstance(value, kind):
        raise DecodeError(f"Field {key} has unexpected type {type(value).__name__}.")
    return value


def parse_result(data: Any) -> AnalysisResult:
    if not isinstance(data, dict):
        raise DecodeError("Model output is not a JSON object.")

    score = _require(data, "similarity_score", int)
    if not 0 <= score <= 100:
        raise DecodeError(f"similarity_score out of range: {score}")

    grade = _require(data, "quality_grade", str).strip().upper()
    if grade not in QUALITY_GRADES:
        raise DecodeError(f"quality_grade must be one of {', '.join(QUALITY_GRADES)}, got {grade!r}")

    points = _require(data, "comparison_points", dict)
    flaws = _require(data, "flaws_detected_in_candidate", list)
    if not all(isinstance(f, str) for f in flaws):
        raise DecodeError("flaws_detected_in_candidate must be a list of strings.")

    return AnalysisResult(
        similarity_score=score,
        quality_grade=grade,
        verdict_summary=_require(data, "verdict_summary", str),
        comparison_points=ComparisonPoints(
            intonation_match=_require(points, "intonation_match", str),
            pacing_match=_require(points, "pacing_match", str),
            timbre_match=_require(points, "timbre_match", str),
        ),
        flaws=tuple(flaws),
        is_improvement=_require(data, "is_improvement", bool),
    )


def decode_result(envelope: dict) -> AnalysisResult:
    text = _strip_fence(extract_text(envelope))
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise DecodeError(f"Model text is not valid JSON: {e.msg}") from e
    return parse_result(data)
