######## models.py
########

from __future__ import annotations

from dataclasses import asdict, dataclass
from enum import Enum
from typing import Any, Optional, Tuple

QUALITY_GRADES = ("S", "A", "B", "C", "F")


@dataclass(frozen=True)
class AudioInput:
    data: bytes
    mime_type: str = ""
    filename: str = ""


@dataclass(frozen=True)
class EncodedAudio:
    data: str                   # base64 text
    mime_type: str


@dataclass(frozen=True)
class ComparisonRequest:
    # AudioInput, raw bytes or any readable file-like object (e.g. FileStorage)
    reference_audio: Optional[Any]
    candidate_audio: Optional[Any]
    character_description: str = "Narrator"
    reference_script: str = ""


@dataclass(frozen=True)
class ComparisonPoints:
    intonation_match: str
    pacing_match: str
    timbre_match: str


@dataclass(frozen=True)
class AnalysisResult:
    similarity_score: int       # 0..100
    quality_grade: str          # "S" | "A" | "B" | "C" | "F"
    verdict_summary: str
    comparison_points: ComparisonPoints
    flaws: Tuple[str, ...]
    is_improvement: bool

    @property
    def flaw_count(self) -> int:
        return len(self.flaws)

    @property
    def score_band(self) -> str:
        if self.similarity_score > 80:
            return "high"
        if self.similarity_score > 60:
            return "medium"
        return "low"

    def to_dict(self) -> dict:
        """Wire-shaped dict, same keys the model is asked to emit."""
        return {
            "similarity_score": self.similarity_score,
            "quality_grade": self.quality_grade,
            "verdict_summary": self.verdict_summary,
            "comparison_points": asdict(self.comparison_points),
            "flaws_detected_in_candidate": list(self.flaws),
            "is_improvement": self.is_improvement,
        }


@dataclass(frozen=True)
class ServiceResponse:
    status_code: int
    payload: dict               # decoded JSON body, {} when the body was not JSON

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 400


class AttemptOutcome(str, Enum):
    SUCCESS = "success"
    RETRYABLE_FAILURE = "retryable_failure"
    FATAL_FAILURE = "fatal_failure"


@dataclass(frozen=True)
class RequestAttempt:
    attempt_number: int
    outcome: AttemptOutcome
    wait_before_next_ms: int = 0
