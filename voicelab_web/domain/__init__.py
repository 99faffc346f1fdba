from .errors import (
    AudioReadError,
    ComparisonBusyError,
    ComparisonError,
    DecodeError,
    FatalServiceError,
    InputError,
    TransientServiceError,
)
from .models import (
    AnalysisResult,
    AttemptOutcome,
    AudioInput,
    ComparisonPoints,
    ComparisonRequest,
    EncodedAudio,
    RequestAttempt,
    ServiceResponse,
)

__all__ = [
    "AnalysisResult",
    "AttemptOutcome",
    "AudioInput",
    "AudioReadError",
    "ComparisonBusyError",
    "ComparisonError",
    "ComparisonPoints",
    "ComparisonRequest",
    "DecodeError",
    "EncodedAudio",
    "FatalServiceError",
    "InputError",
    "RequestAttempt",
    "ServiceResponse",
    "TransientServiceError",
]
