from __future__ import annotations

from typing import Optional


class ComparisonError(Exception):
    """Base for every failure surfaced by a comparison run."""
    kind = "error"


class InputError(ComparisonError, ValueError):
    kind = "input"


class AudioReadError(ComparisonError, OSError):
    kind = "io"


class TransientServiceError(ComparisonError):
    """Overload, transport failure, timeout or an error embedded in the body."""
    kind = "transient"

    def __init__(self, message: str, *, status_code: Optional[int] = None, attempts: int = 0):
        super().__init__(message)
        self.status_code = status_code
        self.attempts = attempts


class FatalServiceError(ComparisonError):
    """Non-transient rejection by the endpoint (bad key, malformed request)."""
    kind = "fatal"

    def __init__(self, message: str, *, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class DecodeError(ComparisonError, ValueError):
    kind = "decode"


class ComparisonBusyError(ComparisonError):
    kind = "busy"
