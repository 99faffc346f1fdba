from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional

from voicelab_web.domain.errors import FatalServiceError, TransientServiceError
from voicelab_web.domain.models import (
    AttemptOutcome,
    EncodedAudio,
    RequestAttempt,
    ServiceResponse,
)

logger = logging.getLogger(__name__)

Transport = Callable[[dict], Awaitable[ServiceResponse]]
Sleep = Callable[[float], Awaitable[None]]
ProgressCallback = Callable[[str], None]
AttemptObserver = Callable[[RequestAttempt], None]

# 4xx codes that still mean "try again later"
_RETRYABLE_CLIENT_STATUSES = {408, 429}


@dataclass(frozen=True)
class RetryPolicy:
    max_attempts: int = 5
    backoff_step_ms: int = 2000
    attempt_timeout_seconds: Optional[float] = 60.0

    def backoff_ms(self, attempt: int) -> int:
        # Linear: 2s, 4s, 6s, 8s for the default step
        return attempt * self.backoff_step_ms


def default_is_retryable(exc: BaseException) -> bool:
    return not isinstance(exc, FatalServiceError)


def retry_everything(exc: BaseException) -> bool:
    return True


def build_request_body(
    system_instruction: str,
    user_prompt: str,
    reference: EncodedAudio,
    candidate: EncodedAudio,
) -> dict:
    return {
        "systemInstruction": {"parts": [{"text": system_instruction}]},
        "contents": [
            {
                "parts": [
                    {"text": user_prompt},
                    {"inlineData": {"mimeType": reference.mime_type, "data": reference.data}},
                    {"inlineData": {"mimeType": candidate.mime_type, "data": candidate.data}},
                ]
            }
        ],
        "generationConfig": {"responseMimeType": "application/json"},
    }


def _error_message(payload: dict, default: str) -> str:
    err = payload.get("error") if isinstance(payload, dict) else None
    if isinstance(err, dict):
        return str(err.get("message") or default)
    if err:
        return str(err)
    return default


def check_response(response: ServiceResponse) -> dict:
    """
    Classifies one response. Returns the envelope on success, raises
    TransientServiceError / FatalServiceError otherwise.
    """
    status = response.status_code
    payload = response.payload if isinstance(response.payload, dict) else {}

    if status == 503:
        raise TransientServiceError("Model is overloaded", status_code=status)

    if not response.ok:
        message = _error_message(payload, "API Error")
        if 400 <= status < 500 and status not in _RETRYABLE_CLIENT_STATUSES:
            raise FatalServiceError(message, status_code=status)
        raise TransientServiceError(message, status_code=status)

    # 200 with an embedded error counts as a failed attempt
    if "error" in payload:
        raise TransientServiceError(_error_message(payload, "API Error"), status_code=status)

    return payload


@dataclass
class RequestExecutor:
    """
    Sends one logical comparison request and absorbs transient failures
    with a bounded, linear backoff.
    """
    transport: Transport
    policy: RetryPolicy = RetryPolicy()
    is_retryable: Callable[[BaseException], bool] = default_is_retryable
    sleep: Sleep = asyncio.sleep

    async def _attempt(self, body: dict) -> dict:
        timeout = self.policy.attempt_timeout_seconds
        try:
            if timeout:
                response = await asyncio.wait_for(self.transport(body), timeout=timeout)
            else:
                response = await self.transport(body)
        except asyncio.TimeoutError as e:
            raise TransientServiceError(f"Attempt timed out after {timeout:g} seconds") from e
        return check_response(response)

    async def execute(
        self,
        system_instruction: str,
        user_prompt: str,
        reference: EncodedAudio,
        candidate: EncodedAudio,
        *,
        on_progress: Optional[ProgressCallback] = None,
        on_attempt: Optional[AttemptObserver] = None,
    ) -> dict:
        body = build_request_body(system_instruction, user_prompt, reference, candidate)
        max_attempts = self.policy.max_attempts

        attempt = 0
        while True:
            attempt += 1
            try:
                envelope = await self._attempt(body)
            except Exception as e:
                if not self.is_retryable(e):
                    logger.error("Attempt %d failed with a non-retryable error: %s", attempt, e)
                    if on_attempt:
                        on_attempt(RequestAttempt(attempt, AttemptOutcome.FATAL_FAILURE))
                    raise

                if attempt >= max_attempts:
                    logger.error("Giving up after %d attempts: %s", attempt, e)
                    if on_attempt:
                        on_attempt(RequestAttempt(attempt, AttemptOutcome.RETRYABLE_FAILURE, 0))
                    if isinstance(e, TransientServiceError):
                        e.attempts = attempt
                        raise
                    raise TransientServiceError(
                        str(e) or type(e).__name__,
                        status_code=getattr(e, "status_code", None),
                        attempts=attempt,
                    ) from e

                wait_ms = self.policy.backoff_ms(attempt)
                if on_attempt:
                    on_attempt(RequestAttempt(attempt, AttemptOutcome.RETRYABLE_FAILURE, wait_ms))
                logger.warning("Attempt %d failed (%s). Retrying in %g seconds...", attempt, e, wait_ms / 1000)
                if on_progress:
                    on_progress(f"Server busy, retrying ({attempt}/{max_attempts})...")
                await self.sleep(wait_ms / 1000)
                continue

            if on_attempt:
                on_attempt(RequestAttempt(attempt, AttemptOutcome.SUCCESS))
            return envelope
