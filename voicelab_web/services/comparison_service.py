from __future__ import annotations

import asyncio
import logging
import threading
from dataclasses import dataclass, field
from typing import Optional

from voicelab_web.domain.errors import ComparisonBusyError, InputError
from voicelab_web.domain.models import AnalysisResult, AudioInput, ComparisonRequest
from voicelab_web.services.audio_encoding import audio_filename, encode_audio
from voicelab_web.services.prompt_builder import build_prompts
from voicelab_web.services.request_executor import (
    AttemptObserver,
    ProgressCallback,
    RequestExecutor,
)
from voicelab_web.services.result_decoder import decode_result

logger = logging.getLogger(__name__)


def _is_missing(audio) -> bool:
    if audio is None:
        return True
    # FileStorage with no file selected has an empty filename
    if hasattr(audio, "filename") and not getattr(audio, "filename", "") and hasattr(audio, "stream"):
        return True
    if isinstance(audio, AudioInput):
        return not audio.data
    if isinstance(audio, (bytes, bytearray)):
        return len(audio) == 0
    return False


@dataclass
class ComparisonService:
    """
    Service layer: one reference-vs-candidate comparison.
    Keeps controllers/routes thin.
    """
    executor: RequestExecutor
    _lock: threading.Lock = field(default_factory=threading.Lock, init=False, repr=False)

    @property
    def busy(self) -> bool:
        return self._lock.locked()

    async def compare(
        self,
        request: ComparisonRequest,
        *,
        on_progress: Optional[ProgressCallback] = None,
        on_attempt: Optional[AttemptObserver] = None,
    ) -> AnalysisResult:
        if _is_missing(request.reference_audio) or _is_missing(request.candidate_audio):
            raise InputError("Both In-Game Reference and New TTS files are required.")

        if not self._lock.acquire(blocking=False):
            raise ComparisonBusyError("A comparison is already running. Wait for it to finish.")
        try:
            logger.info(
                "Comparing candidate %r against reference %r",
                audio_filename(request.candidate_audio) or "<unnamed>",
                audio_filename(request.reference_audio) or "<unnamed>",
            )
            reference = encode_audio(request.reference_audio)
            candidate = encode_audio(request.candidate_audio)
            system_instruction, user_prompt = build_prompts(
                request.character_description,
                request.reference_script,
            )

            envelope = await self.executor.execute(
                system_instruction,
                user_prompt,
                reference,
                candidate,
                on_progress=on_progress,
                on_attempt=on_attempt,
            )
            result = decode_result(envelope)
            logger.info(
                "Comparison finished: score=%d grade=%s flaws=%d",
                result.similarity_score,
                result.quality_grade,
                result.flaw_count,
            )
            return result
        finally:
            self._lock.release()

    def compare_sync(self, request: ComparisonRequest, **kwargs) -> AnalysisResult:
        return asyncio.run(self.compare(request, **kwargs))
