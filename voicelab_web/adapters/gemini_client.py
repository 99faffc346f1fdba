from __future__ import annotations

import asyncio
import json
import logging
import time
from dataclasses import dataclass, field
from typing import Optional

import requests

from voicelab_web.domain.errors import TransientServiceError
from voicelab_web.domain.models import ServiceResponse

logger = logging.getLogger(__name__)

CHUNK_SIZE = 64 * 1024


@dataclass
class GeminiClient:
    """
    Transport for the generateContent endpoint. Callable as
    `await client(body)`; returns the HTTP status and decoded JSON body.

    timeout_seconds bounds the whole call (connect + body download), not
    only each socket read.
    """
    base_url: str
    model: str
    api_key: str
    timeout_seconds: Optional[float] = 60.0
    session: requests.Session = field(default_factory=requests.Session)

    @property
    def endpoint(self) -> str:
        return f"{self.base_url.rstrip('/')}/models/{self.model}:generateContent"

    def _timed_out(self, deadline: Optional[float]) -> bool:
        return deadline is not None and time.monotonic() > deadline

    def post(self, body: dict) -> ServiceResponse:
        deadline = time.monotonic() + self.timeout_seconds if self.timeout_seconds else None

        try:
            resp = self.session.post(
                self.endpoint,
                params={"key": self.api_key},
                json=body,
                headers={"Content-Type": "application/json"},
                timeout=self.timeout_seconds,
                stream=True,
            )
            try:
                chunks = []
                for chunk in resp.iter_content(chunk_size=CHUNK_SIZE):
                    chunks.append(chunk)
                    if self._timed_out(deadline):
                        raise TransientServiceError("Request to the model timed out.")
                raw = b"".join(chunks)
            finally:
                resp.close()
        except requests.Timeout as e:
            raise TransientServiceError("Request to the model timed out.") from e
        except requests.RequestException as e:
            # str(e) can include the URL, which carries the key
            raise TransientServiceError(f"Network error: {type(e).__name__}") from e

        try:
            payload = json.loads(raw) if raw else {}
        except ValueError:
            payload = {}
        if not isinstance(payload, dict):
            payload = {}

        logger.debug("POST %s -> %d", self.endpoint, resp.status_code)
        return ServiceResponse(status_code=resp.status_code, payload=payload)

    async def __call__(self, body: dict) -> ServiceResponse:
        worker = asyncio.ensure_future(asyncio.to_thread(self.post, body))
        try:
            return await asyncio.shield(worker)
        except asyncio.CancelledError:
            # The thread cannot be interrupted; wait for it so no request outlives its attempt
            await asyncio.wait({worker})
            if not worker.cancelled() and worker.exception() is not None:
                logger.debug("Abandoned attempt finished with: %s", worker.exception())
            raise
