from __future__ import annotations

import base64
from typing import Any

from voicelab_web.domain.errors import AudioReadError
from voicelab_web.domain.models import AudioInput, EncodedAudio

DEFAULT_AUDIO_MIME = "audio/wav"


def _read_all(source: Any) -> bytes:
    if isinstance(source, AudioInput):
        return source.data
    if isinstance(source, (bytes, bytearray)):
        return bytes(source)
    data = source.read()
    if isinstance(data, str):
        raise AudioReadError("Audio input was opened in text mode.")
    return data


def _declared_mime(source: Any) -> str:
    # FileStorage exposes .mimetype, AudioInput .mime_type
    mime = getattr(source, "mime_type", None) or getattr(source, "mimetype", None) or ""
    return mime.strip() or DEFAULT_AUDIO_MIME


def audio_filename(source: Any) -> str:
    """Uploaded file name for AudioInput / FileStorage / open files; "" for raw bytes."""
    if isinstance(source, (bytes, bytearray)):
        return ""
    # FileStorage.name is the form field, so prefer .filename when it exists
    if hasattr(source, "filename"):
        name = source.filename or ""
    else:
        name = getattr(source, "name", "") or ""
    return name if isinstance(name, str) else ""


def encode_audio(source: Any) -> EncodedAudio:
    """
    Read the whole input and return it as base64 text plus its MIME type.
    Raises AudioReadError when the handle cannot be read.
    """
    try:
        raw = _read_all(source)
    except AudioReadError:
        raise
    except (OSError, ValueError) as e:
        # ValueError: read on a closed file
        raise AudioReadError(f"Could not read audio input: {e}") from e

    return EncodedAudio(
        data=base64.b64encode(raw).decode("ascii"),
        mime_type=_declared_mime(source),
    )
