from __future__ import annotations

import io
import json
from pathlib import Path
from typing import List, Optional

import pytest

from voicelab_web.adapters.sqlserver_presets import CharacterPreset
from voicelab_web.app_factory import create_app
from voicelab_web.config.ini_config import IniConfig
from voicelab_web.domain.models import ServiceResponse
from voicelab_web.services.comparison_service import ComparisonService
from voicelab_web.services.request_executor import RequestExecutor
from voicelab_web.web.routes import DECODE_FAILED_MESSAGE

RESULT = {
    "similarity_score": 64,
    "quality_grade": "C",
    "verdict_summary": "Recognisably the same voice, but noticeably synthetic.",
    "comparison_points": {
        "intonation_match": "Flat where A rises.",
        "pacing_match": "Rushed.",
        "timbre_match": "Metallic edge absent in A.",
    },
    "flaws_detected_in_candidate": ["Robotic micro-pause after 'listen'"],
    "is_improvement": False,
}


# -----------------------------
# Test doubles
# -----------------------------
class FakeTransport:
    def __init__(self, responses: List[ServiceResponse]):
        self._responses = list(responses)
        self.calls: List[dict] = []

    async def __call__(self, body: dict) -> ServiceResponse:
        self.calls.append(body)
        return self._responses.pop(0)


class FakePresetRepository:
    def __init__(self, presets: List[CharacterPreset], fail: bool = False):
        self._presets = {p.preset_id: p for p in presets}
        self._fail = fail

    def get_active_presets(self) -> List[CharacterPreset]:
        if self._fail:
            raise RuntimeError("login failed")
        return list(self._presets.values())

    def get_preset(self, preset_id: int) -> Optional[CharacterPreset]:
        return self._presets.get(preset_id)


async def no_sleep(seconds: float) -> None:
    return None


# -----------------------------
# Helpers
# -----------------------------
SAGE = CharacterPreset(
    preset_id=7,
    project_name="Dragonfall",
    character_name="Old Sage",
    character_description="Elderly, warm, slow and deliberate",
    reference_script="The mountain remembers.",
    is_active=True,
)


def ok(text: str) -> ServiceResponse:
    return ServiceResponse(200, {"candidates": [{"content": {"parts": [{"text": text}]}}]})


@pytest.fixture
def ini(tmp_path: Path) -> IniConfig:
    p = tmp_path / "VoiceLabCompare.ini"
    p.write_text("[prompt]\ndefault_character = Narrator\n[flask]\ndebug = false\n", encoding="utf-8")
    return IniConfig(p)


def make_client(ini: IniConfig, responses: List[ServiceResponse], preset_repo=None):
    transport = FakeTransport(responses)
    service = ComparisonService(executor=RequestExecutor(transport=transport, sleep=no_sleep))
    app = create_app(ini, comparison_service=service, preset_repo=preset_repo)
    app.config["TESTING"] = True
    return app.test_client(), transport, service


def upload_form(**fields) -> dict:
    data = {
        "character_description": "Grumpy Wizard",
        "reference_script": "",
        "reference_audio": (io.BytesIO(b"RIFF-reference"), "reference.wav", "audio/wav"),
        "candidate_audio": (io.BytesIO(b"RIFF-candidate"), "candidate.wav", "audio/wav"),
    }
    data.update(fields)
    return {k: v for k, v in data.items() if v is not None}


# -----------------------------
# Form pages
# -----------------------------
def test_index_renders_with_default_character(ini):
    client, _, _ = make_client(ini, [])

    resp = client.get("/")

    assert resp.status_code == 200
    assert b'value="Narrator"' in resp.data


def test_index_prefills_from_preset(ini):
    client, _, _ = make_client(ini, [], preset_repo=FakePresetRepository([SAGE]))

    resp = client.get("/?preset_id=7")

    assert resp.status_code == 200
    assert b"Dragonfall - Old Sage" in resp.data
    assert b"Elderly, warm, slow and deliberate" in resp.data
    assert b"The mountain remembers." in resp.data


def test_index_reports_unknown_preset(ini):
    client, _, _ = make_client(ini, [], preset_repo=FakePresetRepository([SAGE]))

    resp = client.get("/?preset_id=99")

    assert b"Preset id 99 not found or inactive." in resp.data


def test_index_survives_preset_database_failure(ini):
    client, _, _ = make_client(ini, [], preset_repo=FakePresetRepository([], fail=True))

    resp = client.get("/")

    assert resp.status_code == 200
    assert b"Failed to load character presets" in resp.data


def test_compare_form_renders_result(ini):
    client, transport, _ = make_client(ini, [ok(json.dumps(RESULT))])

    resp = client.post("/compare", data=upload_form(), content_type="multipart/form-data")

    assert resp.status_code == 200
    assert b"Grade C" in resp.data
    assert b"64%" in resp.data
    assert b"Robotic micro-pause" in resp.data
    assert b"(1 Issues)" in resp.data
    assert len(transport.calls) == 1


def test_compare_form_missing_file_shows_error(ini):
    client, transport, _ = make_client(ini, [])

    resp = client.post("/compare", data=upload_form(candidate_audio=None), content_type="multipart/form-data")

    assert resp.status_code == 400
    assert b"Both In-Game Reference and New TTS files are required." in resp.data
    assert transport.calls == []


# -----------------------------
# JSON API
# -----------------------------
def test_api_compare_success(ini):
    client, _, _ = make_client(ini, [ServiceResponse(503, {}), ok(json.dumps(RESULT))])

    resp = client.post("/api/compare", data=upload_form(), content_type="multipart/form-data")

    assert resp.status_code == 200
    body = resp.get_json()
    assert body["status"] == "ok"
    assert body["result"] == RESULT
    assert body["progress"] == ["Server busy, retrying (1/5)..."]


def test_api_compare_uses_preset_when_form_fields_blank(ini):
    client, transport, _ = make_client(ini, [ok(json.dumps(RESULT))], preset_repo=FakePresetRepository([SAGE]))

    resp = client.post(
        "/api/compare",
        data=upload_form(character_description="", preset_id="7"),
        content_type="multipart/form-data",
    )

    assert resp.status_code == 200
    prompt = transport.calls[0]["contents"][0]["parts"][0]["text"]
    assert "Character: Elderly, warm, slow and deliberate" in prompt
    assert 'Script: "The mountain remembers."' in prompt


def test_api_compare_missing_input(ini):
    client, transport, _ = make_client(ini, [])

    resp = client.post("/api/compare", data=upload_form(reference_audio=None), content_type="multipart/form-data")

    assert resp.status_code == 400
    assert resp.get_json()["kind"] == "input"
    assert transport.calls == []


def test_api_compare_exhausted(ini):
    client, transport, service = make_client(ini, [ServiceResponse(503, {})] * 5)

    resp = client.post("/api/compare", data=upload_form(), content_type="multipart/form-data")

    assert resp.status_code == 502
    body = resp.get_json()
    assert body["kind"] == "transient"
    assert body["message"] == "Error: Model is overloaded. Please try again in a moment."
    assert len(body["progress"]) == 4
    assert len(transport.calls) == 5
    assert not service.busy


def test_api_compare_decode_failure(ini):
    client, transport, _ = make_client(ini, [ok("definitely not json")])

    resp = client.post("/api/compare", data=upload_form(), content_type="multipart/form-data")

    assert resp.status_code == 502
    assert resp.get_json()["message"] == DECODE_FAILED_MESSAGE
    assert len(transport.calls) == 1


def test_api_compare_rejects_while_busy(ini):
    client, transport, service = make_client(ini, [ok(json.dumps(RESULT))])

    service._lock.acquire()
    try:
        resp = client.post("/api/compare", data=upload_form(), content_type="multipart/form-data")
    finally:
        service._lock.release()

    assert resp.status_code == 409
    assert resp.get_json()["kind"] == "busy"
    assert transport.calls == []


def test_compare_form_shows_uploaded_file_names(ini):
    client, _, _ = make_client(ini, [ok(json.dumps(RESULT))])

    resp = client.post("/compare", data=upload_form(), content_type="multipart/form-data")

    assert b"reference.wav" in resp.data
    assert b"candidate.wav" in resp.data


def test_compare_form_error_keeps_preset_selection(ini):
    client, _, _ = make_client(ini, [], preset_repo=FakePresetRepository([SAGE]))

    resp = client.post(
        "/compare",
        data=upload_form(candidate_audio=None, preset_id="7"),
        content_type="multipart/form-data",
    )

    assert resp.status_code == 400
    assert b"Dragonfall - Old Sage" in resp.data
    assert b'name="preset_id" value="7"' in resp.data


def test_compare_form_error_survives_preset_database_failure(ini):
    client, _, _ = make_client(ini, [], preset_repo=FakePresetRepository([], fail=True))

    resp = client.post("/compare", data=upload_form(candidate_audio=None), content_type="multipart/form-data")

    assert resp.status_code == 400
    assert b"Both In-Game Reference and New TTS files are required." in resp.data


# -----------------------------
# Upload size limit
# -----------------------------
@pytest.fixture
def small_upload_ini(tmp_path: Path) -> IniConfig:
    p = tmp_path / "VoiceLabCompare.ini"
    p.write_text("[upload]\nmax_upload_mb = 1\n[flask]\ndebug = false\n", encoding="utf-8")
    return IniConfig(p)


def oversized_form() -> dict:
    return upload_form(candidate_audio=(io.BytesIO(b"\0" * (2 * 1024 * 1024)), "candidate.wav", "audio/wav"))


def test_api_compare_oversized_upload_is_json_413(small_upload_ini):
    client, transport, _ = make_client(small_upload_ini, [])

    resp = client.post("/api/compare", data=oversized_form(), content_type="multipart/form-data")

    assert resp.status_code == 413
    body = resp.get_json()
    assert body["status"] == "error"
    assert body["kind"] == "input"
    assert "1 MB" in body["message"]
    assert transport.calls == []


def test_compare_form_oversized_upload_rerenders_form(small_upload_ini):
    client, transport, _ = make_client(small_upload_ini, [], preset_repo=FakePresetRepository([SAGE]))

    resp = client.post("/compare", data=oversized_form(), content_type="multipart/form-data")

    assert resp.status_code == 413
    assert b"Upload too large" in resp.data
    assert b"Dragonfall - Old Sage" in resp.data
    assert transport.calls == []
