## routes.py
from __future__ import annotations

from types import SimpleNamespace
from typing import List, Optional, Tuple

from flask import Blueprint, current_app, jsonify, render_template, request
from werkzeug.exceptions import RequestEntityTooLarge

from voicelab_web.config import AppSettings
from voicelab_web.domain.errors import (
    AudioReadError,
    ComparisonBusyError,
    ComparisonError,
    DecodeError,
    InputError,
)
from voicelab_web.domain.models import ComparisonRequest
from voicelab_web.services.audio_encoding import audio_filename

DECODE_FAILED_MESSAGE = "Analysis failed: could not read the model response."


def _safe_int(raw: str | None) -> int | None:
    raw = (raw or "").strip()
    return int(raw) if raw.isdigit() else None


def error_response(e: ComparisonError) -> Tuple[str, int]:
    """Maps a terminal failure to (user message, HTTP status)."""
    if isinstance(e, (InputError, AudioReadError)):
        return str(e), 400
    if isinstance(e, ComparisonBusyError):
        return str(e), 409
    if isinstance(e, DecodeError):
        return DECODE_FAILED_MESSAGE, 502
    return f"Error: {e}. Please try again in a moment.", 502


def create_blueprint(comparison_service, preset_repo, settings: AppSettings) -> Blueprint:
    bp = Blueprint("web", __name__)

    def load_presets() -> List[SimpleNamespace]:
        if preset_repo is None:
            return []
        return [
            SimpleNamespace(id=p.preset_id, name=p.display_label)
            for p in (preset_repo.get_active_presets() or [])
        ]

    def form_model(**overrides) -> dict:
        model = dict(
            presets=[],
            preset_id=None,
            character_description=settings.default_character,
            reference_script="",
            progress=[],
            error=None,
        )
        model.update(overrides)
        return model

    def request_from_form() -> ComparisonRequest:
        preset_id = _safe_int(request.form.get("preset_id"))
        preset = preset_repo.get_preset(preset_id) if (preset_repo is not None and preset_id) else None

        character = (request.form.get("character_description") or "").strip()
        script = (request.form.get("reference_script") or "").strip()
        if preset is not None:
            character = character or (preset.character_description or "").strip()
            script = script or (preset.reference_script or "").strip()

        return ComparisonRequest(
            reference_audio=request.files.get("reference_audio"),
            candidate_audio=request.files.get("candidate_audio"),
            character_description=character or settings.default_character,
            reference_script=script,
        )

    async def run_compare() -> Tuple[Optional[object], List[str], Optional[ComparisonError]]:
        progress: List[str] = []

        def on_progress(message: str) -> None:
            current_app.logger.info(message)
            progress.append(message)

        try:
            result = await comparison_service.compare(request_from_form(), on_progress=on_progress)
        except ComparisonError as e:
            current_app.logger.warning("Comparison failed (%s): %s", e.kind, e)
            return None, progress, e
        return result, progress, None

    @bp.get("/")
    def index():
        preset_id = _safe_int(request.args.get("preset_id"))

        try:
            presets = load_presets()
        except Exception as e:
            current_app.logger.exception("Failed to load character presets from SQL Server")
            return render_template(
                "index.html",
                **form_model(preset_id=preset_id, error=f"Failed to load character presets from SQL Server: {e}"),
            )

        current_app.logger.info("Presets loaded: %d", len(presets))
        page_model = form_model(presets=presets, preset_id=preset_id)

        # If preset selected, fetch it and prefill values
        if preset_id is not None and preset_repo is not None:
            p = preset_repo.get_preset(preset_id)
            if p is None:
                page_model["error"] = f"Preset id {preset_id} not found or inactive."
            else:
                page_model.update(
                    character_description=(p.character_description or "").strip() or settings.default_character,
                    reference_script=(p.reference_script or "").strip(),
                )

        return render_template("index.html", **page_model)

    def presets_or_empty() -> List[SimpleNamespace]:
        try:
            return load_presets()
        except Exception:
            current_app.logger.exception("Failed to load character presets from SQL Server")
            return []

    @bp.post("/compare")
    async def compare():
        result, progress, err = await run_compare()

        if err is not None:
            message, code = error_response(err)
            return render_template(
                "index.html",
                **form_model(
                    presets=presets_or_empty(),
                    preset_id=_safe_int(request.form.get("preset_id")),
                    character_description=(request.form.get("character_description") or "").strip()
                    or settings.default_character,
                    reference_script=(request.form.get("reference_script") or "").strip(),
                    progress=progress,
                    error=message,
                ),
            ), code

        current_app.logger.info("Comparison ok score=%s grade=%s", result.similarity_score, result.quality_grade)
        return render_template(
            "result.html",
            result=result,
            progress=progress,
            reference_name=audio_filename(request.files.get("reference_audio")),
            candidate_name=audio_filename(request.files.get("candidate_audio")),
        )

    @bp.post("/api/compare")
    async def api_compare():
        result, progress, err = await run_compare()

        if err is not None:
            message, code = error_response(err)
            return jsonify(status="error", kind=err.kind, message=message, progress=progress), code

        return jsonify(status="ok", result=result.to_dict(), progress=progress)

    @bp.app_errorhandler(RequestEntityTooLarge)
    def upload_too_large(e):
        # The body was rejected unread, so request.form is unavailable here
        message = f"Upload too large. The limit is {settings.max_upload_mb} MB for both files together."
        current_app.logger.warning("Rejected upload to %s: %s", request.path, e)

        if request.endpoint == "web.api_compare":
            return jsonify(status="error", kind=InputError.kind, message=message, progress=[]), 413
        return render_template("index.html", **form_model(presets=presets_or_empty(), error=message)), 413

    return bp
