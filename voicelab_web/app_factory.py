from __future__ import annotations

from typing import Optional

from flask import Flask

from voicelab_web.adapters.gemini_client import GeminiClient
from voicelab_web.adapters.sqlserver_presets import SqlServerPresetRepository
from voicelab_web.config.ini_config import AppSettings, IniConfig
from voicelab_web.services.comparison_service import ComparisonService
from voicelab_web.services.request_executor import RequestExecutor, RetryPolicy
from voicelab_web.web.routes import create_blueprint


def build_comparison_service(settings: AppSettings, transport=None) -> ComparisonService:
    if transport is None:
        transport = GeminiClient(
            base_url=settings.gemini_base_url,
            model=settings.gemini_model,
            api_key=settings.api_key,
            timeout_seconds=settings.attempt_timeout_seconds,
        )

    executor = RequestExecutor(
        transport=transport,
        policy=RetryPolicy(
            max_attempts=settings.max_attempts,
            backoff_step_ms=settings.backoff_step_ms,
            attempt_timeout_seconds=settings.attempt_timeout_seconds,
        ),
    )
    return ComparisonService(executor=executor)


def create_app(
    ini: Optional[IniConfig] = None,
    *,
    comparison_service: Optional[ComparisonService] = None,
    preset_repo=None,
) -> Flask:
    ini = ini or IniConfig.from_env_or_default()
    settings = ini.load_settings()

    if comparison_service is None:
        comparison_service = build_comparison_service(settings)

    if preset_repo is None and settings.presets_enabled:
        preset_repo = SqlServerPresetRepository(ini_path=str(ini.ini_path))

    app = Flask(__name__)
    app.register_blueprint(create_blueprint(comparison_service, preset_repo, settings))

    app.config["HOST"] = settings.flask_host
    app.config["PORT"] = settings.flask_port
    app.config["DEBUG"] = settings.flask_debug
    app.config["MAX_CONTENT_LENGTH"] = settings.max_upload_mb * 1024 * 1024

    return app
