########## ini_config.py

import os
from configparser import ConfigParser
from dataclasses import dataclass
from pathlib import Path

INI_DEFAULT_NAME = "VoiceLabCompare.ini"

DEFAULT_BASE_URL = "https://generativelanguage.googleapis.com/v1beta"
DEFAULT_MODEL = "gemini-2.5-flash-preview-09-2025"


@dataclass(frozen=True)
class AppSettings:
    gemini_base_url: str
    gemini_model: str
    api_key: str

    max_attempts: int
    backoff_step_ms: int
    attempt_timeout_seconds: float

    default_character: str
    max_upload_mb: int

    flask_host: str
    flask_port: int
    flask_debug: bool

    # [sqlserver] is optional; presets dropdown is disabled without it
    presets_enabled: bool


class IniConfig:
    """
    Adapter around ConfigParser and environment overrides.
    Keeps INI handling out of your app/service code.
    """

    def __init__(self, ini_path: Path):
        self._ini_path = ini_path
        self._cfg = ConfigParser()
        read_ok = self._cfg.read(str(ini_path), encoding="utf-8-sig")
        if not read_ok:
            raise FileNotFoundError(f"INI file not found or unreadable: {ini_path}")

    @property
    def ini_path(self) -> Path:
        return self._ini_path

    @staticmethod
    def from_env_or_default() -> "IniConfig":
        ini_raw = (os.getenv("APP_INI") or "").strip()
        # If APP_INI is not set, default to repo-root-relative ini location
        ini_path = Path(ini_raw) if ini_raw else (Path(__file__).resolve().parents[2] / INI_DEFAULT_NAME)
        return IniConfig(ini_path)

    def _str(self, section: str, key: str, default: str) -> str:
        return (self._cfg.get(section, key, fallback=default) or "").strip() or default

    def load_settings(self) -> AppSettings:
        # Gemini endpoint
        base_url = self._str("gemini", "base_url", DEFAULT_BASE_URL).rstrip("/")
        model = self._str("gemini", "model", DEFAULT_MODEL)

        # The key is not validated here: a missing key surfaces as an auth failure on the first attempt
        api_key = (os.getenv("GEMINI_API_KEY") or "").strip()
        if not api_key:
            api_key = (self._cfg.get("gemini", "api_key", fallback="") or "").strip()

        # Retry policy
        max_attempts = self._cfg.getint("retry", "max_attempts", fallback=5)
        backoff_step_ms = self._cfg.getint("retry", "backoff_step_ms", fallback=2000)
        attempt_timeout_seconds = self._cfg.getfloat("retry", "attempt_timeout_seconds", fallback=60.0)

        # Form defaults
        default_character = self._str("prompt", "default_character", "Narrator")
        max_upload_mb = self._cfg.getint("upload", "max_upload_mb", fallback=20)

        # Flask
        flask_host = self._str("flask", "host", "127.0.0.1")
        flask_port = self._cfg.getint("flask", "port", fallback=5000)
        flask_debug = self._cfg.getboolean("flask", "debug", fallback=True)

        # Validate
        if max_attempts < 1:
            raise ValueError(f"retry.max_attempts must be >= 1, got {max_attempts}")
        if backoff_step_ms < 0:
            raise ValueError(f"retry.backoff_step_ms must be >= 0, got {backoff_step_ms}")
        if attempt_timeout_seconds <= 0:
            raise ValueError(f"retry.attempt_timeout_seconds must be > 0, got {attempt_timeout_seconds}")

        return AppSettings(
            gemini_base_url=base_url,
            gemini_model=model,
            api_key=api_key,
            max_attempts=max_attempts,
            backoff_step_ms=backoff_step_ms,
            attempt_timeout_seconds=attempt_timeout_seconds,
            default_character=default_character,
            max_upload_mb=max_upload_mb,
            flask_host=flask_host,
            flask_port=flask_port,
            flask_debug=flask_debug,
            presets_enabled=self._cfg.has_section("sqlserver"),
        )
