from .gemini_client import GeminiClient
from .sqlserver_presets import CharacterPreset, SqlServerPresetRepository

__all__ = [
    "CharacterPreset",
    "GeminiClient",
    "SqlServerPresetRepository",
]
