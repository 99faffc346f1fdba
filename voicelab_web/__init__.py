"""Reference-vs-candidate TTS comparison backed by a multimodal Gemini model."""

__version__ = "0.1.0"
