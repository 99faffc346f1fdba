from .audio_encoding import audio_filename, encode_audio
from .comparison_service import ComparisonService
from .prompt_builder import build_prompts
from .request_executor import RequestExecutor, RetryPolicy, default_is_retryable, retry_everything
from .result_decoder import decode_result

__all__ = [
    "ComparisonService",
    "RequestExecutor",
    "RetryPolicy",
    "audio_filename",
    "build_prompts",
    "decode_result",
    "default_is_retryable",
    "encode_audio",
    "retry_everything",
]
