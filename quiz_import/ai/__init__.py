"""AI provider access: client, response models and prompts."""

from .client import (
    AIResponseFormatError,
    AIServiceError,
    LLMClient,
    LLMResponse,
    decode_json_payload,
)
from .models import AIQuestion
from .prompt_builder import Prompt, PromptBuilder, PromptContext, detect_language

__all__ = [
    "AIResponseFormatError",
    "AIServiceError",
    "LLMClient",
    "LLMResponse",
    "decode_json_payload",
    "AIQuestion",
    "Prompt",
    "PromptBuilder",
    "PromptContext",
    "detect_language",
]
