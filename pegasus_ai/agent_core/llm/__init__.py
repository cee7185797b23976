"""Language model boundary consumed by the planner and the LLM reflection policy."""

from .base import GenerateResult, LanguageModel, Message, SamplingOptions, TokenUsage
from .pydantic_ai_model import PydanticAILanguageModel, create_language_model

__all__ = [
    "GenerateResult",
    "LanguageModel",
    "Message",
    "PydanticAILanguageModel",
    "SamplingOptions",
    "TokenUsage",
    "create_language_model",
]
