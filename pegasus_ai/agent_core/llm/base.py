"""Language model boundary.

The cognitive loop treats the language model as a black box exposing a single
``generate`` call. Providers implement ``LanguageModel``; the default
implementation adapts a Pydantic AI model.
"""

from __future__ import annotations

from typing import List, Literal, Optional, Protocol, runtime_checkable

from pydantic import BaseModel, Field


class Message(BaseModel):
    """Message in a conversation with a language model."""

    role: Literal["user", "assistant", "system"]
    content: str


class SamplingOptions(BaseModel):
    temperature: Optional[float] = Field(default=None, ge=0.0, le=2.0)
    max_tokens: Optional[int] = Field(default=None, ge=1)
    top_p: Optional[float] = Field(default=None, ge=0.0, le=1.0)


class TokenUsage(BaseModel):
    prompt_tokens: int = 0
    completion_tokens: int = 0

    @property
    def total_tokens(self) -> int:
        return self.prompt_tokens + self.completion_tokens


class GenerateResult(BaseModel):
    """Result from text generation."""

    text: str
    finish_reason: str = "stop"
    usage: TokenUsage = Field(default_factory=TokenUsage)


@runtime_checkable
class LanguageModel(Protocol):
    """Language model interface that providers must implement."""

    provider: str
    model_id: str

    async def generate(
        self,
        system_prompt: Optional[str],
        messages: List[Message],
        options: Optional[SamplingOptions] = None,
    ) -> GenerateResult: ...
