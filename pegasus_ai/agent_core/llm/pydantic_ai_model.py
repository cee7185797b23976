"""Pydantic AI adapter for the ``LanguageModel`` boundary.

``PydanticAILanguageModel`` turns any Pydantic AI ``Model`` (OpenAI,
Anthropic, OpenAI-compatible endpoints such as Ollama or LiteLLM, or the
``TestModel``/``FunctionModel`` used in tests) into the single ``generate``
call the cognitive loop consumes.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, List, Optional

from pydantic_ai import Agent, ModelSettings
from pydantic_ai.messages import (
    ModelMessage,
    ModelRequest,
    ModelResponse,
    SystemPromptPart,
    TextPart,
    UserPromptPart,
)
from pydantic_ai.models import Model

from .base import GenerateResult, Message, SamplingOptions, TokenUsage

if TYPE_CHECKING:
    from ...core.config import LLMSettings

logger = logging.getLogger(__name__)


class PydanticAILanguageModel:
    """``LanguageModel`` implementation backed by a Pydantic AI model."""

    def __init__(
        self,
        model: Model | str,
        *,
        provider: Optional[str] = None,
        model_id: Optional[str] = None,
        default_options: Optional[SamplingOptions] = None,
        timeout: Optional[float] = None,
    ) -> None:
        """
        Args:
            model: A Pydantic AI model instance or a ``"provider:model"`` string.
            provider: Provider label reported on ``self.provider``.
            model_id: Model label reported on ``self.model_id``.
            default_options: Sampling options merged under per-call options.
            timeout: Request timeout in seconds.
        """
        self._model = model
        self.provider = provider or getattr(model, "system", None) or str(model).split(":", 1)[0]
        self.model_id = model_id or getattr(model, "model_name", None) or str(model)
        self._default_options = default_options or SamplingOptions()
        self._timeout = timeout

    def _settings(self, options: Optional[SamplingOptions]) -> ModelSettings:
        merged = self._default_options.model_dump(exclude_none=True)
        if options is not None:
            merged.update(options.model_dump(exclude_none=True))
        settings = ModelSettings(**merged)
        if self._timeout is not None:
            settings["timeout"] = self._timeout
        return settings

    async def generate(
        self,
        system_prompt: Optional[str],
        messages: List[Message],
        options: Optional[SamplingOptions] = None,
    ) -> GenerateResult:
        if not messages or messages[-1].role != "user":
            raise ValueError("the last message must come from the user")

        system_parts = [m.content for m in messages if m.role == "system"]
        system = "\n\n".join(p for p in [system_prompt or "", *system_parts] if p)
        history = _to_history(system, [m for m in messages[:-1] if m.role != "system"])

        agent: Agent[None, str] = Agent(self._model, output_type=str, system_prompt=system or ())
        result = await agent.run(
            messages[-1].content,
            message_history=history or None,
            model_settings=self._settings(options),
        )

        response = getattr(result, "response", None)
        finish_reason = getattr(response, "finish_reason", None) or "stop"
        logger.debug(f"LLM {self.provider}:{self.model_id} finished ({finish_reason})")
        return GenerateResult(
            text=str(result.output),
            finish_reason=str(finish_reason),
            usage=_usage(result.usage),
        )


def _to_history(system: str, messages: List[Message]) -> List[ModelMessage]:
    history: List[ModelMessage] = []
    for m in messages:
        if m.role == "user":
            history.append(ModelRequest(parts=[UserPromptPart(content=m.content)]))
        else:
            history.append(ModelResponse(parts=[TextPart(content=m.content)]))
    if not history:
        return history
    # Pydantic AI skips the agent's system prompt when history is supplied.
    if system:
        first = history[0]
        if isinstance(first, ModelRequest):
            history[0] = ModelRequest(parts=[SystemPromptPart(content=system), *first.parts])
        else:
            history.insert(0, ModelRequest(parts=[SystemPromptPart(content=system)]))
    return history


def _usage(usage: Any) -> TokenUsage:
    # ``AgentRunResult.usage`` is a method in pydantic-ai 1.x and an attribute in later releases.
    if callable(usage):
        usage = usage()
    prompt = getattr(usage, "input_tokens", None)
    if prompt is None:
        prompt = getattr(usage, "request_tokens", None)
    completion = getattr(usage, "output_tokens", None)
    if completion is None:
        completion = getattr(usage, "response_tokens", None)
    return TokenUsage(prompt_tokens=int(prompt or 0), completion_tokens=int(completion or 0))


def create_language_model(settings: "LLMSettings") -> PydanticAILanguageModel:
    """
    Build the configured language model.

    Args:
        settings: The ``llm`` section of ``Settings``.

    Raises:
        ValueError: For an unsupported provider or a missing base URL.
    """
    api_key = settings.api_key.get_secret_value() if settings.api_key is not None else None
    provider = settings.provider

    if provider in {"openai", "openai-compatible"}:
        from pydantic_ai.models.openai import OpenAIChatModel
        from pydantic_ai.providers.openai import OpenAIProvider

        if provider == "openai-compatible" and not settings.base_url:
            raise ValueError("openai-compatible provider requires llm.base_url")
        model: Model = OpenAIChatModel(
            settings.model,
            provider=OpenAIProvider(base_url=settings.base_url, api_key=api_key or "not-set"),
        )
    elif provider == "anthropic":
        from pydantic_ai.models.anthropic import AnthropicModel
        from pydantic_ai.providers.anthropic import AnthropicProvider

        model = AnthropicModel(settings.model, provider=AnthropicProvider(api_key=api_key))
    else:
        raise ValueError(f"Unsupported provider: {provider}")

    logger.debug(f"Creating {provider} model: {settings.model} with Pydantic AI")
    return PydanticAILanguageModel(
        model,
        provider=provider,
        model_id=settings.model,
        default_options=SamplingOptions(
            temperature=settings.temperature,
            max_tokens=settings.max_tokens,
            top_p=settings.top_p,
        ),
        timeout=settings.timeout,
    )
