from __future__ import annotations

"""Convenience factories for wiring the agent core.

This module contains small helpers to build the default capability registry,
the shared dispatcher and a ready-to-use ``AgentService`` from ``Settings``.

The intent is to keep application wiring and tests concise, while still
allowing advanced deployments to provide their own registry, language model,
reflection policy and event channel.
"""

import logging
from typing import List, Optional

import httpx

from ..core.config import Settings, get_settings
from .capabilities.builtin import (
    CurrentTimeCapability,
    ListDirectoryCapability,
    ReadFileCapability,
    WebFetchCapability,
    WriteFileCapability,
)
from .capabilities.mcp import McpSessionSource
from .capabilities.registry import CapabilityRegistry
from .llm.base import LanguageModel
from .llm.pydantic_ai_model import create_language_model
from .planning.planner import StructuredPlanner
from .reflection import LLMReflection, ReflectionPolicy, RuleBasedReflection
from .runtime import EventChannel, InvocationDispatcher, LedgerStore, LoggingSubscriber, LoopDeps
from .service import AgentService, AgentServiceDeps

logger = logging.getLogger(__name__)

REFLECTION_FALLBACK_MARGIN_MS = 5_000


def build_default_registry(
    settings: Optional[Settings] = None,
    *,
    http_client: Optional[httpx.AsyncClient] = None,
) -> CapabilityRegistry:
    """Build the default ``CapabilityRegistry``.

    The default registry includes the built-in capabilities shipped with the
    package: file access (``read_file``, ``write_file``, ``list_directory``),
    ``web_fetch`` and ``current_time``. ``settings`` is accepted for symmetry
    with the other builders; the built-ins take their limits from the
    invocation context.
    """
    reg = CapabilityRegistry()
    reg.register(ReadFileCapability())
    reg.register(WriteFileCapability())
    reg.register(ListDirectoryCapability())
    reg.register(WebFetchCapability(client=http_client))
    reg.register(CurrentTimeCapability())
    return reg


def build_dispatcher(
    settings: Optional[Settings] = None,
    *,
    registry: Optional[CapabilityRegistry] = None,
    events: Optional[EventChannel] = None,
    ledgers: Optional[LedgerStore] = None,
) -> InvocationDispatcher:
    """Construct the shared ``InvocationDispatcher`` from the agent settings."""
    settings = settings or get_settings()
    agent = settings.agent
    return InvocationDispatcher(
        registry=registry if registry is not None else build_default_registry(settings),
        events=events if events is not None else EventChannel(),
        ledgers=ledgers if ledgers is not None else LedgerStore(),
        max_concurrency=agent.max_concurrent_tools,
        default_timeout_ms=agent.tool_timeout_ms,
        network_timeout_ms=agent.network_tool_timeout_ms,
    )


def _default_model(settings: Settings) -> Optional[LanguageModel]:
    llm = settings.llm
    if llm.api_key is None and llm.provider != "openai-compatible":
        logger.info("No language model API key configured; planning falls back to direct responses")
        return None
    return create_language_model(llm)


def build_service(
    settings: Optional[Settings] = None,
    *,
    model: Optional[LanguageModel] = None,
    registry: Optional[CapabilityRegistry] = None,
    reflection: Optional[ReflectionPolicy] = None,
    events: Optional[EventChannel] = None,
    http_client: Optional[httpx.AsyncClient] = None,
    log_events: bool = True,
) -> AgentService:
    """
    Wire an ``AgentService``.

    Args:
        settings: Configuration; ``get_settings()`` when omitted.
        model: Language model for planning and reflection. When omitted, one is
            created from ``settings.llm`` if credentials are configured;
            otherwise the planner answers the goal directly.
        registry: Capability registry; the default built-ins when omitted.
        reflection: Reflection policy. Defaults to ``LLMReflection`` (falling
            back to the rules) when a model is available, else
            ``RuleBasedReflection``.
        events: Event channel shared by the dispatcher and the loop.
        http_client: Client injected into ``web_fetch``.
        log_events: Subscribe a ``LoggingSubscriber`` to the channel.
    """
    settings = settings or get_settings()
    agent = settings.agent
    if model is None:
        model = _default_model(settings)

    channel = events if events is not None else EventChannel()
    if log_events:
        channel.subscribe(LoggingSubscriber(), name="logging")

    dispatcher = build_dispatcher(
        settings,
        registry=registry if registry is not None else build_default_registry(settings, http_client=http_client),
        events=channel,
    )

    loop_reflection_timeout_ms = agent.reflection_timeout_ms
    if reflection is None and model is not None:
        # The loop deadline must outlast the model deadline so the rule fallback gets to answer.
        reflection = LLMReflection(model, fallback=RuleBasedReflection(), timeout_ms=agent.reflection_timeout_ms)
        loop_reflection_timeout_ms += REFLECTION_FALLBACK_MARGIN_MS
    elif reflection is None:
        reflection = RuleBasedReflection()

    loop_deps = LoopDeps(
        dispatcher=dispatcher,
        planner=StructuredPlanner(model=model),
        reflection=reflection,
        reflection_timeout_ms=loop_reflection_timeout_ms,
    )
    return AgentService(
        deps=AgentServiceDeps(
            loop_deps=loop_deps,
            max_iterations=agent.max_cognitive_iterations,
            max_active_tasks=agent.max_active_tasks,
            allowed_paths=list(agent.allowed_paths) or None,
        )
    )


async def connect_mcp_servers(service: AgentService, settings: Optional[Settings] = None) -> List[str]:
    """Register the tools of every MCP server listed in ``settings.mcp_servers``.

    Returns
    -------
    list[str]
        All capability names registered.
    """
    settings = settings or get_settings()
    names: List[str] = []
    for server in settings.mcp_servers:
        source = McpSessionSource(server.name, server.url, transport=server.transport)
        names.extend(await service.register_mcp_server(source))
    return names
