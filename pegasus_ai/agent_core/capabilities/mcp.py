from __future__ import annotations

"""MCP (Model Context Protocol) capability adapter.

An MCP server exposes ``list_tools`` and ``call_tool``. Each remote tool is
wrapped into a ``McpToolCapability`` whose ``invoke`` forwards to
``call_tool``; its parameter schema is translated from the tool's
``inputSchema``.

``McpSessionSource`` is the concrete source backed by the ``mcp`` SDK. It
opens a fresh ``ClientSession`` per operation over streamable HTTP or SSE.
"""

import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any, AsyncIterator, Dict, List, Optional, Protocol, runtime_checkable

from mcp import ClientSession
from mcp.client.sse import sse_client
from mcp.client.streamable_http import streamablehttp_client

from ..errors import CapabilityError
from ..schemas.domain import CapabilityCategory
from .base import Capability, InvocationContext
from .registry import CapabilityRegistry
from .schema import ParameterSchema

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class McpToolInfo:
    name: str
    description: str
    input_schema: Dict[str, Any]


@runtime_checkable
class McpToolSource(Protocol):
    """Minimal view of an MCP server needed to expose its tools as capabilities."""

    name: str

    async def list_tools(self) -> List[McpToolInfo]: ...

    async def call_tool(self, tool_name: str, arguments: Dict[str, Any]) -> Any: ...


class McpSessionSource:
    """``McpToolSource`` backed by an MCP ``ClientSession``.

    Args:
        name: Logical server name, used as the default capability prefix.
        url: MCP endpoint URL.
        transport: ``"streamable_http"`` (default) or ``"sse"``.
    """

    def __init__(self, name: str, url: str, *, transport: str = "streamable_http") -> None:
        if transport not in {"streamable_http", "sse"}:
            raise ValueError(f"unsupported MCP transport: {transport}")
        self.name = name
        self.url = url
        self.transport = transport

    @asynccontextmanager
    async def _session(self) -> AsyncIterator[ClientSession]:
        if self.transport == "sse":
            async with sse_client(self.url) as (read_stream, write_stream):
                async with ClientSession(read_stream, write_stream) as session:
                    await session.initialize()
                    yield session
        else:
            async with streamablehttp_client(self.url) as (read_stream, write_stream, _close_fn):
                async with ClientSession(read_stream, write_stream) as session:
                    await session.initialize()
                    yield session

    async def list_tools(self) -> List[McpToolInfo]:
        async with self._session() as session:
            result = await session.list_tools()
        return [
            McpToolInfo(
                name=t.name,
                description=t.description or "",
                input_schema=dict(t.inputSchema or {}),
            )
            for t in result.tools
        ]

    async def call_tool(self, tool_name: str, arguments: Dict[str, Any]) -> Any:
        async with self._session() as session:
            result = await session.call_tool(tool_name, arguments)
        payload = result.model_dump(mode="json", by_alias=True, exclude_none=True)
        if result.isError:
            raise CapabilityError(_error_text(payload) or f"MCP tool '{tool_name}' reported an error")
        return payload


def _error_text(payload: Dict[str, Any]) -> str:
    parts = [str(c.get("text")) for c in payload.get("content") or [] if isinstance(c, dict) and c.get("text")]
    return "\n".join(parts)


@dataclass(frozen=True)
class McpToolCapability(Capability):
    """A single remote MCP tool exposed as a capability."""

    name: str
    source: McpToolSource
    tool_name: str
    description: str = ""
    category: CapabilityCategory = CapabilityCategory.external
    parameter_schema: ParameterSchema = ParameterSchema.from_json_schema("mcp_tool", None)
    network_bound: bool = True
    timeout_ms: Optional[int] = None

    async def invoke(self, params: Dict[str, Any], ctx: InvocationContext) -> Any:
        logger.debug(f"Forwarding '{self.name}' to MCP server '{self.source.name}' tool '{self.tool_name}'")
        return await self.source.call_tool(self.tool_name, dict(params))


async def register_mcp_tools(
    source: McpToolSource,
    registry: CapabilityRegistry,
    *,
    prefix: Optional[str] = None,
    replace: bool = False,
) -> List[str]:
    """
    Discover the tools of ``source`` and register each as a capability.

    Args:
        source: The MCP server to load tools from.
        registry: Target registry.
        prefix: Capability name prefix; defaults to ``"<source.name>."``. Pass
            ``""`` to register tools under their bare names.
        replace: Overwrite existing capabilities instead of raising
            ``DuplicateCapabilityError``.

    Returns:
        The registered capability names, in discovery order.
    """
    prefix = f"{source.name}." if prefix is None else prefix
    names: List[str] = []
    for tool in await source.list_tools():
        cap_name = f"{prefix}{tool.name}"
        cap = McpToolCapability(
            name=cap_name,
            source=source,
            tool_name=tool.name,
            description=tool.description,
            parameter_schema=ParameterSchema.from_json_schema(cap_name, tool.input_schema),
        )
        if replace:
            registry.replace(cap)
        else:
            registry.register(cap)
        names.append(cap_name)
    logger.info(f"Registered {len(names)} MCP tool(s) from '{source.name}'")
    return names
