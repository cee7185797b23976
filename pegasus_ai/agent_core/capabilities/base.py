from __future__ import annotations

"""Capability contract and invocation data models.

A capability is the concrete execution unit for action steps. The
``InvocationDispatcher`` resolves a step's capability name through a
``CapabilityRegistry``, validates the step arguments against the
capability's ``parameter_schema`` and calls ``invoke`` with an
``InvocationContext``.

Capabilities should:

- return a JSON-like payload from ``invoke`` (or the ``CapabilityResult``
  envelope),
- raise ``CapabilityError``/``PermissionDeniedError`` to report a typed
  failure; any other exception is reported as ``execution_failed``,
- enforce ``InvocationContext.allowed_paths`` themselves when they touch the
  filesystem. The dispatcher only propagates the context.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Optional, Tuple

from ..schemas.domain import CapabilityCategory
from .schema import EMPTY_SCHEMA, ParameterSchema


@dataclass(frozen=True)
class InvocationContext:
    """Execution context passed to capability implementations.

    Attributes
    ----------
    task_id:
        Identifier of the task whose ledger receives the outcome.
    user_id:
        Optional identity of the user the task runs for.
    allowed_paths:
        Filesystem allow-list consulted by file capabilities. ``None`` means
        the capability applies its own default.

    The context carries no invocation identity: the dispatcher mints a fresh
    ``invocation_id`` for every ``execute`` call, so one context may be reused
    across calls of the same task.
    """

    task_id: str
    user_id: Optional[str] = None
    allowed_paths: Optional[Tuple[str, ...]] = None


@dataclass(frozen=True)
class CapabilityResult:
    """Structured capability execution result."""

    ok: bool
    output: Dict[str, Any]


class Capability(ABC):
    """Base class for capability implementations.

    Concrete capabilities are frozen dataclasses so a definition cannot change
    after it has been registered.
    """

    name: str
    description: str = ""
    category: CapabilityCategory = CapabilityCategory.custom
    parameter_schema: ParameterSchema = EMPTY_SCHEMA
    network_bound: bool = False
    timeout_ms: Optional[int] = None

    @abstractmethod
    async def invoke(self, params: Dict[str, Any], ctx: InvocationContext) -> Any: ...


Handler = Callable[[Dict[str, Any], InvocationContext], Awaitable[Any]]


@dataclass(frozen=True)
class FunctionCapability(Capability):
    """Capability backed by a plain async callable.

    Useful for wiring ad-hoc tools without declaring a subclass::

        registry.register(
            FunctionCapability(
                name="echo",
                description="Echo the text back",
                handler=echo,
                parameter_schema=ParameterSchema(EchoParams),
            )
        )
    """

    name: str
    handler: Handler
    description: str = ""
    category: CapabilityCategory = CapabilityCategory.custom
    parameter_schema: ParameterSchema = EMPTY_SCHEMA
    network_bound: bool = False
    timeout_ms: Optional[int] = None

    async def invoke(self, params: Dict[str, Any], ctx: InvocationContext) -> Any:
        return await self.handler(params, ctx)
