from __future__ import annotations

"""High-level orchestration service for agent tasks.

``AgentService`` provides an application-friendly API for running tasks
without needing to manually wire the dispatcher, planner and cognitive loop.

Workflow
--------

- ``run``:

  1. Creates an ``AgentTask`` for the goal.
  2. Drives it through the ``CognitiveLoop`` to ``DONE`` or ``FAILED``.
  3. Returns the task; its outcomes are available from ``ledger``.

- ``run_many``: runs several goals concurrently. All tasks share one
  dispatcher, so the capability concurrency bound still holds globally.

``AgentService`` is intentionally thin: execution semantics live in the loop
and the dispatcher.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, List, Optional, Sequence

from .capabilities.mcp import McpToolSource, register_mcp_tools
from .runtime import CognitiveLoop, LoopDeps, TaskLedger
from .schemas.domain import AgentTask

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AgentServiceDeps:
    """Dependency bundle for ``AgentService``.

    This allows applications and tests to inject:

    - the runtime dependencies of the cognitive loop,
    - the loop limits and the default filesystem allow-list.
    """

    loop_deps: LoopDeps
    max_iterations: int = 10
    max_active_tasks: int = 5
    allowed_paths: Optional[List[str]] = None
    closers: List[Any] = field(default_factory=list)


class AgentService:
    """Create and run agent tasks."""

    def __init__(self, *, deps: AgentServiceDeps) -> None:
        if deps.max_active_tasks <= 0:
            raise ValueError("max_active_tasks must be > 0")
        self._deps = deps
        self._loop = CognitiveLoop(deps.loop_deps, max_iterations=deps.max_iterations)

    @property
    def loop(self) -> CognitiveLoop:
        return self._loop

    @property
    def deps(self) -> AgentServiceDeps:
        return self._deps

    def create_task(
        self,
        goal: str,
        *,
        user_id: Optional[str] = None,
        allowed_paths: Optional[Sequence[str]] = None,
    ) -> AgentTask:
        """Create a task in ``THINKING`` state.

        ``allowed_paths`` defaults to the service's configured allow-list.
        """
        paths = allowed_paths if allowed_paths is not None else self._deps.allowed_paths
        return AgentTask(goal=goal, user_id=user_id, allowed_paths=list(paths) if paths is not None else None)

    async def run(
        self,
        goal: str,
        *,
        user_id: Optional[str] = None,
        allowed_paths: Optional[Sequence[str]] = None,
    ) -> AgentTask:
        """Create a task for ``goal`` and run it to completion."""
        return await self.run_task(self.create_task(goal, user_id=user_id, allowed_paths=allowed_paths))

    async def run_task(self, task: AgentTask) -> AgentTask:
        return await self._loop.run(task)

    async def run_many(self, goals: Sequence[str], *, user_id: Optional[str] = None) -> List[AgentTask]:
        """Run ``goals`` concurrently, at most ``max_active_tasks`` at a time.

        Returns
        -------
        list[AgentTask]
            The finished tasks, in the order of ``goals``.
        """
        limit = asyncio.Semaphore(self._deps.max_active_tasks)

        async def _one(task: AgentTask) -> AgentTask:
            async with limit:
                return await self._loop.run(task)

        tasks = [self.create_task(goal, user_id=user_id) for goal in goals]
        logger.info(f"Running {len(tasks)} task(s), at most {self._deps.max_active_tasks} at a time")
        return list(await asyncio.gather(*(_one(t) for t in tasks)))

    def ledger(self, task_id: str) -> TaskLedger:
        """The ledger of ``task_id`` (empty if the task never ran)."""
        return self._deps.loop_deps.ledgers.ledger(task_id)

    async def register_mcp_server(self, source: McpToolSource, *, prefix: Optional[str] = None) -> List[str]:
        """Register every tool of ``source`` as a capability and return the names."""
        return await register_mcp_tools(source, self._deps.loop_deps.dispatcher.registry, prefix=prefix)

    async def aclose(self) -> None:
        """Flush pending events, stop subscribers and close owned resources."""
        events = self._deps.loop_deps.events
        await events.join()
        await events.close()
        for resource in self._deps.closers:
            aclose = getattr(resource, "aclose", None)
            if aclose is not None:
                await aclose()
