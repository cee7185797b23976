from __future__ import annotations

"""LangGraph cognitive loop.

``CognitiveLoop`` drives one ``AgentTask`` through the THINK / ACT / REFLECT
cycle until it reaches a terminal state.

State machine
-------------

::

    THINKING --plan--> ACTING --chunk--> REFLECTING --verdict--> ...
        |                                   |
        +--planner error--> FAILED          +--complete--------------> DONE
                                            +--budget exhausted------> FAILED
                                            +--replan----------------> THINKING
                                            +--continue, steps left--> ACTING
                                            +--continue, plan done---> THINKING

Each graph node performs the work of one state and records the next state on
the task; the routing functions only read ``task.state``. Every change of
``task.state`` is published on the event channel as ``task.transition``.

Chunks
------

ACTING executes one *chunk*: the next plan step alone or, when that step is
marked ``independent``, the maximal run of consecutive independent steps.
The steps of a chunk are dispatched concurrently through the shared
dispatcher, which still applies its global concurrency bound.
"""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional
from uuid import uuid4

from langgraph.graph import END, StateGraph

from ..capabilities.base import InvocationContext
from ..errors import TaskTerminatedError
from ..reflection.base import ReflectionInput
from ..schemas.domain import (
    AgentTask,
    LifecycleEvent,
    LifecycleEventType,
    Outcome,
    StepKind,
    TaskState,
    Verdict,
    VerdictDecision,
)
from .models import LoopDeps, _GraphState

logger = logging.getLogger(__name__)

RESPOND_CAPABILITY = "respond"


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class CognitiveLoop:
    """Run tasks to ``DONE`` or ``FAILED``.

    One loop instance may run many tasks concurrently; all per-run state
    lives in the graph state and on the task itself.
    """

    def __init__(self, deps: LoopDeps, *, max_iterations: int = 10) -> None:
        """
        Initialize the CognitiveLoop.

        Args:
            deps: The runtime dependencies (dispatcher, planner, reflection policy).
            max_iterations: Reflection budget per task. The task fails when it
                is spent without a ``complete`` verdict.
        """
        if max_iterations <= 0:
            raise ValueError("max_iterations must be > 0")
        self._deps = deps
        self._max_iterations = max_iterations
        self._graph = self._build_graph()

    @property
    def max_iterations(self) -> int:
        return self._max_iterations

    def _build_graph(self):
        """Build and compile the LangGraph state machine."""
        g: StateGraph = StateGraph(_GraphState)
        g.add_node("think", self._node_think)
        g.add_node("act", self._node_act)
        g.add_node("reflect", self._node_reflect)
        g.add_node("finish", self._node_finish)
        g.add_node("fail", self._node_fail)

        g.set_entry_point("think")
        g.add_conditional_edges("think", self._route, {"act": "act", "fail": "fail"})
        g.add_edge("act", "reflect")
        g.add_conditional_edges(
            "reflect",
            self._route,
            {"think": "think", "act": "act", "finish": "finish", "fail": "fail"},
        )
        g.add_edge("finish", END)
        g.add_edge("fail", END)
        return g.compile()

    async def run(self, task: AgentTask) -> AgentTask:
        """Drive ``task`` to a terminal state and return it.

        Raises:
            TaskTerminatedError: If the task is already ``DONE`` or ``FAILED``.
        """
        if task.state.terminal:
            raise TaskTerminatedError(task.id, task.state.value)

        ledger = self._deps.ledgers.ledger(task.id)
        logger.info(f"Task {task.id} started: {task.goal[:120]!r}")
        self._publish_transition(task, None)

        state: _GraphState = {
            "task": task,
            "plan": list(task.plan),
            "idx": 0,
            "mark": len(ledger),
        }
        await self._graph.ainvoke(state, config={"recursion_limit": self._max_iterations * 3 + 5})
        return task

    async def _node_think(self, state: _GraphState) -> _GraphState:
        """Ask the planner for a fresh plan."""
        task = state["task"]
        self._transition(task, TaskState.thinking)

        verdict = task.last_verdict
        try:
            plan = await self._deps.planner.plan(
                goal=task.goal,
                capabilities=self._deps.dispatcher.registry.export_for_planner(),
                lessons=task.lessons,
                failures=verdict.failures if verdict is not None else (),
                history=self._deps.ledgers.ledger(task.id).entries,
                next_focus=verdict.next_focus if verdict is not None else None,
            )
        except Exception as e:
            logger.warning(f"Task {task.id} planning failed: {e}")
            task.failure_reason = f"planning failed: {e}"
            self._transition(task, TaskState.failed)
            return state

        logger.debug(f"Task {task.id} planned {len(plan)} step(s)")
        task.plan = plan
        state["plan"] = plan
        state["idx"] = 0
        self._transition(task, TaskState.acting)
        return state

    async def _node_act(self, state: _GraphState) -> _GraphState:
        """Execute the next chunk of the plan."""
        task = state["task"]
        self._transition(task, TaskState.acting)

        plan = state["plan"]
        start = state["idx"]
        chunk = _next_chunk(plan, start)
        if len(chunk) > 1:
            await asyncio.gather(*(self._execute_step(task, i, plan[i]) for i in chunk))
        else:
            for i in chunk:
                await self._execute_step(task, i, plan[i])

        state["idx"] = start + len(chunk)
        state["_chunk"] = chunk
        self._transition(task, TaskState.reflecting)
        return state

    async def _execute_step(self, task: AgentTask, index: int, step: Dict[str, Any]) -> Outcome:
        if step.get("kind") == "response":
            text = str(step.get("response") or "")
            now = _utc_now()
            outcome = Outcome.succeeded(
                invocation_id=str(uuid4()),
                capability_name=RESPOND_CAPABILITY,
                task_id=task.id,
                result={"response": text},
                started_at=now,
                completed_at=now,
            )
            self._deps.ledgers.ledger(task.id).append(outcome, step_index=index, kind=StepKind.response)
            task.response = text
            return outcome

        context = InvocationContext(
            task_id=task.id,
            user_id=task.user_id,
            allowed_paths=tuple(task.allowed_paths) if task.allowed_paths is not None else None,
        )
        return await self._deps.dispatcher.execute(
            str(step["capability"]),
            dict(step.get("args") or {}),
            context,
            step.get("timeout_ms"),
            step_index=index,
        )

    async def _node_reflect(self, state: _GraphState) -> _GraphState:
        """Judge the evidence gathered since the previous reflection and pick the next state."""
        task = state["task"]
        ledger = self._deps.ledgers.ledger(task.id)
        recent = ledger.since(state["mark"])
        state["mark"] = state["mark"] + len(recent)
        remaining = len(state["plan"]) - state["idx"]

        verdict = await self._reflect(
            ReflectionInput(
                task_id=task.id,
                goal=task.goal,
                recent=recent,
                history=ledger.entries,
                remaining_steps=remaining,
                iteration=task.iterations,
            )
        )
        task.iterations += 1
        task.last_verdict = verdict
        for lesson in verdict.lessons:
            if lesson not in task.lessons:
                task.lessons.append(lesson)
        logger.debug(
            f"Task {task.id} iteration {task.iterations}/{self._max_iterations}: "
            f"{verdict.decision.value} ({verdict.assessment})"
        )

        if verdict.decision == VerdictDecision.complete:
            self._transition(task, TaskState.done)
        elif task.iterations >= self._max_iterations:
            task.failure_reason = f"iteration budget exhausted after {task.iterations} cycles"
            self._transition(task, TaskState.failed)
        elif verdict.decision == VerdictDecision.replan:
            state["plan"] = []
            state["idx"] = 0
            self._transition(task, TaskState.thinking)
        elif remaining > 0:
            self._transition(task, TaskState.acting)
        else:
            self._transition(task, TaskState.thinking)
        return state

    async def _reflect(self, data: ReflectionInput) -> Verdict:
        timeout_ms = self._deps.reflection_timeout_ms
        try:
            return await asyncio.wait_for(self._deps.reflection.reflect(data), timeout=timeout_ms / 1000.0)
        except asyncio.TimeoutError:
            logger.warning(f"Reflection for task {data.task_id} timed out after {timeout_ms} ms")
            return Verdict.continue_("reflection timed out")
        except Exception as e:
            logger.warning(f"Reflection for task {data.task_id} raised {type(e).__name__}: {e}")
            return Verdict.continue_(f"reflection failed: {e}")

    async def _node_finish(self, state: _GraphState) -> _GraphState:
        task = state["task"]
        logger.info(f"Task {task.id} done after {task.iterations} iteration(s)")
        return state

    async def _node_fail(self, state: _GraphState) -> _GraphState:
        task = state["task"]
        logger.warning(f"Task {task.id} failed after {task.iterations} iteration(s): {task.failure_reason}")
        return state

    def _route(self, state: _GraphState) -> str:
        """Map the task's state to the node that handles it."""
        return {
            TaskState.thinking: "think",
            TaskState.acting: "act",
            TaskState.done: "finish",
            TaskState.failed: "fail",
        }[state["task"].state]

    def _transition(self, task: AgentTask, new_state: TaskState) -> None:
        if task.state == new_state:
            return
        previous = task.state
        task.state = new_state
        task.updated_at = _utc_now()
        self._publish_transition(task, previous)

    def _publish_transition(self, task: AgentTask, previous: Optional[TaskState]) -> None:
        self._deps.events.publish(
            LifecycleEvent(
                type=LifecycleEventType.task_transition,
                task_id=task.id,
                payload={
                    "from": previous.value if previous is not None else None,
                    "to": task.state.value,
                    "iteration": task.iterations,
                },
            )
        )


def _next_chunk(plan: List[Dict[str, Any]], start: int) -> List[int]:
    """Indexes of the steps executed together, starting at ``start``."""
    if start >= len(plan):
        return []
    if not plan[start].get("independent"):
        return [start]
    end = start
    while end < len(plan) and plan[end].get("independent"):
        end += 1
    return list(range(start, end))
