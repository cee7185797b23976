"""Core agent runtime: capabilities, dispatcher and cognitive loop.

This package contains the “engine room” of the agent system.

Design overview
---------------

The agent core separates *deciding* from *doing*:

- Planning produces a plan consisting of two step kinds:

  - ``ResponseStep``: a direct answer to the user. It never calls a
    capability; it is recorded in the task ledger as a ``respond`` entry.
  - ``ActionStep``: side-effecting execution through the
    ``InvocationDispatcher``, which validates arguments, bounds concurrency,
    applies timeouts and turns every failure into an ``Outcome``.

- Execution is performed by ``agent_core.runtime.CognitiveLoop`` using
  LangGraph. After every chunk of steps a reflection policy reads the task
  ledger and returns a ``Verdict`` that selects the next state.

Typical usage
-------------

Most applications should use ``agent_core.service.AgentService``:

1. Build it with ``agent_core.factory.build_service``.
2. Call ``run(goal)``.
3. Read the returned ``AgentTask`` and its ledger.
"""

from .errors import (
    CapabilityError,
    DuplicateCapabilityError,
    PegasusError,
    PermissionDeniedError,
    PlanningError,
    TaskTerminatedError,
)
from .schemas.domain import (
    ActionResult,
    AgentTask,
    ErrorKind,
    LifecycleEvent,
    Outcome,
    TaskState,
    Verdict,
    VerdictDecision,
)
from .service import AgentService, AgentServiceDeps

__all__ = [
    "ActionResult",
    "AgentService",
    "AgentServiceDeps",
    "AgentTask",
    "CapabilityError",
    "DuplicateCapabilityError",
    "ErrorKind",
    "LifecycleEvent",
    "Outcome",
    "PegasusError",
    "PermissionDeniedError",
    "PlanningError",
    "TaskState",
    "TaskTerminatedError",
    "Verdict",
    "VerdictDecision",
]
