from __future__ import annotations

"""Runtime dependency bundle and LangGraph state types.

The cognitive loop is dependency-injected.

- ``LoopDeps`` collects the collaborators the loop needs.
- ``_GraphState`` is the mutable state passed between LangGraph nodes.
"""

from dataclasses import dataclass
from typing import Any, Dict, List, NotRequired, Required, TypedDict

from ..planning.planner import StructuredPlanner
from ..reflection.base import ReflectionPolicy
from ..schemas.domain import AgentTask
from .dispatcher import InvocationDispatcher
from .events import EventChannel
from .ledger import LedgerStore


@dataclass(frozen=True)
class LoopDeps:
    """Dependency bundle for ``CognitiveLoop``.

    Several loops may share one bundle; the dispatcher (and with it the
    concurrency bound, the registry and the ledgers) is then shared by every
    task they run.
    """

    dispatcher: InvocationDispatcher
    planner: StructuredPlanner
    reflection: ReflectionPolicy
    reflection_timeout_ms: int = 30_000

    @property
    def events(self) -> EventChannel:
        return self.dispatcher.events

    @property
    def ledgers(self) -> LedgerStore:
        return self.dispatcher.ledgers


class _GraphState(TypedDict):
    """Mutable LangGraph state for a single task run.

    Required keys:

    - ``task``: the task being driven; its ``state`` field selects the next node.
    - ``plan``: normalized list of step dicts.
    - ``idx``: index of the next plan step to execute.
    - ``mark``: ledger length at the previous reflection.

    Optional keys:

    - ``_chunk``: step indexes executed by the last ``act`` node.
    """

    task: Required[AgentTask]
    plan: Required[List[Dict[str, Any]]]
    idx: Required[int]
    mark: Required[int]
    _chunk: NotRequired[List[int]]
