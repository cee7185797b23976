"""Execution runtime for agent tasks.

 - ``InvocationDispatcher``: validated, bounded, timed capability calls.
 - ``EventChannel``: lifecycle event fan-out.
 - ``TaskLedger`` / ``LedgerStore``: append-only per-task outcome history.
 - ``CognitiveLoop``: the LangGraph THINK / ACT / REFLECT state machine.

 The main entry point is ``CognitiveLoop``; its collaborators are bundled in
 ``LoopDeps``.
 """

from .dispatcher import InvocationDispatcher
from .engine import CognitiveLoop
from .events import EventChannel, LoggingSubscriber, Subscription
from .ledger import LedgerStore, TaskLedger
from .models import LoopDeps

__all__ = [
    "CognitiveLoop",
    "EventChannel",
    "InvocationDispatcher",
    "LedgerStore",
    "LoggingSubscriber",
    "LoopDeps",
    "Subscription",
    "TaskLedger",
]
