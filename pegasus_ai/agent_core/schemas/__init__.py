"""Schemas and DTOs for the agent core."""

from .domain import (
    ActionResult,
    AgentTask,
    CapabilityCategory,
    ErrorKind,
    FailureNote,
    LifecycleEvent,
    LifecycleEventType,
    Outcome,
    StepKind,
    TaskState,
    UsageStats,
    Verdict,
    VerdictDecision,
)

__all__ = [
    "ActionResult",
    "AgentTask",
    "CapabilityCategory",
    "ErrorKind",
    "FailureNote",
    "LifecycleEvent",
    "LifecycleEventType",
    "Outcome",
    "StepKind",
    "TaskState",
    "UsageStats",
    "Verdict",
    "VerdictDecision",
]
