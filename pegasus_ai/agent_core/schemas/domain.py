from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional
from uuid import uuid4

from pydantic import Field, model_validator

from .base import BaseSchema, FrozenSchema


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _new_id() -> str:
    return str(uuid4())


class CapabilityCategory(str, Enum):
    system = "system"
    file = "file"
    network = "network"
    data = "data"
    code = "code"
    external = "external"
    custom = "custom"


class ErrorKind(str, Enum):
    not_found = "not_found"
    validation_failed = "validation_failed"
    timeout = "timeout"
    execution_failed = "execution_failed"
    permission_denied = "permission_denied"


class TaskState(str, Enum):
    thinking = "thinking"
    acting = "acting"
    reflecting = "reflecting"
    done = "done"
    failed = "failed"

    @property
    def terminal(self) -> bool:
        return self in (TaskState.done, TaskState.failed)


class VerdictDecision(str, Enum):
    continue_ = "continue"
    replan = "replan"
    complete = "complete"


class LifecycleEventType(str, Enum):
    invocation_requested = "invocation.requested"
    invocation_completed = "invocation.completed"
    invocation_failed = "invocation.failed"
    task_transition = "task.transition"


class StepKind(str, Enum):
    action = "action"
    response = "response"


class Outcome(FrozenSchema):
    """Normalized result of one capability invocation.

    Outcomes are never mutated after creation. Use ``Outcome.succeeded`` or
    ``Outcome.failed`` to build one; both compute ``duration_ms`` from the
    start and completion timestamps.
    """

    invocation_id: str = Field(default_factory=_new_id)
    capability_name: str
    task_id: str

    success: bool
    result: Any = None

    error_kind: Optional[ErrorKind] = None
    error_message: Optional[str] = None
    error_detail: Optional[List[Dict[str, Any]]] = None

    started_at: datetime
    completed_at: datetime
    duration_ms: float = Field(ge=0.0)

    @model_validator(mode="after")
    def _check_envelope(self) -> "Outcome":
        if self.success:
            if self.error_kind is not None or self.error_message is not None or self.error_detail is not None:
                raise ValueError("successful outcome cannot carry error fields")
        else:
            if self.error_kind is None:
                raise ValueError("failed outcome requires error_kind")
            if self.result is not None:
                raise ValueError("failed outcome cannot carry a result")
        return self

    @staticmethod
    def _duration(started_at: datetime, completed_at: datetime) -> float:
        return max(0.0, (completed_at - started_at).total_seconds() * 1000.0)

    @classmethod
    def succeeded(
        cls,
        *,
        invocation_id: str,
        capability_name: str,
        task_id: str,
        result: Any,
        started_at: datetime,
        completed_at: Optional[datetime] = None,
    ) -> "Outcome":
        completed_at = completed_at or _utc_now()
        return cls(
            invocation_id=invocation_id,
            capability_name=capability_name,
            task_id=task_id,
            success=True,
            result=result,
            started_at=started_at,
            completed_at=completed_at,
            duration_ms=cls._duration(started_at, completed_at),
        )

    @classmethod
    def failed(
        cls,
        *,
        invocation_id: str,
        capability_name: str,
        task_id: str,
        error_kind: ErrorKind,
        error_message: str,
        started_at: datetime,
        error_detail: Optional[List[Dict[str, Any]]] = None,
        completed_at: Optional[datetime] = None,
    ) -> "Outcome":
        completed_at = completed_at or _utc_now()
        return cls(
            invocation_id=invocation_id,
            capability_name=capability_name,
            task_id=task_id,
            success=False,
            error_kind=error_kind,
            error_message=error_message,
            error_detail=error_detail,
            started_at=started_at,
            completed_at=completed_at,
            duration_ms=cls._duration(started_at, completed_at),
        )


class UsageStats(BaseSchema):
    """Running usage counters for a single capability."""

    capability_name: str
    invocations: int = 0
    failures: int = 0
    timed_invocations: int = 0
    average_duration_ms: float = 0.0
    last_used_at: Optional[datetime] = None


class ActionResult(FrozenSchema):
    """One append-only Task Ledger entry."""

    sequence: int = Field(ge=0)
    step_index: Optional[int] = None
    kind: StepKind = StepKind.action
    outcome: Outcome
    recorded_at: datetime = Field(default_factory=_utc_now)


class FailureNote(FrozenSchema):
    capability_name: str
    error: str
    suggestion: str


class Verdict(FrozenSchema):
    """Reflection decision driving the next cognitive loop transition."""

    decision: VerdictDecision
    assessment: str = ""
    lessons: List[str] = Field(default_factory=list)
    next_focus: Optional[str] = None
    failures: List[FailureNote] = Field(default_factory=list)

    @classmethod
    def continue_(cls, assessment: str = "", **kwargs: Any) -> "Verdict":
        return cls(decision=VerdictDecision.continue_, assessment=assessment, **kwargs)


class AgentTask(BaseSchema):
    """A unit of work driven to a terminal state by one ``CognitiveLoop``."""

    id: str = Field(default_factory=_new_id)
    goal: str
    user_id: Optional[str] = None
    allowed_paths: Optional[List[str]] = None

    state: TaskState = TaskState.thinking
    iterations: int = 0

    plan: List[Dict[str, Any]] = Field(default_factory=list)
    lessons: List[str] = Field(default_factory=list)
    last_verdict: Optional[Verdict] = None
    response: Optional[str] = None
    failure_reason: Optional[str] = None

    created_at: datetime = Field(default_factory=_utc_now)
    updated_at: datetime = Field(default_factory=_utc_now)


class LifecycleEvent(FrozenSchema):
    id: str = Field(default_factory=_new_id)
    type: LifecycleEventType
    task_id: str

    invocation_id: Optional[str] = None
    capability_name: Optional[str] = None
    started_at: Optional[datetime] = None
    outcome: Optional[Outcome] = None

    payload: Dict[str, Any] = Field(default_factory=dict)
    created_at: datetime = Field(default_factory=_utc_now)
