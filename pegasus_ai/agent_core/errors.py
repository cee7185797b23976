"""Exception hierarchy for the agent core.

Capability failures never escape the dispatcher: ``CapabilityError`` and its
subclasses are raised *inside* capabilities and mapped to an ``Outcome``
carrying the matching ``ErrorKind``. The remaining exceptions surface to
callers of the registry and the cognitive loop.
"""

from __future__ import annotations

from typing import Optional

from .schemas.domain import ErrorKind


class PegasusError(Exception):
    """Base class for all agent core errors."""


class DuplicateCapabilityError(PegasusError):
    """Raised when registering a capability name that already exists."""

    def __init__(self, name: str) -> None:
        super().__init__(f"capability already registered: {name}")
        self.name = name


class CapabilityError(PegasusError):
    """Failure raised by a capability with an explicit error kind."""

    kind: ErrorKind = ErrorKind.execution_failed

    def __init__(self, message: str, *, kind: Optional[ErrorKind] = None) -> None:
        super().__init__(message)
        if kind is not None:
            self.kind = kind


class PermissionDeniedError(CapabilityError):
    """Access-control rejection, e.g. a path outside the allow-list."""

    kind = ErrorKind.permission_denied


class PlanningError(PegasusError):
    """The thinking phase could not produce a plan."""


class TaskTerminatedError(PegasusError):
    """Raised when running a task that already reached DONE or FAILED."""

    def __init__(self, task_id: str, state: str) -> None:
        super().__init__(f"task {task_id} is terminal ({state}) and cannot be resumed")
        self.task_id = task_id
        self.state = state
