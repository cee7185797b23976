from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Protocol, runtime_checkable

from ..schemas.domain import ActionResult, Verdict


@dataclass(frozen=True)
class ReflectionInput:
    """Evidence handed to a reflection policy.

    Attributes
    ----------
    recent:
        Ledger entries appended since the previous reflection.
    history:
        The whole ledger, oldest first.
    remaining_steps:
        Plan steps not yet executed.
    iteration:
        Number of reflections already performed for the task.
    """

    task_id: str
    goal: str
    recent: List[ActionResult] = field(default_factory=list)
    history: List[ActionResult] = field(default_factory=list)
    remaining_steps: int = 0
    iteration: int = 0


@runtime_checkable
class ReflectionPolicy(Protocol):
    """Oracle turning ledger evidence into exactly one verdict.

    Implementations must not block indefinitely and should return
    ``continue`` when the evidence is missing or ambiguous.
    """

    async def reflect(self, data: ReflectionInput) -> Verdict: ...
