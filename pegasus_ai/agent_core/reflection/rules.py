from __future__ import annotations

"""Deterministic reflection policy.

Rules, applied to the entries recorded since the previous reflection:

1. no evidence                      -> ``continue``
2. any failure                      -> ``replan`` with a failure note per failure
3. all succeeded, steps remaining   -> ``continue``
4. all succeeded, plan exhausted    -> ``complete``
"""

from typing import Dict, List

from ..schemas.domain import ActionResult, ErrorKind, FailureNote, Verdict, VerdictDecision
from .base import ReflectionInput

SUGGESTIONS: Dict[ErrorKind, str] = {
    ErrorKind.not_found: "Use only capabilities from the catalogue.",
    ErrorKind.validation_failed: "Fix the arguments to match the capability parameter schema.",
    ErrorKind.timeout: "Try a smaller request or a different capability.",
    ErrorKind.execution_failed: "Check the inputs or choose another approach.",
    ErrorKind.permission_denied: "Stay within the allowed paths.",
}


class RuleBasedReflection:
    """Reflection policy that needs no language model."""

    async def reflect(self, data: ReflectionInput) -> Verdict:
        if not data.recent:
            return Verdict.continue_("no new evidence")

        failed = [e for e in data.recent if not e.outcome.success]
        if failed:
            notes = [_note(e) for e in failed]
            return Verdict(
                decision=VerdictDecision.replan,
                assessment=f"{len(failed)} of {len(data.recent)} recent step(s) failed",
                lessons=[f"{n.capability_name} failed: {n.error}" for n in notes],
                failures=notes,
            )

        if data.remaining_steps > 0:
            return Verdict.continue_(f"{len(data.recent)} step(s) succeeded, {data.remaining_steps} remaining")

        return Verdict(decision=VerdictDecision.complete, assessment="plan executed successfully")


def _note(entry: ActionResult) -> FailureNote:
    o = entry.outcome
    kind = o.error_kind or ErrorKind.execution_failed
    return FailureNote(
        capability_name=o.capability_name,
        error=o.error_message or kind.value,
        suggestion=SUGGESTIONS[kind],
    )


def failure_notes(entries: List[ActionResult]) -> List[FailureNote]:
    return [_note(e) for e in entries if not e.outcome.success]
