from __future__ import annotations

from datetime import datetime, timezone

import pytest

from pegasus_ai.agent_core.reflection import ReflectionInput, RuleBasedReflection
from pegasus_ai.agent_core.schemas.domain import ActionResult, ErrorKind, Outcome, VerdictDecision


def _entry(seq: int, name: str, error_kind: ErrorKind | None = None) -> ActionResult:
    started = datetime.now(timezone.utc)
    if error_kind is None:
        outcome = Outcome.succeeded(
            invocation_id=f"i{seq}", capability_name=name, task_id="t1", result="ok", started_at=started
        )
    else:
        outcome = Outcome.failed(
            invocation_id=f"i{seq}",
            capability_name=name,
            task_id="t1",
            error_kind=error_kind,
            error_message=f"{name} broke",
            started_at=started,
        )
    return ActionResult(sequence=seq, step_index=seq, outcome=outcome)


@pytest.mark.asyncio
async def test_no_evidence_continues() -> None:
    verdict = await RuleBasedReflection().reflect(ReflectionInput(task_id="t1", goal="g"))
    assert verdict.decision == VerdictDecision.continue_


@pytest.mark.asyncio
async def test_failure_triggers_replan_with_notes() -> None:
    recent = [_entry(0, "read_file"), _entry(1, "web_fetch", ErrorKind.timeout)]
    verdict = await RuleBasedReflection().reflect(
        ReflectionInput(task_id="t1", goal="g", recent=recent, history=recent, remaining_steps=2)
    )

    assert verdict.decision == VerdictDecision.replan
    assert [f.capability_name for f in verdict.failures] == ["web_fetch"]
    assert verdict.failures[0].error == "web_fetch broke"
    assert "smaller request" in verdict.failures[0].suggestion
    assert verdict.lessons == ["web_fetch failed: web_fetch broke"]


@pytest.mark.asyncio
async def test_success_with_remaining_steps_continues() -> None:
    recent = [_entry(0, "read_file")]
    verdict = await RuleBasedReflection().reflect(
        ReflectionInput(task_id="t1", goal="g", recent=recent, remaining_steps=1)
    )
    assert verdict.decision == VerdictDecision.continue_


@pytest.mark.asyncio
async def test_success_with_exhausted_plan_completes() -> None:
    recent = [_entry(0, "read_file"), _entry(1, "respond")]
    verdict = await RuleBasedReflection().reflect(ReflectionInput(task_id="t1", goal="g", recent=recent))
    assert verdict.decision == VerdictDecision.complete
    assert verdict.failures == []
