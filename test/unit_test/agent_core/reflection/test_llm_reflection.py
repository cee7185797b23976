from __future__ import annotations

import asyncio
from datetime import datetime, timezone
from typing import List, Optional

import pytest

from pegasus_ai.agent_core.llm.base import GenerateResult, Message, SamplingOptions
from pegasus_ai.agent_core.reflection import LLMReflection, ReflectionInput, RuleBasedReflection, parse_verdict
from pegasus_ai.agent_core.schemas.domain import ActionResult, ErrorKind, Outcome, VerdictDecision


class _FakeModel:
    provider = "fake"
    model_id = "fake-1"

    def __init__(self, text: str = "", *, error: Optional[Exception] = None, delay: float = 0.0) -> None:
        self._text = text
        self._error = error
        self._delay = delay
        self.prompts: List[str] = []

    async def generate(
        self,
        system_prompt: Optional[str],
        messages: List[Message],
        options: Optional[SamplingOptions] = None,
    ) -> GenerateResult:
        self.prompts.append(messages[-1].content)
        if self._delay:
            await asyncio.sleep(self._delay)
        if self._error is not None:
            raise self._error
        return GenerateResult(text=self._text)


def _failed_entry() -> ActionResult:
    outcome = Outcome.failed(
        invocation_id="i0",
        capability_name="read_file",
        task_id="t1",
        error_kind=ErrorKind.permission_denied,
        error_message="path not allowed: /etc/shadow",
        started_at=datetime.now(timezone.utc),
    )
    return ActionResult(sequence=0, step_index=0, outcome=outcome)


def _input(**kwargs) -> ReflectionInput:
    return ReflectionInput(task_id="t1", goal="read the secrets", **kwargs)


def test_parse_verdict_reads_json_object_in_prose() -> None:
    text = 'Here is my verdict: {"decision": "complete", "assessment": "done", "lessons": ["x"]} thanks'
    verdict = parse_verdict(text)
    assert verdict is not None
    assert verdict.decision == VerdictDecision.complete
    assert verdict.assessment == "done"
    assert verdict.lessons == ["x"]


@pytest.mark.parametrize(
    "text",
    [
        "no json here",
        '{"decision": "give up"}',
        "{not json}",
        '{"decision": "replan", "failures": [{"capability_name": "x"}]}',
    ],
)
def test_parse_verdict_rejects_unusable_replies(text: str) -> None:
    assert parse_verdict(text) is None


@pytest.mark.asyncio
async def test_llm_verdict_is_returned_and_failures_backfilled() -> None:
    model = _FakeModel('{"decision": "replan", "assessment": "path denied", "next_focus": "use allowed dir"}')
    policy = LLMReflection(model)

    verdict = await policy.reflect(_input(recent=[_failed_entry()], remaining_steps=1))

    assert verdict.decision == VerdictDecision.replan
    assert verdict.next_focus == "use allowed dir"
    assert [f.capability_name for f in verdict.failures] == ["read_file"]
    assert "permission_denied" in model.prompts[0]
    assert "read the secrets" in model.prompts[0]


@pytest.mark.asyncio
async def test_unusable_reply_falls_back_to_continue() -> None:
    verdict = await LLMReflection(_FakeModel("I am not sure.")).reflect(_input())
    assert verdict.decision == VerdictDecision.continue_


@pytest.mark.asyncio
async def test_model_error_uses_fallback_policy() -> None:
    policy = LLMReflection(_FakeModel(error=RuntimeError("rate limited")), fallback=RuleBasedReflection())
    verdict = await policy.reflect(_input(recent=[_failed_entry()]))
    assert verdict.decision == VerdictDecision.replan


@pytest.mark.asyncio
async def test_model_timeout_yields_continue() -> None:
    policy = LLMReflection(_FakeModel('{"decision": "complete"}', delay=1.0), timeout_ms=20)
    verdict = await policy.reflect(_input())
    assert verdict.decision == VerdictDecision.continue_
    assert verdict.assessment == "reflection timed out"


@pytest.mark.parametrize(
    "lessons,expected",
    [
        ('"retry later"', ["retry later"]),
        ('["a", "b"]', ["a", "b"]),
        ("null", []),
    ],
)
def test_parse_verdict_normalizes_lessons(lessons: str, expected: List[str]) -> None:
    verdict = parse_verdict(f'{{"decision": "continue", "lessons": {lessons}}}')
    assert verdict is not None
    assert verdict.lessons == expected
