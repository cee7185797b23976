from __future__ import annotations

from typing import List, Optional

import pytest

from pegasus_ai.agent_core.errors import PlanningError
from pegasus_ai.agent_core.llm.base import GenerateResult, Message, SamplingOptions, TokenUsage
from pegasus_ai.agent_core.planning import StructuredPlanner
from pegasus_ai.agent_core.planning.planner import parse_plan
from pegasus_ai.agent_core.schemas.domain import FailureNote


class _FakeModel:
    provider = "fake"
    model_id = "fake-1"

    def __init__(self, text: str = "", *, error: Optional[Exception] = None) -> None:
        self._text = text
        self._error = error
        self.prompts: List[str] = []
        self.system_prompts: List[Optional[str]] = []

    async def generate(
        self,
        system_prompt: Optional[str],
        messages: List[Message],
        options: Optional[SamplingOptions] = None,
    ) -> GenerateResult:
        self.system_prompts.append(system_prompt)
        self.prompts.append(messages[-1].content)
        if self._error is not None:
            raise self._error
        return GenerateResult(text=self._text, usage=TokenUsage(prompt_tokens=10, completion_tokens=5))


@pytest.mark.asyncio
async def test_planner_fallback_when_model_is_none() -> None:
    planner = StructuredPlanner(model=None)
    steps = await planner.plan(goal="say hello")

    assert steps == [{"kind": "response", "response": "say hello"}]


@pytest.mark.asyncio
async def test_planner_parses_model_json_plan() -> None:
    model = _FakeModel(
        '{"steps": [{"kind": "action", "capability": "read_file", "args": {"path": "notes.txt"}},'
        ' {"kind": "response", "response": "summarized"}]}'
    )
    planner = StructuredPlanner(model=model)

    steps = await planner.plan(
        goal="Summarize notes.txt",
        capabilities=[{"name": "read_file", "description": "Read a file", "parameters": {}}],
    )

    assert [s["kind"] for s in steps] == ["action", "response"]
    assert steps[0]["capability"] == "read_file"
    assert steps[0]["args"] == {"path": "notes.txt"}
    assert "Summarize notes.txt" in model.prompts[0]
    assert '"read_file"' in model.prompts[0]
    assert model.system_prompts[0]


@pytest.mark.asyncio
async def test_planner_prompt_includes_replanning_seeds() -> None:
    model = _FakeModel('[{"response": "ok"}]')
    planner = StructuredPlanner(model=model)

    await planner.plan(
        goal="g",
        lessons=["read_file failed: file not found"],
        failures=[FailureNote(capability_name="read_file", error="file not found", suggestion="check the path")],
        next_focus="try list_directory first",
    )

    prompt = model.prompts[0]
    assert "Lessons learned" in prompt
    assert "file not found" in prompt
    assert "check the path" in prompt
    assert "try list_directory first" in prompt


@pytest.mark.asyncio
async def test_planner_wraps_model_errors() -> None:
    planner = StructuredPlanner(model=_FakeModel(error=ConnectionError("refused")))
    with pytest.raises(PlanningError, match="refused"):
        await planner.plan(goal="g")


@pytest.mark.asyncio
async def test_planner_rejects_empty_reply() -> None:
    planner = StructuredPlanner(model=_FakeModel("   "))
    with pytest.raises(PlanningError, match="empty"):
        await planner.plan(goal="g")


def test_parse_plan_accepts_code_fence() -> None:
    text = '```json\n{"steps": [{"capability": "current_time"}]}\n```'
    assert parse_plan(text)[0]["capability"] == "current_time"


def test_parse_plan_accepts_bare_list() -> None:
    steps = parse_plan('[{"capability": "web_fetch", "args": {"url": "https://example.com"}, "independent": true}]')
    assert steps[0]["independent"] is True


def test_parse_plan_treats_plain_text_as_response() -> None:
    assert parse_plan("The answer is 42.") == [{"kind": "response", "response": "The answer is 42."}]


def test_parse_plan_treats_malformed_steps_as_response() -> None:
    text = '{"steps": [{"kind": "teleport"}]}'
    assert parse_plan(text) == [{"kind": "response", "response": text}]


def test_parse_plan_treats_non_list_steps_as_response() -> None:
    text = '{"steps": "read the file"}'
    assert parse_plan(text)[0]["kind"] == "response"
