from __future__ import annotations

"""Language-model driven reflection policy.

The model is asked for a JSON verdict. Whatever goes wrong (the call fails,
times out, or the reply cannot be understood) the policy still returns exactly
one verdict: the fallback policy's, or ``continue``.
"""

import asyncio
import json
import logging
import re
from typing import Any, Dict, List, Optional

from pydantic import ValidationError

from ..llm.base import LanguageModel, Message, SamplingOptions
from ..schemas.domain import FailureNote, Verdict, VerdictDecision
from .base import ReflectionInput, ReflectionPolicy
from .rules import failure_notes

logger = logging.getLogger(__name__)

_JSON_OBJECT = re.compile(r"\{.*\}", re.DOTALL)

SYSTEM_PROMPT = (
    "You review the progress of an autonomous agent. Given the task goal and the outcomes of its most "
    "recent actions, decide whether it should continue with its plan, replan, or stop because the task is "
    "complete (partial success counts as complete when nothing more can be done). Reply with one JSON object: "
    '{"decision": "continue" | "replan" | "complete", "assessment": "...", "lessons": ["..."], '
    '"next_focus": "..." | null, "failures": [{"capability_name": "...", "error": "...", "suggestion": "..."}]}.'
)


class LLMReflection:
    """Reflection policy delegating the judgement to a language model.

    Args:
        model: The language model.
        fallback: Policy consulted when the model gives no usable verdict.
            Without one the policy answers ``continue``.
        timeout_ms: Upper bound for the model call.
    """

    def __init__(
        self,
        model: LanguageModel,
        *,
        fallback: Optional[ReflectionPolicy] = None,
        timeout_ms: int = 30_000,
        options: Optional[SamplingOptions] = None,
    ) -> None:
        self._model = model
        self._fallback = fallback
        self._timeout_ms = timeout_ms
        self._options = options

    async def reflect(self, data: ReflectionInput) -> Verdict:
        try:
            result = await asyncio.wait_for(
                self._model.generate(SYSTEM_PROMPT, [Message(role="user", content=_render(data))], self._options),
                timeout=self._timeout_ms / 1000.0,
            )
        except asyncio.TimeoutError:
            logger.warning(f"Reflection for task {data.task_id} timed out after {self._timeout_ms} ms")
            return await self._default(data, "reflection timed out")
        except Exception as e:
            logger.warning(f"Reflection for task {data.task_id} failed: {e}")
            return await self._default(data, f"reflection failed: {e}")

        verdict = parse_verdict(result.text)
        if verdict is None:
            logger.warning(f"Unusable reflection reply for task {data.task_id}: {result.text[:200]!r}")
            return await self._default(data, "reflection reply was not understood")
        if not verdict.failures:
            notes = failure_notes(data.recent)
            if notes:
                verdict = verdict.model_copy(update={"failures": notes})
        return verdict

    async def _default(self, data: ReflectionInput, reason: str) -> Verdict:
        if self._fallback is not None:
            return await self._fallback.reflect(data)
        return Verdict.continue_(reason)


def _render(data: ReflectionInput) -> str:
    lines: List[str] = []
    for entry in data.recent:
        o = entry.outcome
        if o.success:
            lines.append(f"- {o.capability_name}: ok -> {_preview(o.result)}")
        else:
            kind = o.error_kind.value if o.error_kind else "error"
            lines.append(f"- {o.capability_name}: {kind}: {o.error_message}")
    recent = "\n".join(lines) or "(no new actions)"
    return (
        f"Task goal:\n{data.goal}\n\n"
        f"Recent outcomes:\n{recent}\n\n"
        f"Plan steps remaining: {data.remaining_steps}\n"
        f"Iteration: {data.iteration + 1}"
    )


def _preview(value: Any, limit: int = 500) -> str:
    text = value if isinstance(value, str) else json.dumps(value, default=str)
    return text if len(text) <= limit else text[:limit] + "..."


def parse_verdict(text: str) -> Optional[Verdict]:
    """Extract a ``Verdict`` from a model reply, or ``None`` if there is none."""
    match = _JSON_OBJECT.search(text or "")
    if match is None:
        return None
    try:
        raw: Dict[str, Any] = json.loads(match.group(0))
    except json.JSONDecodeError:
        return None
    if not isinstance(raw, dict):
        return None

    decision = str(raw.get("decision") or "").strip().lower()
    if decision not in {d.value for d in VerdictDecision}:
        return None
    try:
        return Verdict(
            decision=VerdictDecision(decision),
            assessment=str(raw.get("assessment") or ""),
            lessons=_as_list(raw.get("lessons")),
            next_focus=raw.get("next_focus") or None,
            failures=[FailureNote(**f) for f in raw.get("failures") or [] if isinstance(f, dict)],
        )
    except (ValidationError, TypeError):
        return None


def _as_list(value: Any) -> List[str]:
    if value is None or value == "":
        return []
    if isinstance(value, (list, tuple)):
        return [str(x) for x in value]
    return [str(value)]
