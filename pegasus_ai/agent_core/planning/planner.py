from __future__ import annotations

"""Structured planning for the THINKING phase.

Responsibilities
----------------

- Turn a task goal, the capability catalogue and the lessons gathered so far
  into a *plan*: a list of step dictionaries conforming to
  ``pegasus_ai.agent_core.planning.steps``.
- Call the language model exactly once per plan.

The planner never executes capabilities. When the model answers with plain
text instead of a JSON plan, the text becomes a single direct response step.
"""

import json
import logging
import re
from typing import Any, Dict, List, Optional, Sequence

from pydantic import ValidationError

from ..errors import PlanningError
from ..llm.base import LanguageModel, Message, SamplingOptions
from ..schemas.domain import ActionResult, FailureNote
from .steps import ResponseStep, normalize_plan

logger = logging.getLogger(__name__)

_FENCE = re.compile(r"```(?:json)?\s*(.*?)```", re.DOTALL)

SYSTEM_PROMPT = (
    "You are the planning component of an autonomous agent. "
    "Decide the next steps needed to accomplish the task goal using only the listed capabilities. "
    "Reply with a single JSON object of the form "
    '{"steps": [{"kind": "action", "capability": "<name>", "args": {...}, "independent": false}, '
    '{"kind": "response", "response": "<text for the user>"}]}. '
    "Mark consecutive steps that do not depend on each other with \"independent\": true. "
    "End with a response step once the goal can be answered. "
    "If no capability is needed, reply with a single response step."
)


class StructuredPlanner:
    """Planner that produces structured step dictionaries.

    The planner supports two modes:

    - ``model=None``: deterministic fallback emitting a single response step.
      Useful for tests and offline deployments.
    - ``model!=None``: asks the language model for a JSON plan.
    """

    def __init__(
        self,
        *,
        model: Optional[LanguageModel] = None,
        options: Optional[SamplingOptions] = None,
        system_prompt: str = SYSTEM_PROMPT,
        max_history: int = 10,
    ) -> None:
        self._model = model
        self._options = options
        self._system_prompt = system_prompt
        self._max_history = max_history

    async def plan(
        self,
        *,
        goal: str,
        capabilities: Sequence[Dict[str, Any]] = (),
        lessons: Sequence[str] = (),
        failures: Sequence[FailureNote] = (),
        history: Sequence[ActionResult] = (),
        next_focus: Optional[str] = None,
    ) -> List[Dict[str, Any]]:
        """Generate a plan for a task.

        Parameters
        ----------
        goal:
            The task goal.
        capabilities:
            Output of ``CapabilityRegistry.export_for_planner``.
        lessons, failures, next_focus:
            Seeds from the previous reflection when replanning.
        history:
            Ledger entries so far; the most recent ``max_history`` are shown.

        Returns
        -------
        list[dict[str, Any]]
            Normalized plan steps.

        Raises
        ------
        PlanningError
            If the language model call fails or returns nothing.
        """
        if self._model is None:
            return [ResponseStep(response=goal).model_dump()]

        prompt = self._render_prompt(goal, capabilities, lessons, failures, history, next_focus)
        try:
            result = await self._model.generate(
                self._system_prompt, [Message(role="user", content=prompt)], self._options
            )
        except Exception as e:
            raise PlanningError(f"language model unavailable: {e}") from e

        text = result.text.strip()
        if not text:
            raise PlanningError(f"language model returned an empty plan (finish_reason={result.finish_reason})")
        logger.debug(
            f"Plan generated ({result.usage.prompt_tokens}+{result.usage.completion_tokens} tokens, "
            f"finish_reason={result.finish_reason})"
        )
        return parse_plan(text)

    def _render_prompt(
        self,
        goal: str,
        capabilities: Sequence[Dict[str, Any]],
        lessons: Sequence[str],
        failures: Sequence[FailureNote],
        history: Sequence[ActionResult],
        next_focus: Optional[str],
    ) -> str:
        sections = [f"Task goal:\n{goal}", f"Capabilities:\n{json.dumps(list(capabilities), indent=2)}"]
        if history:
            lines = []
            for entry in list(history)[-self._max_history :]:
                o = entry.outcome
                status = "ok" if o.success else f"{o.error_kind.value if o.error_kind else 'error'}: {o.error_message}"
                lines.append(f"- {o.capability_name}: {status}")
            sections.append("Previous actions:\n" + "\n".join(lines))
        if failures:
            sections.append(
                "Recent failures:\n"
                + "\n".join(f"- {f.capability_name}: {f.error} (suggestion: {f.suggestion})" for f in failures)
            )
        if lessons:
            sections.append("Lessons learned:\n" + "\n".join(f"- {lesson}" for lesson in lessons))
        if next_focus:
            sections.append(f"Focus next on:\n{next_focus}")
        return "\n\n".join(sections)


def parse_plan(text: str) -> List[Dict[str, Any]]:
    """Parse a model reply into normalized steps.

    Accepts a JSON object with a ``steps`` list or a bare JSON list, optionally
    wrapped in a Markdown code fence. Anything else is treated as a direct
    response to the user.
    """
    candidate = text.strip()
    fenced = _FENCE.search(candidate)
    if fenced:
        candidate = fenced.group(1).strip()

    try:
        data = json.loads(candidate)
    except json.JSONDecodeError:
        return [ResponseStep(response=text.strip()).model_dump()]

    steps = data.get("steps") if isinstance(data, dict) else data
    if not isinstance(steps, list):
        return [ResponseStep(response=text.strip()).model_dump()]
    try:
        return normalize_plan(steps)
    except (ValueError, ValidationError) as e:
        logger.warning(f"Discarding malformed plan from model: {e}")
        return [ResponseStep(response=text.strip()).model_dump()]
