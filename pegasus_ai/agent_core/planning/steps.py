from __future__ import annotations

from typing import Any, Dict, List, Literal, Optional, Union

from pydantic import Field

from ..schemas.base import BaseSchema


class ActionStep(BaseSchema):
    kind: Literal["action"] = "action"
    capability: str = Field(min_length=1)
    args: Dict[str, Any] = Field(default_factory=dict)
    independent: bool = False
    timeout_ms: Optional[int] = Field(default=None, gt=0)


class ResponseStep(BaseSchema):
    kind: Literal["response"] = "response"
    response: str


PlanStep = Union[ActionStep, ResponseStep]

_ACTION_FIELDS = {"capability", "args", "independent", "timeout_ms"}


def normalize_plan(plan: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Validate raw step dicts and return them in canonical form.

    Steps without ``kind`` are inferred: a ``capability`` key makes an action
    step, a ``response`` key a response step.

    Raises:
        ValueError: On an unknown kind, a response step carrying action
            fields, or a step that fails schema validation.
    """
    out: List[Dict[str, Any]] = []
    for raw in plan:
        if not isinstance(raw, dict):
            raise ValueError(f"plan step must be an object, got {type(raw).__name__}")
        kind = raw.get("kind")
        if kind is None:
            if "capability" in raw:
                kind = "action"
            elif "response" in raw:
                kind = "response"
            else:
                raise ValueError(f"cannot infer step kind: {sorted(raw)}")
            raw = {**raw, "kind": kind}
        if kind == "action":
            out.append(ActionStep(**raw).model_dump())
            continue
        if kind == "response":
            present = _ACTION_FIELDS.intersection(raw.keys())
            if present:
                raise ValueError(f"response step cannot contain action fields: {sorted(present)}")
            out.append(ResponseStep(**raw).model_dump())
            continue
        raise ValueError(f"unknown step kind: {kind}")
    return out
