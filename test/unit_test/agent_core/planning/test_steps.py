from __future__ import annotations

import pytest

from pegasus_ai.agent_core.planning.steps import normalize_plan


def test_normalize_plan_infers_action_kind() -> None:
    out = normalize_plan([{"capability": "read_file", "args": {"path": "a.txt"}}])
    assert out == [
        {
            "kind": "action",
            "capability": "read_file",
            "args": {"path": "a.txt"},
            "independent": False,
            "timeout_ms": None,
        }
    ]


def test_normalize_plan_infers_response_kind() -> None:
    assert normalize_plan([{"response": "hello"}]) == [{"kind": "response", "response": "hello"}]


def test_normalize_plan_keeps_order_and_flags() -> None:
    out = normalize_plan(
        [
            {"kind": "action", "capability": "web_fetch", "args": {"url": "https://a"}, "independent": True},
            {"kind": "action", "capability": "web_fetch", "args": {"url": "https://b"}, "independent": True},
            {"kind": "response", "response": "done"},
        ]
    )
    assert [s["kind"] for s in out] == ["action", "action", "response"]
    assert [s.get("independent") for s in out[:2]] == [True, True]


def test_normalize_plan_rejects_unknown_kind() -> None:
    with pytest.raises(ValueError, match="unknown step kind"):
        normalize_plan([{"kind": "wat"}])


def test_normalize_plan_rejects_response_step_with_action_fields() -> None:
    with pytest.raises(ValueError, match="response step cannot contain action fields"):
        normalize_plan([{"kind": "response", "response": "x", "capability": "read_file"}])


def test_normalize_plan_rejects_uninferable_and_non_dict_steps() -> None:
    with pytest.raises(ValueError, match="cannot infer step kind"):
        normalize_plan([{"args": {}}])
    with pytest.raises(ValueError, match="must be an object"):
        normalize_plan(["read_file"])  # type: ignore[list-item]


def test_normalize_plan_rejects_empty_capability_and_bad_timeout() -> None:
    with pytest.raises(ValueError):
        normalize_plan([{"kind": "action", "capability": ""}])
    with pytest.raises(ValueError):
        normalize_plan([{"kind": "action", "capability": "x", "timeout_ms": 0}])
