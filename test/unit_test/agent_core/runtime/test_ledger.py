from __future__ import annotations

from datetime import datetime, timezone

import pytest

from pegasus_ai.agent_core.runtime.ledger import LedgerStore, TaskLedger
from pegasus_ai.agent_core.schemas.domain import ErrorKind, Outcome, StepKind


def _outcome(task_id: str, name: str, ok: bool = True) -> Outcome:
    started = datetime.now(timezone.utc)
    if ok:
        return Outcome.succeeded(
            invocation_id=f"{name}-id", capability_name=name, task_id=task_id, result={"n": 1}, started_at=started
        )
    return Outcome.failed(
        invocation_id=f"{name}-id",
        capability_name=name,
        task_id=task_id,
        error_kind=ErrorKind.execution_failed,
        error_message="boom",
        started_at=started,
    )


def test_append_assigns_sequence_in_insertion_order() -> None:
    ledger = TaskLedger("t1")
    first = ledger.append(_outcome("t1", "a"), step_index=0)
    second = ledger.append(_outcome("t1", "respond"), step_index=1, kind=StepKind.response)

    assert (first.sequence, second.sequence) == (0, 1)
    assert second.kind == StepKind.response
    assert [e.outcome.capability_name for e in ledger.entries] == ["a", "respond"]
    assert len(ledger) == 2


def test_entries_is_a_snapshot() -> None:
    ledger = TaskLedger("t1")
    ledger.append(_outcome("t1", "a"))
    snapshot = ledger.entries
    snapshot.clear()
    assert len(ledger.entries) == 1


def test_since_and_failures() -> None:
    ledger = TaskLedger("t1")
    ledger.append(_outcome("t1", "a"))
    ledger.append(_outcome("t1", "b", ok=False))
    ledger.append(_outcome("t1", "c"))

    assert [e.outcome.capability_name for e in ledger.since(1)] == ["b", "c"]
    assert ledger.since(3) == []
    assert [e.outcome.capability_name for e in ledger.failures()] == ["b"]


def test_append_rejects_outcome_of_other_task() -> None:
    ledger = TaskLedger("t1")
    with pytest.raises(ValueError):
        ledger.append(_outcome("t2", "a"))


def test_store_creates_one_ledger_per_task() -> None:
    store = LedgerStore()
    assert store.get("t1") is None

    ledger = store.ledger("t1")
    assert store.ledger("t1") is ledger
    assert store.get("t1") is ledger
    store.ledger("t2")
    assert store.task_ids() == ["t1", "t2"]
