from __future__ import annotations

"""Append-only per-task history of outcomes.

Each task owns one ``TaskLedger``. Entries are ``ActionResult`` records in
insertion order; nothing is ever removed or reordered. The reflection policy
reads recent entries with ``since``; audits read ``entries``.
"""

import logging
import threading
from typing import Dict, List, Optional

from ..schemas.domain import ActionResult, Outcome, StepKind

logger = logging.getLogger(__name__)


class TaskLedger:
    """Insertion-ordered record of every attempted action for one task."""

    def __init__(self, task_id: str) -> None:
        self.task_id = task_id
        self._entries: List[ActionResult] = []
        self._lock = threading.Lock()

    def append(
        self,
        outcome: Outcome,
        *,
        step_index: Optional[int] = None,
        kind: StepKind = StepKind.action,
    ) -> ActionResult:
        """Record ``outcome`` and return the new entry."""
        if outcome.task_id != self.task_id:
            raise ValueError(f"outcome for task {outcome.task_id} cannot be appended to ledger {self.task_id}")
        with self._lock:
            entry = ActionResult(sequence=len(self._entries), step_index=step_index, kind=kind, outcome=outcome)
            self._entries.append(entry)
        logger.debug(
            f"ledger[{self.task_id}] #{entry.sequence} {outcome.capability_name} success={outcome.success}"
        )
        return entry

    @property
    def entries(self) -> List[ActionResult]:
        with self._lock:
            return list(self._entries)

    def since(self, sequence: int) -> List[ActionResult]:
        """Entries with ``entry.sequence >= sequence``."""
        with self._lock:
            return self._entries[sequence:]

    def failures(self) -> List[ActionResult]:
        with self._lock:
            return [e for e in self._entries if not e.outcome.success]

    def __len__(self) -> int:
        return len(self._entries)


class LedgerStore:
    """Lookup of task ledgers by task id, shared by the dispatcher and the loops."""

    def __init__(self) -> None:
        self._ledgers: Dict[str, TaskLedger] = {}
        self._lock = threading.Lock()

    def ledger(self, task_id: str) -> TaskLedger:
        """Return the ledger for ``task_id``, creating it on first use."""
        with self._lock:
            ledger = self._ledgers.get(task_id)
            if ledger is None:
                ledger = TaskLedger(task_id)
                self._ledgers[task_id] = ledger
            return ledger

    def get(self, task_id: str) -> Optional[TaskLedger]:
        return self._ledgers.get(task_id)

    def task_ids(self) -> List[str]:
        with self._lock:
            return list(self._ledgers)
