from __future__ import annotations

"""Capability registry.

The registry maps a capability name to an executable capability
implementation and owns the per-capability usage statistics.

The dispatcher uses this registry to resolve action steps and reports every
``Outcome`` back through ``record_usage``. The planner only ever sees the
output of ``export_for_planner``.
"""

import logging
import threading
from typing import Any, Dict, List, Optional

from ..errors import DuplicateCapabilityError
from ..schemas.domain import CapabilityCategory, ErrorKind, Outcome, UsageStats
from .base import Capability

logger = logging.getLogger(__name__)

# Failures that never ran the capability body; they must not skew the average duration.
_UNTIMED_ERRORS = frozenset({ErrorKind.not_found, ErrorKind.validation_failed})


class CapabilityRegistry:
    """
    In-memory mapping of capability names to implementations.

    This registry is the central lookup mechanism for resolving capability
    names (e.g. ``read_file``) to executable code. Iteration order is
    insertion order.

    Notes:
        - ``register`` rejects a name that is already present; use ``replace``
          to overwrite deliberately.
        - ``get`` returns ``None`` for unknown names.
        - Usage statistics updates are serialized with a lock so concurrent
          dispatches never interleave a read-modify-write.
    """

    def __init__(self) -> None:
        """Initialize an empty capability registry."""
        self._caps: Dict[str, Capability] = {}
        self._stats: Dict[str, UsageStats] = {}
        self._lock = threading.Lock()

    def register(self, cap: Capability) -> None:
        """
        Register a capability implementation.

        Args:
            cap: The capability instance to register.

        Raises:
            DuplicateCapabilityError: If a capability with the same name exists.
        """
        with self._lock:
            if cap.name in self._caps:
                raise DuplicateCapabilityError(cap.name)
            self._caps[cap.name] = cap
            self._stats[cap.name] = UsageStats(capability_name=cap.name)
        logger.debug(f"Registered capability '{cap.name}' ({cap.category.value})")

    def replace(self, cap: Capability) -> None:
        """
        Register ``cap``, overwriting any capability with the same name.

        Existing usage statistics for the name are kept. A replaced name keeps
        its original position in insertion order.
        """
        with self._lock:
            self._caps[cap.name] = cap
            self._stats.setdefault(cap.name, UsageStats(capability_name=cap.name))
        logger.debug(f"Replaced capability '{cap.name}'")

    def get(self, name: str) -> Optional[Capability]:
        """
        Retrieve a registered capability by name.

        Args:
            name: The capability name.

        Returns:
            The capability implementation, or ``None`` when not registered.
        """
        return self._caps.get(name)

    def has(self, name: str) -> bool:
        """Check if a capability is registered."""
        return name in self._caps

    def list(self) -> List[Capability]:
        return list(self._caps.values())

    def list_by_category(self, category: CapabilityCategory) -> List[Capability]:
        return [c for c in self._caps.values() if c.category == category]

    def __len__(self) -> int:
        return len(self._caps)

    def __contains__(self, name: object) -> bool:
        return name in self._caps

    def record_usage(self, name: str, outcome: Outcome) -> None:
        """
        Fold one outcome into the usage statistics for ``name``.

        The moving average only covers outcomes whose capability body actually
        ran; validation and lookup failures count as failures but carry no
        duration.

        Args:
            name: The capability name.
            outcome: The finalized outcome of the invocation.
        """
        with self._lock:
            stats = self._stats.get(name)
            if stats is None:
                logger.debug(f"record_usage for unknown capability '{name}' ignored")
                return
            stats.invocations += 1
            if not outcome.success:
                stats.failures += 1
            if outcome.error_kind not in _UNTIMED_ERRORS:
                stats.timed_invocations += 1
                stats.average_duration_ms += (
                    outcome.duration_ms - stats.average_duration_ms
                ) / stats.timed_invocations
            stats.last_used_at = outcome.completed_at

    def stats(self, name: str) -> Optional[UsageStats]:
        """Return a snapshot of the usage statistics for ``name``."""
        with self._lock:
            stats = self._stats.get(name)
            return stats.model_copy() if stats is not None else None

    def all_stats(self) -> Dict[str, UsageStats]:
        with self._lock:
            return {name: s.model_copy() for name, s in self._stats.items()}

    def export_for_planner(self) -> List[Dict[str, Any]]:
        """
        Describe every registered capability for the planning model.

        Returns:
            One ``{"name", "description", "category", "parameters"}`` dict per
            capability, in insertion order. ``parameters`` is a JSON Schema.
        """
        return [
            {
                "name": cap.name,
                "description": cap.description,
                "category": cap.category.value,
                "parameters": cap.parameter_schema.to_json_schema(),
            }
            for cap in self._caps.values()
        ]
