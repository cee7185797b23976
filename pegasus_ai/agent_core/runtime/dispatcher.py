from __future__ import annotations

"""Bounded-concurrency capability dispatcher.

``InvocationDispatcher.execute`` is the single entry point through which the
cognitive loop runs capabilities. Every call terminates in a well-formed
``Outcome``; capability failures never escape as exceptions.

Execution pipeline
------------------

1. Mint the invocation id shared by the events and the outcome of this call.
2. Resolve the capability name (``not_found`` if unknown).
3. Validate the raw parameters (``validation_failed`` on mismatch).
   Neither failure acquires a permit or starts a timer.
4. Acquire a permit from the shared semaphore. This is the only
   backpressure: any number of callers may wait, at most
   ``max_concurrency`` run.
5. Emit ``invocation.requested``.
6. Run ``invoke`` as a separate task under a deadline. On expiry the task is
   cancelled as a best-effort signal and abandoned (``timeout``); the
   dispatcher does not wait for it to wind down.
7. Map the result or exception to an ``Outcome``.
8. Release the permit.
9. Emit ``invocation.completed`` or ``invocation.failed``.
10. Fold the outcome into the registry's usage statistics.
11. Append the outcome to the task's ledger.
"""

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Optional
from uuid import uuid4

from pydantic import ValidationError

from ..capabilities.base import Capability, CapabilityResult, InvocationContext
from ..capabilities.registry import CapabilityRegistry
from ..errors import CapabilityError
from ..schemas.domain import ErrorKind, LifecycleEvent, LifecycleEventType, Outcome
from .events import EventChannel
from .ledger import LedgerStore

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_MS = 30_000
DEFAULT_NETWORK_TIMEOUT_MS = 60_000


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class _Call:
    """Identity of one ``execute`` call."""

    invocation_id: str
    capability_name: str
    task_id: str

    def failed(self, kind: ErrorKind, message: str, started_at: datetime, **kwargs: Any) -> Outcome:
        return Outcome.failed(
            invocation_id=self.invocation_id,
            capability_name=self.capability_name,
            task_id=self.task_id,
            error_kind=kind,
            error_message=message,
            started_at=started_at,
            **kwargs,
        )


class InvocationDispatcher:
    """Validate, throttle, time out and account for capability invocations.

    One dispatcher is shared by every task in the process, so its semaphore
    bounds concurrency globally rather than per task.
    """

    def __init__(
        self,
        *,
        registry: CapabilityRegistry,
        events: EventChannel,
        ledgers: LedgerStore,
        max_concurrency: int = 3,
        default_timeout_ms: int = DEFAULT_TIMEOUT_MS,
        network_timeout_ms: int = DEFAULT_NETWORK_TIMEOUT_MS,
    ) -> None:
        if max_concurrency <= 0:
            raise ValueError("max_concurrency must be > 0")
        if default_timeout_ms <= 0 or network_timeout_ms <= 0:
            raise ValueError("timeouts must be > 0")
        self._registry = registry
        self._events = events
        self._ledgers = ledgers
        self._max_concurrency = max_concurrency
        self._default_timeout_ms = default_timeout_ms
        self._network_timeout_ms = network_timeout_ms
        self._semaphore = asyncio.Semaphore(max_concurrency)
        self._in_flight = 0
        self._peak_in_flight = 0

    @property
    def registry(self) -> CapabilityRegistry:
        return self._registry

    @property
    def events(self) -> EventChannel:
        return self._events

    @property
    def ledgers(self) -> LedgerStore:
        return self._ledgers

    @property
    def max_concurrency(self) -> int:
        return self._max_concurrency

    @property
    def in_flight(self) -> int:
        """Number of invocations currently holding a permit."""
        return self._in_flight

    @property
    def peak_in_flight(self) -> int:
        return self._peak_in_flight

    @property
    def available_permits(self) -> int:
        return self._max_concurrency - self._in_flight

    def timeout_for(self, cap: Capability, timeout_ms: Optional[int] = None) -> int:
        """Effective deadline: explicit argument, then capability override, then defaults."""
        if timeout_ms is not None:
            return timeout_ms
        if cap.timeout_ms is not None:
            return cap.timeout_ms
        return self._network_timeout_ms if cap.network_bound else self._default_timeout_ms

    async def execute(
        self,
        capability_name: str,
        raw_params: Any,
        context: InvocationContext,
        timeout_ms: Optional[int] = None,
        *,
        step_index: Optional[int] = None,
    ) -> Outcome:
        """
        Run one capability invocation to a final ``Outcome``.

        Args:
            capability_name: Registered capability name.
            raw_params: Unvalidated parameters (JSON-like).
            context: Invocation context, handed to the capability unmodified.
                The same context may be passed to several calls; each call
                gets its own ``invocation_id``.
            timeout_ms: Deadline override in milliseconds.
            step_index: Plan index recorded on the ledger entry.

        Returns:
            The finalized outcome, already appended to the task ledger.
        """
        if timeout_ms is not None and timeout_ms <= 0:
            raise ValueError("timeout_ms must be > 0")

        call = _Call(invocation_id=str(uuid4()), capability_name=capability_name, task_id=context.task_id)
        dispatched_at = _utc_now()
        cap = self._registry.get(capability_name)
        if cap is None:
            self._emit_requested(call, dispatched_at)
            outcome = call.failed(ErrorKind.not_found, f"capability not found: {capability_name}", dispatched_at)
            return self._finish(outcome, step_index)

        try:
            params = cap.parameter_schema.validate(raw_params)
        except ValidationError as e:
            self._emit_requested(call, dispatched_at)
            outcome = call.failed(
                ErrorKind.validation_failed,
                f"invalid parameters for {capability_name}: {e.error_count()} error(s)",
                dispatched_at,
                error_detail=[dict(err) for err in e.errors(include_url=False, include_context=False)],
            )
            return self._finish(outcome, step_index)

        deadline_ms = self.timeout_for(cap, timeout_ms)
        async with self._semaphore:
            self._in_flight += 1
            self._peak_in_flight = max(self._peak_in_flight, self._in_flight)
            try:
                started_at = _utc_now()
                self._emit_requested(call, started_at)
                outcome = await self._run(call, cap, params, context, deadline_ms, started_at, step_index)
            finally:
                self._in_flight -= 1
        return self._finish(outcome, step_index)

    async def _run(
        self,
        call: _Call,
        cap: Capability,
        params: Dict[str, Any],
        context: InvocationContext,
        deadline_ms: int,
        started_at: datetime,
        step_index: Optional[int],
    ) -> Outcome:
        try:
            task = asyncio.ensure_future(cap.invoke(params, context))
        except Exception as e:
            # ``invoke`` raised before returning an awaitable, or returned something that is not one.
            logger.warning(f"Capability '{cap.name}' could not be started: {e}")
            return call.failed(ErrorKind.execution_failed, str(e) or type(e).__name__, started_at)

        try:
            done, _pending = await asyncio.wait({task}, timeout=deadline_ms / 1000.0)
        except asyncio.CancelledError:
            task.cancel()
            task.add_done_callback(_consume_abandoned)
            self._finish(call.failed(ErrorKind.execution_failed, "invocation cancelled", started_at), step_index)
            raise

        if not done:
            task.cancel()
            task.add_done_callback(_consume_abandoned)
            logger.warning(f"Capability '{cap.name}' timed out after {deadline_ms} ms (task={context.task_id})")
            return call.failed(ErrorKind.timeout, f"capability '{cap.name}' timed out after {deadline_ms} ms", started_at)

        if task.cancelled():
            return call.failed(ErrorKind.execution_failed, "capability cancelled itself", started_at)

        exc = task.exception()
        if exc is not None:
            kind = exc.kind if isinstance(exc, CapabilityError) else ErrorKind.execution_failed
            message = str(exc) or type(exc).__name__
            logger.warning(f"Capability '{cap.name}' failed ({kind.value}): {message}")
            logger.debug(f"Capability '{cap.name}' traceback", exc_info=exc)
            return call.failed(kind, message, started_at)

        result = task.result()
        if isinstance(result, CapabilityResult):
            if not result.ok:
                message = str(result.output.get("error") or f"capability '{cap.name}' reported failure")
                return call.failed(ErrorKind.execution_failed, message, started_at)
            result = result.output

        return Outcome.succeeded(
            invocation_id=call.invocation_id,
            capability_name=call.capability_name,
            task_id=call.task_id,
            result=result,
            started_at=started_at,
        )

    def _emit_requested(self, call: _Call, started_at: datetime) -> None:
        self._events.publish(
            LifecycleEvent(
                type=LifecycleEventType.invocation_requested,
                task_id=call.task_id,
                invocation_id=call.invocation_id,
                capability_name=call.capability_name,
                started_at=started_at,
            )
        )

    def _finish(self, outcome: Outcome, step_index: Optional[int]) -> Outcome:
        event_type = (
            LifecycleEventType.invocation_completed if outcome.success else LifecycleEventType.invocation_failed
        )
        self._events.publish(
            LifecycleEvent(
                type=event_type,
                task_id=outcome.task_id,
                invocation_id=outcome.invocation_id,
                capability_name=outcome.capability_name,
                started_at=outcome.started_at,
                outcome=outcome,
            )
        )
        self._registry.record_usage(outcome.capability_name, outcome)
        self._ledgers.ledger(outcome.task_id).append(outcome, step_index=step_index)
        return outcome


def _consume_abandoned(task: asyncio.Future) -> None:
    # Retrieve the late result so asyncio does not report it as never retrieved.
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        logger.debug(f"Abandoned capability finished with {type(exc).__name__}: {exc}")
