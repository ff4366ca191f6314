"""
Delegation Orchestrator — Validate, Execute, Track, Respond

Per task id: submitted -> validating -> (rejected | executing)
-> (completed | failed | cancelled).

``delegate_task`` never raises for expected conditions: every outcome,
including a crashing executor, comes back as a TaskResponse.
"""

import asyncio
import logging
import secrets
import time
from dataclasses import replace
from typing import Any, Callable, Dict, List, Optional, Tuple

from subagent_hub.engine.metrics import MetricsRecorder
from subagent_hub.engine.models import ExecutorStatus, Registration
from subagent_hub.engine.registry import ExecutorRegistry

from .executor import ExecutionBackend
from .ledger import DelegationLedger
from .models import (
    DelegationError,
    ErrorKind,
    ExecutionMetadata,
    ExecutionOutcome,
    TaskRequest,
    TaskResponse,
)
from .router import CapabilityRouter

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 300.0  # seconds
UNKNOWN = "unknown"


def generate_task_id(clock: Callable[[], float] = time.time) -> str:
    return f"task_{int(clock() * 1000)}_{secrets.token_hex(4)}"


class DelegationOrchestrator:
    """Runs exactly one delegation attempt per request."""

    def __init__(
        self,
        registry: ExecutorRegistry,
        router: CapabilityRouter,
        backend: ExecutionBackend,
        metrics: Optional[MetricsRecorder] = None,
        ledger: Optional[DelegationLedger] = None,
        default_timeout: float = DEFAULT_TIMEOUT,
        enforce_timeout: bool = True,
    ) -> None:
        self.registry = registry
        self.router = router
        self.backend = backend
        self.metrics = metrics or MetricsRecorder(registry)
        self.ledger = ledger
        self.default_timeout = default_timeout
        self.enforce_timeout = enforce_timeout
        self._in_flight: Dict[str, ExecutionMetadata] = {}

    # ── in-flight tracking ───────────────────────────────────────────────

    def running_tasks(self) -> Dict[str, ExecutionMetadata]:
        """Snapshot of the in-flight map."""
        return dict(self._in_flight)

    def in_flight_count(self, executor_id: str) -> int:
        return sum(1 for meta in self._in_flight.values() if meta.executor_id == executor_id)

    def get_task_status(self, task_id: str) -> Optional[ExecutionMetadata]:
        return self._in_flight.get(task_id)

    def cancel_task(self, task_id: str) -> bool:
        """
        Stop tracking an in-flight task and free its slot.

        The executor is not told to stop; its eventual result is still
        returned to the original caller, flagged with a warning.
        """
        if self._in_flight.pop(task_id, None) is None:
            return False
        logger.info("Task cancelled: %s", task_id)
        return True

    def is_available(self, executor_id: str) -> bool:
        """Registered, active, and below its concurrent-task ceiling."""
        registration = self.registry.get(executor_id)
        if registration is None or registration.status != ExecutorStatus.ACTIVE:
            return False
        ceiling = registration.capabilities.performance.max_concurrent_tasks
        return self.in_flight_count(executor_id) < ceiling

    def get_system_status(self) -> Dict[str, Any]:
        total = len(self.registry)
        available = sum(1 for reg in self.registry.all() if self.is_available(reg.id))
        return {
            "total_executors": total,
            "available_executors": available,
            "running_tasks": len(self._in_flight),
            "system_health": "healthy" if available > 0 else "at_capacity",
        }

    # ── delegation ───────────────────────────────────────────────────────

    async def delegate_task(self, request: TaskRequest) -> TaskResponse:
        task_id = generate_task_id(self.registry.clock)
        start = self.registry.clock()

        try:
            registration = self._validate(request)
        except DelegationError as exc:
            logger.warning("Delegation %s rejected: %s", task_id, exc.message)
            response = self._rejection(task_id, request, start, exc)
            await self._record(response)
            return response

        response = await self._execute(task_id, registration, request, start)
        await self._record(response)
        return response

    def _validate(self, request: TaskRequest) -> Registration:
        """Resolve the target executor or raise DelegationError."""
        executor_id = request.executor_id
        if executor_id is None:
            executor_id = self._route(request)
        elif not executor_id:
            raise DelegationError(ErrorKind.VALIDATION_FAILURE, "Executor ID is required")

        registration = self.registry.get(executor_id)
        if registration is None:
            raise DelegationError(
                ErrorKind.NOT_FOUND, f"Executor not found: {executor_id}", executor_id
            )

        if not self.is_available(executor_id):
            if registration.status != ExecutorStatus.ACTIVE:
                message = f"Executor {executor_id} is {registration.status.value}"
            else:
                message = f"Executor {executor_id} is at capacity"
            raise DelegationError(ErrorKind.UNAVAILABLE, message, executor_id)

        missing = [
            tool
            for tool in request.required_tools
            if tool not in registration.capabilities.tools
        ]
        if missing:
            raise DelegationError(
                ErrorKind.MISSING_TOOLS,
                f"Missing required tools: {', '.join(missing)}",
                executor_id,
            )

        if not request.task.strip():
            raise DelegationError(
                ErrorKind.VALIDATION_FAILURE, "Task description is required", executor_id
            )

        return registration

    def _route(self, request: TaskRequest) -> str:
        """Best-ranked candidate that still has a free slot."""
        ranked = self.router.rank(request.task, request.required_tools)
        if not ranked:
            raise DelegationError(ErrorKind.UNAVAILABLE, "No executor available for task")
        for candidate in ranked:
            if self.is_available(candidate.registration.id):
                return candidate.registration.id
        best = ranked[0].registration.id
        raise DelegationError(
            ErrorKind.UNAVAILABLE, f"Executor {best} is at capacity", best
        )

    async def _execute(
        self,
        task_id: str,
        registration: Registration,
        request: TaskRequest,
        start: float,
    ) -> TaskResponse:
        timeout = request.timeout or self.default_timeout
        initial = ExecutionMetadata(
            task_id=task_id,
            executor_id=registration.id,
            executor_role=registration.role,
            start_time=start,
            end_time=start,
            duration_ms=0.0,
            completed_on_time=True,
            confidence=100.0,
        )
        # Tracked before the call so a crash mid-execution stays visible
        self._in_flight[task_id] = initial
        logger.info("Delegating %s to %s", task_id, registration.id)

        try:
            outcome = await self._invoke(registration, request, timeout)
        except asyncio.TimeoutError:
            return self._failure(
                initial,
                ErrorKind.TIMEOUT,
                f"Task execution timed out after {timeout:g}s",
            )
        except Exception as exc:
            logger.warning("Delegation %s failed: %s", task_id, exc)
            return self._failure(
                initial, ErrorKind.EXECUTION_FAILURE, f"Task execution failed: {exc}"
            )
        finally:
            cancelled = self._in_flight.pop(task_id, None) is None

        return self._completion(initial, outcome, timeout, cancelled)

    async def _invoke(
        self, registration: Registration, request: TaskRequest, timeout: float
    ) -> ExecutionOutcome:
        call = self.backend.execute(registration.descriptor, request)
        if self.enforce_timeout:
            return await asyncio.wait_for(call, timeout)
        return await call

    # ── responses ────────────────────────────────────────────────────────

    def _finish(self, initial: ExecutionMetadata) -> Tuple[float, float]:
        end = self.registry.clock()
        return end, max(0.0, (end - initial.start_time) * 1000.0)

    def _completion(
        self,
        initial: ExecutionMetadata,
        outcome: ExecutionOutcome,
        timeout: float,
        cancelled: bool,
    ) -> TaskResponse:
        end, duration_ms = self._finish(initial)
        metadata = replace(
            initial,
            end_time=end,
            duration_ms=duration_ms,
            completed_on_time=duration_ms <= timeout * 1000.0,
            tools_used=tuple(outcome.tools_used),
            tool_invocations=outcome.tool_invocations,
            collaboration_used=outcome.collaboration_used,
            confidence=max(0.0, min(100.0, float(outcome.confidence))),
        )
        self.metrics.record_completion(initial.executor_id, outcome.success, duration_ms)

        warnings: List[str] = list(outcome.warnings)
        if cancelled:
            warnings.append(f"Task {initial.task_id} was cancelled while executing")

        errors: List[str] = list(outcome.errors)
        if not outcome.success and not errors:
            errors.append(f"Executor {initial.executor_id} reported failure")

        return TaskResponse(
            success=outcome.success,
            metadata=metadata,
            result=outcome.output,
            data=outcome.data,
            errors=errors,
            warnings=warnings,
            error_kind=None if outcome.success else ErrorKind.EXECUTION_FAILURE,
        )

    def _failure(
        self, initial: ExecutionMetadata, kind: ErrorKind, message: str
    ) -> TaskResponse:
        end, duration_ms = self._finish(initial)
        metadata = replace(
            initial,
            end_time=end,
            duration_ms=duration_ms,
            completed_on_time=False,
            confidence=0.0,
        )
        self.metrics.record_completion(initial.executor_id, False, duration_ms)
        return TaskResponse(
            success=False, metadata=metadata, errors=[message], error_kind=kind
        )

    def _rejection(
        self,
        task_id: str,
        request: TaskRequest,
        start: float,
        error: DelegationError,
    ) -> TaskResponse:
        executor_id = error.executor_id or request.executor_id or UNKNOWN
        registration = self.registry.get(executor_id)
        end = self.registry.clock()
        metadata = ExecutionMetadata(
            task_id=task_id,
            executor_id=executor_id,
            executor_role=registration.role if registration else UNKNOWN,
            start_time=start,
            end_time=end,
            duration_ms=max(0.0, (end - start) * 1000.0),
            completed_on_time=False,
            confidence=0.0,
        )
        return TaskResponse(
            success=False, metadata=metadata, errors=[error.message], error_kind=error.kind
        )

    async def _record(self, response: TaskResponse) -> None:
        if self.ledger is None:
            return
        try:
            await self.ledger.record(
                response.metadata,
                response.success,
                response.errors,
                response.error_kind.value if response.error_kind else None,
            )
        except Exception:
            # History is best-effort; never fail a delegation over it
            logger.exception("Failed to record delegation %s", response.metadata.task_id)

    def clear(self) -> None:
        self._in_flight.clear()
