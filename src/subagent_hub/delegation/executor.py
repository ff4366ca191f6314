"""
Execution Backend - the black-box boundary between the hub and executors

The orchestrator only ever calls ``execute`` and the health monitor only
ever calls ``probe``. How an executor performs the work is its own concern.

Usage:
    from subagent_hub.delegation.executor import HandlerBackend

    backend = HandlerBackend()
    backend.register_handler("backend-dev", my_handler)
    outcome = await backend.execute(descriptor, request)
"""

import json
from typing import Any, Awaitable, Callable, Dict, Optional, Protocol

from subagent_hub.delegation.models import ExecutionOutcome, TaskRequest
from subagent_hub.engine.models import ExecutorDescriptor

# Async handler: (descriptor, request) -> str | dict | ExecutionOutcome
HandlerFn = Callable[[ExecutorDescriptor, TaskRequest], Awaitable[Any]]
ProbeHandlerFn = Callable[[ExecutorDescriptor], Awaitable[bool]]


class ExecutionBackend(Protocol):
    """Anything that can run a task on an executor and check its liveness."""

    async def execute(
        self, descriptor: ExecutorDescriptor, request: TaskRequest
    ) -> ExecutionOutcome: ...

    async def probe(self, descriptor: ExecutorDescriptor) -> bool: ...


class NoHandlerError(LookupError):
    """No handler is registered for an executor."""


class HandlerBackend:
    """
    Dispatches executions to explicitly registered async handlers.

    An executor is considered alive when it has a handler and, if a probe
    handler was registered for it, that probe returns True.
    """

    def __init__(self) -> None:
        self._handlers: Dict[str, HandlerFn] = {}
        self._probes: Dict[str, ProbeHandlerFn] = {}

    def register_handler(
        self,
        executor_id: str,
        handler: HandlerFn,
        probe: Optional[ProbeHandlerFn] = None,
    ) -> None:
        self._handlers[executor_id] = handler
        if probe is not None:
            self._probes[executor_id] = probe
        else:
            self._probes.pop(executor_id, None)

    def unregister_handler(self, executor_id: str) -> None:
        self._handlers.pop(executor_id, None)
        self._probes.pop(executor_id, None)

    def has_handler(self, executor_id: str) -> bool:
        return executor_id in self._handlers

    async def execute(
        self, descriptor: ExecutorDescriptor, request: TaskRequest
    ) -> ExecutionOutcome:
        handler = self._handlers.get(descriptor.id)
        if handler is None:
            raise NoHandlerError(f"No handler registered for executor '{descriptor.id}'")
        raw_result = await handler(descriptor, request)
        return self._to_outcome(raw_result)

    async def probe(self, descriptor: ExecutorDescriptor) -> bool:
        if descriptor.id not in self._handlers:
            return False
        probe = self._probes.get(descriptor.id)
        if probe is None:
            return True
        return bool(await probe(descriptor))

    @staticmethod
    def _to_outcome(result: Any) -> ExecutionOutcome:
        if isinstance(result, ExecutionOutcome):
            return result

        if isinstance(result, str):
            return ExecutionOutcome(success=True, output=result)

        if isinstance(result, dict):
            errors = [str(e) for e in result.get("errors", [])]
            is_error = bool(result.get("isError", False))
            output = result.get("output", result.get("result"))
            if output is None:
                output = json.dumps(result, default=str)[:1000]
            success = bool(result.get("success", not is_error))
            return ExecutionOutcome(
                success=success,
                output=str(output),
                data=result.get("data"),
                tools_used=[str(t) for t in result.get("tools_used", [])],
                tool_invocations=int(result.get("tool_invocations", 0)),
                collaboration_used=bool(result.get("collaboration_used", False)),
                confidence=float(result.get("confidence", 100.0 if success else 0.0)),
                errors=errors,
                warnings=[str(w) for w in result.get("warnings", [])],
            )

        return ExecutionOutcome(success=True, output=str(result)[:1000])
