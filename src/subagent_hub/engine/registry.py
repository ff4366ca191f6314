"""Executor Registry - Tracks registered executors, their status, and load."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable

from subagent_hub.engine.capabilities import extract_capabilities
from subagent_hub.engine.models import (
    DEFAULT_HEALTH_CHECK_INTERVAL,
    INITIAL_LOAD,
    INITIAL_SUCCESS_RATE,
    DiscoveryFilter,
    ExecutorDescriptor,
    ExecutorStatistics,
    ExecutorStatus,
    Registration,
    SubagentCapabilities,
    clamp_percentage,
)

logger = logging.getLogger(__name__)

Clock = Callable[[], float]


class ExecutorRegistry:
    """
    In-memory registration table.

    One instance is shared by reference between the health monitor, the
    metrics recorder, the router and the orchestrator. Iteration order is
    registration order, which the router relies on for tie-breaking.
    """

    # Load above which an available executor is reported busy
    BUSY_LOAD_THRESHOLD = 80.0

    def __init__(
        self,
        clock: Clock = time.time,
        health_check_interval: float = DEFAULT_HEALTH_CHECK_INTERVAL,
        busy_load_threshold: float | None = None,
    ) -> None:
        self.clock = clock
        self.health_check_interval = health_check_interval
        if busy_load_threshold is not None:
            self.BUSY_LOAD_THRESHOLD = busy_load_threshold
        self._registrations: dict[str, Registration] = {}

    def __len__(self) -> int:
        return len(self._registrations)

    def __contains__(self, executor_id: object) -> bool:
        return executor_id in self._registrations

    def register(self, descriptor: ExecutorDescriptor) -> Registration:
        """
        Register an executor, replacing any existing record with the same id.

        Returns:
            The new Registration (status active, no completed tasks, full
            success rate, zero load).
        """
        now = self.clock()
        registration = Registration(
            descriptor=descriptor,
            capabilities=extract_capabilities(descriptor),
            registered_at=now,
            last_activity=now,
            status=ExecutorStatus.ACTIVE,
            health_check_interval=self.health_check_interval,
            tasks_completed=0,
            success_rate=INITIAL_SUCCESS_RATE,
            current_load=INITIAL_LOAD,
        )

        replaced = self._registrations.pop(descriptor.id, None) is not None
        self._registrations[descriptor.id] = registration

        logger.info(
            "Executor %s: %s (%s)",
            "re-registered" if replaced else "registered",
            descriptor.name,
            descriptor.role,
        )
        return registration

    def unregister(self, executor_id: str) -> bool:
        """Remove an executor. Returns False if it was not registered."""
        if self._registrations.pop(executor_id, None) is None:
            return False
        logger.info("Executor unregistered: %s", executor_id)
        return True

    def get(self, executor_id: str) -> Registration | None:
        return self._registrations.get(executor_id)

    def all(self) -> list[Registration]:
        """Snapshot of every registration, in registration order."""
        return list(self._registrations.values())

    def by_role(self, role: str) -> list[Registration]:
        return [reg for reg in self._registrations.values() if reg.role == role]

    def find(self, criteria: DiscoveryFilter | None = None) -> list[Registration]:
        """Return registrations matching every set field of ``criteria``."""
        if criteria is None:
            return self.all()
        return [reg for reg in self._registrations.values() if criteria.matches(reg)]

    def get_capabilities(self, executor_id: str) -> SubagentCapabilities | None:
        registration = self.get(executor_id)
        return registration.capabilities if registration else None

    def update_status(self, executor_id: str, status: ExecutorStatus | str) -> Registration:
        """
        Set an executor's status directly and stamp its activity time.

        Raises:
            KeyError: if the executor is not registered.
        """
        registration = self._registrations.get(executor_id)
        if registration is None:
            raise KeyError(f"Executor not found: {executor_id}")

        previous = registration.status
        registration.status = ExecutorStatus(status)
        registration.last_activity = self.clock()

        logger.info(
            "Executor status updated: %s -> %s (was: %s)",
            executor_id,
            registration.status.value,
            previous.value,
        )
        return registration

    def update_load(self, executor_id: str, load: float) -> Registration | None:
        """
        Record an executor's reported load, clamped to [0, 100].

        Moves active executors to busy above the busy threshold and back
        again when load drops. Other statuses are left untouched.
        """
        registration = self._registrations.get(executor_id)
        if registration is None:
            return None

        registration.current_load = clamp_percentage(load)
        if (
            registration.status == ExecutorStatus.ACTIVE
            and registration.current_load > self.BUSY_LOAD_THRESHOLD
        ):
            registration.status = ExecutorStatus.BUSY
        elif (
            registration.status == ExecutorStatus.BUSY
            and registration.current_load <= self.BUSY_LOAD_THRESHOLD
        ):
            registration.status = ExecutorStatus.ACTIVE
        return registration

    def healthy_status(self, registration: Registration) -> ExecutorStatus:
        """Status an executor gets after a successful health probe."""
        if registration.current_load > self.BUSY_LOAD_THRESHOLD:
            return ExecutorStatus.BUSY
        return ExecutorStatus.ACTIVE

    def recover(self, executor_id: str) -> bool:
        """Manually move an executor out of the error state."""
        registration = self._registrations.get(executor_id)
        if registration is None:
            return False

        if registration.status != ExecutorStatus.ERROR:
            logger.warning(
                "Attempted to recover executor %s which is not in error state (current: %s)",
                executor_id,
                registration.status.value,
            )
            return False

        self.update_status(executor_id, self.healthy_status(registration))
        return True

    def recover_all(self) -> int:
        """Recover every executor currently in the error state."""
        errored = [
            reg.id for reg in self._registrations.values() if reg.status == ExecutorStatus.ERROR
        ]
        recovered = sum(1 for executor_id in errored if self.recover(executor_id))
        logger.info("Recovered %d executors from error state", recovered)
        return recovered

    def get_stats(self) -> ExecutorStatistics:
        """Totals by status and role plus system-wide averages."""
        registrations = self.all()

        by_status: dict[str, int] = {status.value: 0 for status in ExecutorStatus}
        by_role: dict[str, int] = {}
        total_tasks = 0
        total_success = 0.0
        total_response = 0.0
        total_load = 0.0

        for reg in registrations:
            by_status[reg.status.value] += 1
            by_role[reg.role] = by_role.get(reg.role, 0) + 1
            total_tasks += reg.tasks_completed
            total_success += reg.success_rate
            total_response += reg.capabilities.performance.avg_response_time
            total_load += reg.current_load

        count = len(registrations)
        if count:
            averages = {
                "avg_success_rate": total_success / count,
                "avg_response_time": total_response / count,
                "total_tasks_completed": float(total_tasks),
                "system_load": total_load / count,
            }
        else:
            averages = {
                "avg_success_rate": 0.0,
                "avg_response_time": 0.0,
                "total_tasks_completed": 0.0,
                "system_load": 0.0,
            }

        return ExecutorStatistics(
            total=count,
            by_status=by_status,
            by_role=by_role,
            system_averages=averages,
        )

    def clear(self) -> None:
        self._registrations.clear()
