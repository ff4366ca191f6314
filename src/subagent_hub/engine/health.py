"""Health Monitor - periodic liveness probing of registered executors."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable

from subagent_hub.engine.models import ExecutorDescriptor, ExecutorStatus, Registration
from subagent_hub.engine.registry import ExecutorRegistry

logger = logging.getLogger(__name__)

ProbeFn = Callable[[ExecutorDescriptor], Awaitable[bool]]

HEALTH_CHECK_FREQUENCY = 10.0  # seconds between ticks
PROBE_TIMEOUT = 5.0  # seconds

# Explicitly set states are never changed by probing
_UNPROBED = frozenset({ExecutorStatus.INACTIVE, ExecutorStatus.MAINTENANCE})


class HealthMonitor:
    """
    Probes executors whose last activity is older than their health-check
    interval.

    A failed probe quarantines the executor in the ``error`` state; a later
    successful probe brings it back. Activity is stamped after every probe
    so failing executors are re-probed at a steady cadence.
    """

    def __init__(
        self,
        registry: ExecutorRegistry,
        probe: ProbeFn,
        frequency: float = HEALTH_CHECK_FREQUENCY,
        probe_timeout: float = PROBE_TIMEOUT,
    ) -> None:
        self.registry = registry
        self.probe = probe
        self.frequency = frequency
        self.probe_timeout = probe_timeout
        self._stop = asyncio.Event()
        self._task: asyncio.Task[None] | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def due(self) -> list[Registration]:
        """Registrations whose health check is due at the current clock time."""
        now = self.registry.clock()
        return [
            reg
            for reg in self.registry.all()
            if reg.status not in _UNPROBED
            and now - reg.last_activity >= reg.health_check_interval
        ]

    async def tick(self) -> int:
        """Probe every due executor once. Returns the number probed."""
        probed = 0
        for registration in self.due():
            if await self.check(registration.id):
                probed += 1
        return probed

    async def check(self, executor_id: str) -> bool:
        """
        Probe one executor and apply the outcome.

        Returns False if the executor disappeared before or during the probe.
        """
        registration = self.registry.get(executor_id)
        if registration is None:
            return False

        healthy = await self._run_probe(registration.descriptor)

        # Unregistered while the probe was in flight
        current = self.registry.get(executor_id)
        if current is not registration:
            return False

        previous = registration.status
        if previous in _UNPROBED:
            # Deactivated while the probe was in flight
            pass
        elif healthy:
            registration.status = self.registry.healthy_status(registration)
            if previous == ExecutorStatus.ERROR:
                logger.info("Executor %s recovered from error state", executor_id)
        elif registration.status != ExecutorStatus.ERROR:
            registration.status = ExecutorStatus.ERROR
            logger.warning("Health check failed for executor: %s", executor_id)
        else:
            logger.debug("Executor %s still in error state, will retry", executor_id)

        registration.last_activity = self.registry.clock()
        return True

    async def _run_probe(self, descriptor: ExecutorDescriptor) -> bool:
        try:
            return bool(await asyncio.wait_for(self.probe(descriptor), self.probe_timeout))
        except asyncio.TimeoutError:
            logger.warning(
                "Health probe for %s timed out after %.1fs", descriptor.id, self.probe_timeout
            )
        except Exception as exc:
            logger.warning(
                "Health probe for %s raised %s: %s", descriptor.id, type(exc).__name__, exc
            )
        return False

    async def _run(self) -> None:
        while not self._stop.is_set():
            await self.tick()
            try:
                await asyncio.wait_for(self._stop.wait(), self.frequency)
            except asyncio.TimeoutError:
                continue

    def start(self) -> None:
        """Start the probing loop on the running event loop."""
        if self.running:
            return
        self._stop.clear()
        self._task = asyncio.create_task(self._run(), name="health-monitor")

    async def stop(self) -> None:
        """Signal the loop to stop and wait for it to finish."""
        self._stop.set()
        if self._task is not None:
            await self._task
            self._task = None
