"""Rolling success-rate and latency statistics per executor."""

from __future__ import annotations

import logging

from subagent_hub.engine.models import MAX_PERCENTAGE, Registration, clamp_percentage
from subagent_hub.engine.registry import ExecutorRegistry

logger = logging.getLogger(__name__)

ROLLING_WEIGHT = 0.1
SUCCESS_VALUE = MAX_PERCENTAGE
FAILURE_VALUE = 0.0


def smooth(current: float, sample: float, weight: float) -> float:
    """One step of an exponential moving average.

    Written as ``current + w * (sample - current)``, which equals
    ``current * (1 - w) + sample * w`` but never overshoots ``sample``.
    """
    return current + weight * (sample - current)


class MetricsRecorder:
    """Updates completion counters and EMA statistics on the registry."""

    def __init__(self, registry: ExecutorRegistry, weight: float = ROLLING_WEIGHT) -> None:
        if not 0.0 < weight <= 1.0:
            raise ValueError(f"weight must be in (0.0, 1.0], got {weight}")
        self.registry = registry
        self.weight = weight

    def record_completion(
        self, executor_id: str, success: bool, response_time_ms: float
    ) -> Registration | None:
        """
        Record one finished task.

        Returns the updated registration, or None when the executor was
        unregistered in the meantime.
        """
        registration = self.registry.get(executor_id)
        if registration is None:
            logger.debug("Completion for unknown executor %s ignored", executor_id)
            return None

        registration.tasks_completed += 1
        registration.last_activity = self.registry.clock()

        sample = SUCCESS_VALUE if success else FAILURE_VALUE
        registration.success_rate = clamp_percentage(
            smooth(registration.success_rate, sample, self.weight)
        )

        perf = registration.capabilities.performance
        perf.avg_response_time = smooth(
            perf.avg_response_time, max(0.0, response_time_ms), self.weight
        )

        logger.info(
            "Task completed by %s: %s, %.0fms",
            executor_id,
            "Success" if success else "Failure",
            response_time_ms,
        )
        return registration
