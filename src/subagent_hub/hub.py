"""
Subagent Hub - composition root

Owns one ExecutorRegistry and hands it by reference to the health monitor,
metrics recorder, router and orchestrator. Discovery feeds newly found
executors into the same registry.

Usage:
    async with SubagentHub(backend=backend) as hub:
        hub.register(ExecutorDescriptor(id="e1", name="E1", role="BackendDev"))
        response = await hub.delegate_task(TaskRequest(task="fix login"))
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Iterable, Sequence
from pathlib import Path
from typing import Any

from subagent_hub.config import HubSettings
from subagent_hub.delegation.executor import ExecutionBackend, HandlerBackend
from subagent_hub.delegation.ledger import DelegationLedger
from subagent_hub.delegation.models import ExecutionMetadata, TaskRequest, TaskResponse
from subagent_hub.delegation.orchestrator import DelegationOrchestrator
from subagent_hub.delegation.router import CapabilityRouter
from subagent_hub.discovery.cache import AGENTS, DiscoveryCache, DiscoverySource, default_sources
from subagent_hub.engine.health import HealthMonitor
from subagent_hub.engine.metrics import MetricsRecorder
from subagent_hub.engine.models import (
    DiscoveryFilter,
    ExecutorDescriptor,
    ExecutorStatistics,
    ExecutorStatus,
    Registration,
    SubagentCapabilities,
)
from subagent_hub.engine.registry import ExecutorRegistry

logger = logging.getLogger(__name__)


class SubagentHub:
    """Consumer-facing API over the registry, router, orchestrator and discovery."""

    def __init__(
        self,
        settings: HubSettings | None = None,
        backend: ExecutionBackend | None = None,
        clock: Callable[[], float] = time.time,
        sources: Iterable[DiscoverySource] | None = None,
    ) -> None:
        self.settings = settings or HubSettings.default()
        self.backend = backend or HandlerBackend()

        self.registry = ExecutorRegistry(
            clock=clock,
            health_check_interval=self.settings.health_check_interval,
            busy_load_threshold=self.settings.busy_load_threshold,
        )
        self.metrics = MetricsRecorder(self.registry, weight=self.settings.rolling_weight)
        self.router = CapabilityRouter(self.registry, max_load=self.settings.max_load_threshold)
        self.ledger = (
            DelegationLedger(self.settings.ledger_path) if self.settings.ledger_path else None
        )
        self.orchestrator = DelegationOrchestrator(
            self.registry,
            self.router,
            self.backend,
            metrics=self.metrics,
            ledger=self.ledger,
            default_timeout=self.settings.default_timeout,
            enforce_timeout=self.settings.enforce_timeout,
        )
        self.health = HealthMonitor(
            self.registry,
            self.backend.probe,
            frequency=self.settings.health_check_frequency,
            probe_timeout=self.settings.probe_timeout,
        )

        if sources is None and self.settings.discovery_home:
            sources = default_sources(Path(self.settings.discovery_home).expanduser())
        self.discovery = DiscoveryCache(
            sources or (),
            clock=clock,
            freshness_ratio=self.settings.cache_freshness_ratio,
            on_refresh=self._on_discovery,
        )

    async def __aenter__(self) -> SubagentHub:
        await self.start()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.stop()

    # ── lifecycle ────────────────────────────────────────────────────────

    async def start(self) -> None:
        if self.ledger is not None:
            await self.ledger.open()
        self.health.start()
        self.discovery.start()
        logger.info("Subagent hub started")

    async def stop(self) -> None:
        """Stop background loops, close the ledger and drop all state."""
        await self.health.stop()
        await self.discovery.stop()
        if self.ledger is not None:
            await self.ledger.close()
        self.orchestrator.clear()
        self.discovery.clear()
        self.registry.clear()
        logger.info("Subagent hub stopped")

    # ── registration ─────────────────────────────────────────────────────

    def register(self, descriptor: ExecutorDescriptor) -> Registration:
        return self.registry.register(descriptor)

    def unregister(self, executor_id: str) -> bool:
        return self.registry.unregister(executor_id)

    def update_status(self, executor_id: str, status: ExecutorStatus | str) -> bool:
        try:
            self.registry.update_status(executor_id, status)
        except KeyError:
            logger.warning("Cannot update status of unknown executor: %s", executor_id)
            return False
        return True

    def update_load(self, executor_id: str, load: float) -> bool:
        return self.registry.update_load(executor_id, load) is not None

    def recover(self, executor_id: str) -> bool:
        return self.registry.recover(executor_id)

    def get(self, executor_id: str) -> Registration | None:
        return self.registry.get(executor_id)

    def find(self, criteria: DiscoveryFilter | None = None) -> list[Registration]:
        return self.registry.find(criteria)

    def get_capabilities(self, executor_id: str) -> SubagentCapabilities | None:
        return self.registry.get_capabilities(executor_id)

    # ── routing and delegation ───────────────────────────────────────────

    def find_best_executor(
        self, task: str, required_tools: Sequence[str] | None = None
    ) -> str | None:
        best = self.router.find_best_executor(task, required_tools)
        return best.id if best else None

    async def delegate_task(self, request: TaskRequest) -> TaskResponse:
        return await self.orchestrator.delegate_task(request)

    def get_task_status(self, task_id: str) -> ExecutionMetadata | None:
        return self.orchestrator.get_task_status(task_id)

    def cancel_task(self, task_id: str) -> bool:
        return self.orchestrator.cancel_task(task_id)

    def record_completion(
        self, executor_id: str, success: bool, response_time_ms: float
    ) -> bool:
        return self.metrics.record_completion(executor_id, success, response_time_ms) is not None

    # ── reporting ────────────────────────────────────────────────────────

    def get_statistics(self) -> ExecutorStatistics:
        return self.registry.get_stats()

    def get_system_status(self) -> dict[str, Any]:
        return self.orchestrator.get_system_status()

    # ── discovery feed ───────────────────────────────────────────────────

    def _on_discovery(self, source: DiscoverySource, items: list[Any]) -> None:
        if source.type != AGENTS:
            return
        added = 0
        for item in items:
            if isinstance(item, ExecutorDescriptor) and item.id not in self.registry:
                self.registry.register(item)
                added += 1
        if added:
            logger.info("Discovered %d new executors from %s", added, source.id)
