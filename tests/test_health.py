"""Tests for the health monitor."""

from __future__ import annotations

import asyncio

import pytest

from subagent_hub.engine.health import HealthMonitor
from subagent_hub.engine.models import ExecutorStatus

pytestmark = pytest.mark.anyio


class ScriptedProbe:
    """Probe whose answer per executor id can be changed between ticks."""

    def __init__(self, default: bool = True) -> None:
        self.default = default
        self.answers: dict[str, bool] = {}
        self.calls: list[str] = []

    async def __call__(self, descriptor) -> bool:
        self.calls.append(descriptor.id)
        return self.answers.get(descriptor.id, self.default)


async def test_nothing_due_before_interval(registry, make_descriptor, clock) -> None:
    registry.register(make_descriptor())
    probe = ScriptedProbe()
    monitor = HealthMonitor(registry, probe)

    clock.advance(29)
    assert await monitor.tick() == 0
    assert probe.calls == []


async def test_failed_probe_quarantines_then_recovers(registry, make_descriptor, clock) -> None:
    registry.register(make_descriptor())
    probe = ScriptedProbe()
    monitor = HealthMonitor(registry, probe)

    probe.answers["E1"] = False
    clock.advance(30)
    assert await monitor.tick() == 1
    reg = registry.get("E1")
    assert reg.status == ExecutorStatus.ERROR
    assert reg.last_activity == clock.now

    # Stamped after the probe, so not re-probed immediately
    assert await monitor.tick() == 0

    probe.answers["E1"] = True
    clock.advance(30)
    await monitor.tick()
    assert registry.get("E1").status == ExecutorStatus.ACTIVE
    assert "E1" in registry


async def test_healthy_probe_with_high_load_is_busy(registry, make_descriptor, clock) -> None:
    registry.register(make_descriptor())
    registry.update_status("E1", ExecutorStatus.ERROR)
    registry.get("E1").current_load = 85.0
    monitor = HealthMonitor(registry, ScriptedProbe())

    clock.advance(30)
    await monitor.tick()
    assert registry.get("E1").status == ExecutorStatus.BUSY


async def test_probe_exception_counts_as_unhealthy(registry, make_descriptor, clock) -> None:
    async def broken(descriptor) -> bool:
        raise RuntimeError("connection refused")

    registry.register(make_descriptor())
    monitor = HealthMonitor(registry, broken)
    clock.advance(30)
    await monitor.tick()
    assert registry.get("E1").status == ExecutorStatus.ERROR


async def test_probe_timeout_counts_as_unhealthy(registry, make_descriptor, clock) -> None:
    async def hangs(descriptor) -> bool:
        await asyncio.sleep(10)
        return True

    registry.register(make_descriptor())
    monitor = HealthMonitor(registry, hangs, probe_timeout=0.01)
    clock.advance(30)
    await monitor.tick()
    assert registry.get("E1").status == ExecutorStatus.ERROR


async def test_inactive_and_maintenance_not_probed(registry, make_descriptor, clock) -> None:
    registry.register(make_descriptor("A"))
    registry.register(make_descriptor("B"))
    registry.update_status("A", ExecutorStatus.INACTIVE)
    registry.update_status("B", ExecutorStatus.MAINTENANCE)
    probe = ScriptedProbe(default=False)
    monitor = HealthMonitor(registry, probe)

    clock.advance(60)
    assert await monitor.tick() == 0
    assert registry.get("A").status == ExecutorStatus.INACTIVE
    assert registry.get("B").status == ExecutorStatus.MAINTENANCE


async def test_unregistered_during_probe(registry, make_descriptor, clock) -> None:
    async def unregistering(descriptor) -> bool:
        registry.unregister(descriptor.id)
        return True

    registry.register(make_descriptor())
    monitor = HealthMonitor(registry, unregistering)
    assert await monitor.check("E1") is False
    assert await monitor.check("ghost") is False


async def test_start_and_stop(registry, make_descriptor) -> None:
    registry.register(make_descriptor())
    monitor = HealthMonitor(registry, ScriptedProbe(), frequency=0.01)
    monitor.start()
    assert monitor.running
    await asyncio.sleep(0.03)
    await monitor.stop()
    assert not monitor.running
