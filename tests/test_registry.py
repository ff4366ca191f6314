"""Tests for the registration table, descriptors and capability extraction."""

from __future__ import annotations

import pytest

from subagent_hub.engine.capabilities import (
    extract_capabilities,
    role_alignment,
    task_categories_for_role,
)
from subagent_hub.engine.models import DiscoveryFilter, ExecutorDescriptor, ExecutorStatus
from subagent_hub.engine.registry import ExecutorRegistry


class TestExecutorDescriptor:
    def test_lists_become_tuples(self) -> None:
        descriptor = ExecutorDescriptor(id="a", name="A", role="QA", tools=["git"])
        assert descriptor.tools == ("git",)

    def test_empty_id_rejected(self) -> None:
        with pytest.raises(ValueError):
            ExecutorDescriptor(id="", name="A", role="QA")

    def test_max_concurrent_tasks_must_be_positive(self) -> None:
        with pytest.raises(ValueError):
            ExecutorDescriptor(id="a", name="A", role="QA", max_concurrent_tasks=0)

    def test_from_dict_defaults(self) -> None:
        descriptor = ExecutorDescriptor.from_dict({"id": "x"})
        assert descriptor.name == "x"
        assert descriptor.role == "Custom"
        assert descriptor.max_concurrent_tasks == 1

    def test_from_dict_bare_string_is_one_tool(self) -> None:
        descriptor = ExecutorDescriptor.from_dict(
            {"id": "x", "tools": "git", "specializations": ["auth", "api"]}
        )
        assert descriptor.tools == ("git",)
        assert descriptor.specializations == ("auth", "api")

    def test_from_dict_rejects_non_list_tools(self) -> None:
        with pytest.raises(ValueError, match="tools"):
            ExecutorDescriptor.from_dict({"id": "x", "tools": 3})


class TestCapabilities:
    def test_known_role_categories(self) -> None:
        assert "api-development" in task_categories_for_role("BackendDev")

    def test_unknown_role_is_general(self) -> None:
        assert task_categories_for_role("Astronaut") == ["general"]

    def test_extract_capabilities(self, make_descriptor) -> None:
        descriptor = make_descriptor(tools=("git", "docker"), specializations=("auth",))
        caps = extract_capabilities(descriptor)
        assert caps.tools == ["git", "docker"]
        assert caps.specializations == ["auth"]
        assert caps.integrations == ["task-delegation"]
        assert caps.performance.avg_response_time == 30000.0
        assert caps.performance.reliability == 95.0

    def test_role_alignment_bounds(self) -> None:
        assert role_alignment("paint the fence", "BackendDev") == 10.0
        text = "backend api server database rest graphql python java node"
        assert role_alignment(text, "BackendDev") == 20.0


class TestRegistry:
    def test_register_defaults(self, registry: ExecutorRegistry, make_descriptor, clock) -> None:
        reg = registry.register(make_descriptor())
        assert reg.status == ExecutorStatus.ACTIVE
        assert reg.tasks_completed == 0
        assert reg.success_rate == 100.0
        assert reg.current_load == 0.0
        assert reg.registered_at == clock.now
        assert reg.health_check_interval == 30.0
        assert "E1" in registry
        assert len(registry) == 1

    def test_reregister_replaces_and_resets(self, registry, make_descriptor) -> None:
        registry.register(make_descriptor(tools=("git",)))
        registry.update_load("E1", 50)
        reg = registry.register(make_descriptor(tools=("docker",)))
        assert len(registry) == 1
        assert reg.current_load == 0.0
        assert registry.get("E1").capabilities.tools == ["docker"]

    def test_reregister_moves_to_end(self, registry, make_descriptor) -> None:
        registry.register(make_descriptor("A"))
        registry.register(make_descriptor("B"))
        registry.register(make_descriptor("A"))
        assert [reg.id for reg in registry.all()] == ["B", "A"]

    def test_unregister(self, registry, make_descriptor) -> None:
        registry.register(make_descriptor())
        assert registry.unregister("E1") is True
        assert registry.unregister("E1") is False
        assert registry.get("E1") is None

    def test_update_status_unknown_raises(self, registry) -> None:
        with pytest.raises(KeyError):
            registry.update_status("ghost", ExecutorStatus.ACTIVE)

    def test_update_status_stamps_activity(self, registry, make_descriptor, clock) -> None:
        registry.register(make_descriptor())
        clock.advance(12)
        reg = registry.update_status("E1", "maintenance")
        assert reg.status == ExecutorStatus.MAINTENANCE
        assert reg.last_activity == clock.now

    def test_update_load_clamps_and_toggles_busy(self, registry, make_descriptor) -> None:
        registry.register(make_descriptor())
        reg = registry.update_load("E1", 150)
        assert reg.current_load == 100.0
        assert reg.status == ExecutorStatus.BUSY
        reg = registry.update_load("E1", -5)
        assert reg.current_load == 0.0
        assert reg.status == ExecutorStatus.ACTIVE

    def test_update_load_keeps_error_status(self, registry, make_descriptor) -> None:
        registry.register(make_descriptor())
        registry.update_status("E1", ExecutorStatus.ERROR)
        assert registry.update_load("E1", 95).status == ExecutorStatus.ERROR

    def test_update_load_unknown(self, registry) -> None:
        assert registry.update_load("ghost", 10) is None

    def test_find_filters(self, registry, make_descriptor) -> None:
        registry.register(make_descriptor("A", role="QA", tools=("git",), specializations=("e2e",)))
        registry.register(make_descriptor("B", role="BackendDev", tools=("git", "docker")))
        registry.register(make_descriptor("C", role="BackendDev"))
        registry.update_status("C", ExecutorStatus.INACTIVE)

        assert [r.id for r in registry.find(DiscoveryFilter(role="BackendDev"))] == ["B", "C"]
        assert [r.id for r in registry.find(DiscoveryFilter(required_tools=["git", "docker"]))] == ["B"]
        assert [r.id for r in registry.find(DiscoveryFilter(specializations=["e2e", "x"]))] == ["A"]
        assert [r.id for r in registry.find(DiscoveryFilter(status="inactive"))] == ["C"]
        active = DiscoveryFilter(status=[ExecutorStatus.ACTIVE, ExecutorStatus.BUSY])
        assert [r.id for r in registry.find(active)] == ["A", "B"]
        assert len(registry.find()) == 3

    def test_find_by_load_and_success_rate(self, registry, make_descriptor) -> None:
        registry.register(make_descriptor("A"))
        registry.register(make_descriptor("B"))
        registry.update_load("B", 60)
        registry.get("A").success_rate = 40.0
        assert [r.id for r in registry.find(DiscoveryFilter(max_load=50))] == ["A"]
        assert [r.id for r in registry.find(DiscoveryFilter(min_success_rate=50))] == ["B"]

    def test_get_capabilities(self, registry, make_descriptor) -> None:
        registry.register(make_descriptor(tools=("git",)))
        assert registry.get_capabilities("E1").tools == ["git"]
        assert registry.get_capabilities("ghost") is None

    def test_recover(self, registry, make_descriptor) -> None:
        registry.register(make_descriptor("A"))
        registry.register(make_descriptor("B"))
        registry.update_load("B", 90)
        registry.update_status("A", ExecutorStatus.ERROR)
        registry.update_status("B", ExecutorStatus.ERROR)

        assert registry.recover("A") is True
        assert registry.get("A").status == ExecutorStatus.ACTIVE
        assert registry.recover("A") is False
        assert registry.recover("ghost") is False
        assert registry.recover_all() == 1
        assert registry.get("B").status == ExecutorStatus.BUSY

    def test_stats(self, registry, make_descriptor) -> None:
        registry.register(make_descriptor("A", role="QA"))
        registry.register(make_descriptor("B", role="BackendDev"))
        registry.update_load("A", 20)
        registry.update_load("B", 40)
        registry.update_status("B", ExecutorStatus.ERROR)

        stats = registry.get_stats()
        assert stats.total == 2
        assert stats.by_status["active"] == 1
        assert stats.by_status["error"] == 1
        assert stats.by_status["maintenance"] == 0
        assert stats.by_role == {"QA": 1, "BackendDev": 1}
        assert stats.system_averages["system_load"] == pytest.approx(30.0)
        assert stats.system_averages["avg_success_rate"] == pytest.approx(100.0)

    def test_stats_empty(self, registry) -> None:
        stats = registry.get_stats()
        assert stats.total == 0
        assert stats.system_averages["avg_success_rate"] == 0.0
