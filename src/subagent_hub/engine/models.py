"""Executor descriptors, live registrations, and discovery filters."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any

# Registration defaults
DEFAULT_HEALTH_CHECK_INTERVAL = 30.0  # seconds
DEFAULT_AVG_RESPONSE_TIME = 30_000.0  # ms
DEFAULT_RELIABILITY = 95.0
DEFAULT_MAX_CONCURRENT_TASKS = 1
INITIAL_SUCCESS_RATE = 100.0
INITIAL_LOAD = 0.0
MAX_PERCENTAGE = 100.0


class ExecutorStatus(StrEnum):
    """Executor health/availability states."""

    ACTIVE = "active"
    BUSY = "busy"
    ERROR = "error"
    INACTIVE = "inactive"
    MAINTENANCE = "maintenance"


def clamp_percentage(value: float) -> float:
    return max(0.0, min(MAX_PERCENTAGE, float(value)))


def string_tuple(value: Any, field_name: str) -> tuple[str, ...]:
    """Coerce a list field from TOML/JSON; a bare string counts as one item."""
    if value is None:
        return ()
    if isinstance(value, str):
        return (value,)
    if not isinstance(value, (list, tuple)):
        raise ValueError(f"{field_name} must be a list of strings, got {type(value).__name__}")
    return tuple(str(item) for item in value)


@dataclass(frozen=True)
class ExecutorDescriptor:
    """Static identity and capability declaration for one executor.

    Never mutated after registration; re-registering the same id replaces it.
    """

    id: str
    name: str
    role: str  # FrontendDev, BackendDev, QA, Architect, ...
    tools: tuple[str, ...] = ()
    specializations: tuple[str, ...] = ()
    description: str = ""
    expected_latency_ms: float = DEFAULT_AVG_RESPONSE_TIME
    max_concurrent_tasks: int = DEFAULT_MAX_CONCURRENT_TASKS
    reliability: float = DEFAULT_RELIABILITY

    def __post_init__(self) -> None:
        if not self.id:
            raise ValueError("executor id must not be empty")
        if self.max_concurrent_tasks < 1:
            raise ValueError(
                f"max_concurrent_tasks must be >= 1, got {self.max_concurrent_tasks}"
            )
        # Accept any iterable of strings but store tuples
        object.__setattr__(self, "tools", tuple(self.tools))
        object.__setattr__(self, "specializations", tuple(self.specializations))

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ExecutorDescriptor:
        """Build a descriptor from a plain mapping (TOML table, JSON body)."""
        return cls(
            id=str(data["id"]),
            name=str(data.get("name") or data["id"]),
            role=str(data.get("role", "Custom")),
            tools=string_tuple(data.get("tools"), "tools"),
            specializations=string_tuple(data.get("specializations"), "specializations"),
            description=str(data.get("description", "")),
            expected_latency_ms=float(
                data.get("expected_latency_ms", DEFAULT_AVG_RESPONSE_TIME)
            ),
            max_concurrent_tasks=int(
                data.get("max_concurrent_tasks", DEFAULT_MAX_CONCURRENT_TASKS)
            ),
            reliability=float(data.get("reliability", DEFAULT_RELIABILITY)),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "role": self.role,
            "tools": list(self.tools),
            "specializations": list(self.specializations),
            "description": self.description,
            "expected_latency_ms": self.expected_latency_ms,
            "max_concurrent_tasks": self.max_concurrent_tasks,
            "reliability": self.reliability,
        }


@dataclass
class PerformanceProfile:
    """Performance snapshot; avg_response_time is smoothed on every completion."""

    avg_response_time: float  # ms
    max_concurrent_tasks: int
    reliability: float


@dataclass
class SubagentCapabilities:
    """Capabilities derived from a descriptor at registration time."""

    specializations: list[str]
    task_categories: list[str]
    tools: list[str]
    integrations: list[str]
    performance: PerformanceProfile


@dataclass
class Registration:
    """Live record tracking one executor's status and metrics."""

    descriptor: ExecutorDescriptor
    capabilities: SubagentCapabilities
    registered_at: float
    last_activity: float
    status: ExecutorStatus = ExecutorStatus.ACTIVE
    health_check_interval: float = DEFAULT_HEALTH_CHECK_INTERVAL
    tasks_completed: int = 0
    success_rate: float = INITIAL_SUCCESS_RATE  # 0-100, rolling
    current_load: float = INITIAL_LOAD  # 0-100

    @property
    def id(self) -> str:
        return self.descriptor.id

    @property
    def role(self) -> str:
        return self.descriptor.role

    def to_dict(self) -> dict[str, Any]:
        perf = self.capabilities.performance
        return {
            "id": self.id,
            "name": self.descriptor.name,
            "role": self.role,
            "status": self.status.value,
            "registered_at": self.registered_at,
            "last_activity": self.last_activity,
            "health_check_interval": self.health_check_interval,
            "tasks_completed": self.tasks_completed,
            "success_rate": round(self.success_rate, 3),
            "current_load": self.current_load,
            "capabilities": {
                "specializations": list(self.capabilities.specializations),
                "task_categories": list(self.capabilities.task_categories),
                "tools": list(self.capabilities.tools),
                "integrations": list(self.capabilities.integrations),
                "performance": {
                    "avg_response_time": round(perf.avg_response_time, 3),
                    "max_concurrent_tasks": perf.max_concurrent_tasks,
                    "reliability": perf.reliability,
                },
            },
        }


@dataclass
class DiscoveryFilter:
    """Criteria for ``ExecutorRegistry.find``; unset fields do not filter."""

    role: str | None = None
    status: ExecutorStatus | Iterable[ExecutorStatus] | None = None
    specializations: list[str] = field(default_factory=list)  # any-match
    min_success_rate: float | None = None
    max_load: float | None = None
    required_tools: list[str] = field(default_factory=list)  # all-match

    def statuses(self) -> set[ExecutorStatus] | None:
        if self.status is None:
            return None
        if isinstance(self.status, str):
            return {ExecutorStatus(self.status)}
        return {ExecutorStatus(s) for s in self.status}

    def matches(self, registration: Registration) -> bool:
        if self.role is not None and registration.role != self.role:
            return False

        statuses = self.statuses()
        if statuses is not None and registration.status not in statuses:
            return False

        if self.specializations and not any(
            spec in registration.capabilities.specializations
            for spec in self.specializations
        ):
            return False

        if (
            self.min_success_rate is not None
            and registration.success_rate < self.min_success_rate
        ):
            return False

        if self.max_load is not None and registration.current_load > self.max_load:
            return False

        tools = registration.capabilities.tools
        return all(tool in tools for tool in self.required_tools)


@dataclass
class ExecutorStatistics:
    """Aggregate view of the registration table."""

    total: int
    by_status: dict[str, int]
    by_role: dict[str, int]
    system_averages: dict[str, float]

    def to_dict(self) -> dict[str, Any]:
        return {
            "total": self.total,
            "by_status": dict(self.by_status),
            "by_role": dict(self.by_role),
            "system_averages": dict(self.system_averages),
        }
