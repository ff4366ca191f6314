"""Registration table and the components that keep it current."""

from subagent_hub.engine.capabilities import extract_capabilities, role_alignment
from subagent_hub.engine.health import HealthMonitor
from subagent_hub.engine.metrics import MetricsRecorder
from subagent_hub.engine.models import (
    DiscoveryFilter,
    ExecutorDescriptor,
    ExecutorStatistics,
    ExecutorStatus,
    PerformanceProfile,
    Registration,
    SubagentCapabilities,
)
from subagent_hub.engine.registry import ExecutorRegistry

__all__ = [
    "DiscoveryFilter",
    "ExecutorDescriptor",
    "ExecutorRegistry",
    "ExecutorStatistics",
    "ExecutorStatus",
    "HealthMonitor",
    "MetricsRecorder",
    "PerformanceProfile",
    "Registration",
    "SubagentCapabilities",
    "extract_capabilities",
    "role_alignment",
]
