"""
Delegation Data Models

Requests, responses and execution metadata exchanged with the
delegation orchestrator.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from subagent_hub.engine.models import string_tuple


class ErrorKind(str, Enum):
    """Failure categories reported in TaskResponse.error_kind."""

    NOT_FOUND = "not_found"
    UNAVAILABLE = "unavailable"
    MISSING_TOOLS = "missing_tools"
    EXECUTION_FAILURE = "execution_failure"
    VALIDATION_FAILURE = "validation_failure"
    TIMEOUT = "timeout"


class OutputFormat(str, Enum):
    MARKDOWN = "markdown"
    JSON = "json"
    STRUCTURED = "structured"


class DelegationError(Exception):
    """Raised while validating a request; converted into a TaskResponse."""

    def __init__(
        self, kind: ErrorKind, message: str, executor_id: Optional[str] = None
    ) -> None:
        super().__init__(message)
        self.kind = kind
        self.message = message
        self.executor_id = executor_id


@dataclass(frozen=True)
class TaskRequest:
    """
    Unit of work submitted for delegation.

    ``executor_id`` of None means the router picks the executor.
    ``timeout`` is in seconds; None falls back to the hub default.
    """

    task: str = ""
    executor_id: Optional[str] = None
    priority: int = 5
    timeout: Optional[float] = None
    required_tools: Tuple[str, ...] = ()
    collaborative: bool = False
    output_format: OutputFormat = OutputFormat.MARKDOWN
    context: Dict[str, Any] = field(default_factory=dict, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "required_tools", tuple(self.required_tools))
        object.__setattr__(self, "output_format", OutputFormat(self.output_format))
        if not 1 <= self.priority <= 10:
            raise ValueError(f"priority must be in [1, 10], got {self.priority}")
        if self.timeout is not None and self.timeout <= 0:
            raise ValueError(f"timeout must be > 0, got {self.timeout}")

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TaskRequest":
        return cls(
            task=str(data.get("task", "")),
            executor_id=data.get("executor_id"),
            priority=int(data.get("priority", 5)),
            timeout=data.get("timeout"),
            required_tools=string_tuple(data.get("required_tools"), "required_tools"),
            collaborative=bool(data.get("collaborative", False)),
            output_format=data.get("output_format", OutputFormat.MARKDOWN.value),
            context=dict(data.get("context", {})),
        )


@dataclass(frozen=True)
class ExecutionMetadata:
    """Snapshot describing one delegation attempt; never mutated once returned."""

    task_id: str
    executor_id: str
    executor_role: str
    start_time: float
    end_time: float
    duration_ms: float
    completed_on_time: bool
    tools_used: Tuple[str, ...] = ()
    tool_invocations: int = 0
    collaboration_used: bool = False
    confidence: float = 100.0

    def __post_init__(self) -> None:
        object.__setattr__(self, "tools_used", tuple(self.tools_used))
        if not 0.0 <= self.confidence <= 100.0:
            raise ValueError(f"confidence must be in [0, 100], got {self.confidence}")
        if self.duration_ms < 0.0:
            raise ValueError(f"duration_ms must be >= 0, got {self.duration_ms}")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "task_id": self.task_id,
            "executor_id": self.executor_id,
            "executor_role": self.executor_role,
            "start_time": self.start_time,
            "end_time": self.end_time,
            "duration_ms": round(self.duration_ms, 3),
            "completed_on_time": self.completed_on_time,
            "tools_used": list(self.tools_used),
            "tool_invocations": self.tool_invocations,
            "collaboration_used": self.collaboration_used,
            "confidence": self.confidence,
        }


@dataclass
class ExecutionOutcome:
    """What an executor reports back from a black-box execution call."""

    success: bool
    output: str = ""
    data: Any = None
    tools_used: List[str] = field(default_factory=list)
    tool_invocations: int = 0
    collaboration_used: bool = False
    confidence: float = 100.0
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)


@dataclass
class TaskResponse:
    """Structured result of ``delegate_task``."""

    success: bool
    metadata: ExecutionMetadata
    result: str = ""
    data: Any = None
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    error_kind: Optional[ErrorKind] = None

    @property
    def partial(self) -> bool:
        """Succeeded overall but the executor reported internal errors."""
        return self.success and bool(self.errors)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "partial": self.partial,
            "result": self.result,
            "data": self.data,
            "metadata": self.metadata.to_dict(),
            "errors": list(self.errors),
            "warnings": list(self.warnings),
            "error_kind": self.error_kind.value if self.error_kind else None,
        }
