"""
Task Delegation — Routing, Execution & History

Core Components:
- models: TaskRequest, TaskResponse, ExecutionMetadata, ErrorKind
- router: weighted capability scoring over the registration table
- executor: black-box execution boundary (ExecutionBackend protocol)
- orchestrator: validate, execute, track in-flight, respond
- ledger: aiosqlite history of finished delegations
"""

from .models import (
    DelegationError,
    ErrorKind,
    ExecutionMetadata,
    ExecutionOutcome,
    OutputFormat,
    TaskRequest,
    TaskResponse,
)
from .router import CapabilityRouter, ScoredCandidate, score_registration
from .executor import ExecutionBackend, HandlerBackend, NoHandlerError
from .orchestrator import DelegationOrchestrator
from .ledger import DelegationLedger

__all__ = [
    # Models
    "DelegationError",
    "ErrorKind",
    "ExecutionMetadata",
    "ExecutionOutcome",
    "OutputFormat",
    "TaskRequest",
    "TaskResponse",
    # Router
    "CapabilityRouter",
    "ScoredCandidate",
    "score_registration",
    # Executor
    "ExecutionBackend",
    "HandlerBackend",
    "NoHandlerError",
    # Orchestrator
    "DelegationOrchestrator",
    # History
    "DelegationLedger",
]
