"""
Capability Router — Weighted Executor Selection

Scoring formula (max 100):
    success_rate  (rate / 100)              * 40
    load          ((100 - load) / 100)      * 20
    tools         (matched / required)      * 20   (only when tools required)
    specialization min(20, 4 * substring hits)

Ties keep registration order, so the same table and task always yield the
same executor.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence

from subagent_hub.engine.capabilities import role_alignment
from subagent_hub.engine.models import DiscoveryFilter, ExecutorStatus, Registration
from subagent_hub.engine.registry import ExecutorRegistry

logger = logging.getLogger(__name__)

SUCCESS_RATE_WEIGHT = 40.0
LOAD_WEIGHT = 20.0
TOOL_COVERAGE_WEIGHT = 20.0
SPECIALIZATION_MATCH_SCORE = 4.0
MAX_SPECIALIZATION_SCORE = 20.0

# Candidate ceiling for the strict tier
MAX_LOAD_THRESHOLD = 80.0


@dataclass
class ScoredCandidate:
    """One candidate executor with its score breakdown."""

    registration: Registration
    success_rate_score: float
    load_score: float
    tool_score: float
    specialization_score: float
    role_alignment: float

    @property
    def total(self) -> float:
        return (
            self.success_rate_score
            + self.load_score
            + self.tool_score
            + self.specialization_score
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "executor_id": self.registration.id,
            "role": self.registration.role,
            "total": round(self.total, 3),
            "success_rate": round(self.success_rate_score, 3),
            "load": round(self.load_score, 3),
            "tools": round(self.tool_score, 3),
            "specialization": round(self.specialization_score, 3),
            "role_alignment": round(self.role_alignment, 3),
        }


def _specialization_hits(task: str, specializations: Sequence[str]) -> int:
    task_lower = task.lower()
    return sum(1 for spec in specializations if spec and spec.lower() in task_lower)


def score_registration(
    registration: Registration,
    task: str,
    required_tools: Optional[Sequence[str]] = None,
) -> ScoredCandidate:
    """Score one registration for a task description."""
    required = list(required_tools or [])
    capabilities = registration.capabilities

    success_rate_score = (registration.success_rate / 100.0) * SUCCESS_RATE_WEIGHT
    load_score = ((100.0 - registration.current_load) / 100.0) * LOAD_WEIGHT

    tool_score = 0.0
    if required:
        matched = sum(1 for tool in required if tool in capabilities.tools)
        tool_score = (matched / len(required)) * TOOL_COVERAGE_WEIGHT

    specialization_score = min(
        MAX_SPECIALIZATION_SCORE,
        SPECIALIZATION_MATCH_SCORE * _specialization_hits(task, capabilities.specializations),
    )

    return ScoredCandidate(
        registration=registration,
        success_rate_score=success_rate_score,
        load_score=load_score,
        tool_score=tool_score,
        specialization_score=specialization_score,
        role_alignment=role_alignment(task, registration.role),
    )


class CapabilityRouter:
    """Selects the best registered executor for a task."""

    def __init__(
        self,
        registry: ExecutorRegistry,
        max_load: float = MAX_LOAD_THRESHOLD,
    ) -> None:
        self.registry = registry
        self.max_load = max_load

    def candidates(
        self,
        required_tools: Optional[Sequence[str]] = None,
        allow_fallback: bool = False,
    ) -> List[Registration]:
        """
        Eligible executors.

        Strict tier: active and load <= max_load. With ``allow_fallback``,
        widen to active/busy at any load, then to every registration.
        """
        tools = list(required_tools or [])
        tiers = [
            DiscoveryFilter(
                status=ExecutorStatus.ACTIVE,
                max_load=self.max_load,
                required_tools=tools,
            )
        ]
        if allow_fallback:
            tiers.append(
                DiscoveryFilter(
                    status=[ExecutorStatus.ACTIVE, ExecutorStatus.BUSY],
                    required_tools=tools,
                )
            )
            tiers.append(DiscoveryFilter(required_tools=tools))

        for criteria in tiers:
            found = self.registry.find(criteria)
            if found:
                return found
        return []

    def rank(
        self,
        task: str,
        required_tools: Optional[Sequence[str]] = None,
        allow_fallback: bool = False,
    ) -> List[ScoredCandidate]:
        """All candidates, best first; equal scores keep registration order."""
        scored = [
            score_registration(reg, task, required_tools)
            for reg in self.candidates(required_tools, allow_fallback)
        ]
        for candidate in scored:
            logger.debug(
                "Candidate %s scored %.3f", candidate.registration.id, candidate.total
            )
        # sorted() is stable
        return sorted(scored, key=lambda c: c.total, reverse=True)

    def find_best_executor(
        self,
        task: str,
        required_tools: Optional[Sequence[str]] = None,
        allow_fallback: bool = False,
    ) -> Optional[Registration]:
        """Highest-scoring candidate, or None when nothing is eligible."""
        ranked = self.rank(task, required_tools, allow_fallback)
        if not ranked:
            return None
        return ranked[0].registration
