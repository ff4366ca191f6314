"""Role lookup tables and capability extraction."""

from __future__ import annotations

from subagent_hub.engine.models import (
    ExecutorDescriptor,
    PerformanceProfile,
    SubagentCapabilities,
)

DEFAULT_INTEGRATIONS = ["task-delegation"]

TASK_CATEGORIES: dict[str, list[str]] = {
    "FrontendDev": ["ui-development", "component-creation", "styling", "frontend-testing"],
    "BackendDev": ["api-development", "database-design", "server-logic", "integration"],
    "QA": ["testing", "quality-assurance", "automation", "validation"],
    "Architect": ["system-design", "architecture-review", "planning", "standards"],
    "CLI Dev": ["tool-development", "scripting", "automation", "cli"],
    "UX Expert": ["user-research", "design-review", "usability", "accessibility"],
    "SM": ["facilitation", "planning", "team-coordination", "process-improvement"],
    "Custom": ["general"],
}

# Keywords used for the informative role-alignment value in router breakdowns
ROLE_KEYWORDS: dict[str, list[str]] = {
    "FrontendDev": [
        "frontend", "ui", "component", "react", "vue", "angular", "css",
        "html", "javascript", "typescript", "interface", "user interface",
    ],
    "BackendDev": [
        "backend", "api", "server", "database", "node", "express", "python",
        "java", "rest", "graphql", "microservice",
    ],
    "QA": [
        "test", "testing", "quality", "automation", "jest", "cypress", "spec",
        "verification", "validation",
    ],
    "Architect": [
        "architecture", "design", "system", "structure", "pattern",
        "scalability", "planning", "blueprint",
    ],
    "CLI Dev": [
        "cli", "command line", "terminal", "console", "script", "automation",
        "tool", "utility",
    ],
    "UX Expert": [
        "ux", "user experience", "design", "usability", "wireframe",
        "prototype", "user research", "interface design",
    ],
    "SM": [
        "scrum", "agile", "planning", "sprint", "workflow", "process",
        "management", "coordination",
    ],
    "Custom": ["custom", "specialized", "domain-specific", "tailored", "bespoke"],
}

BASE_ROLE_SCORE = 10
KEYWORD_MATCH_SCORE = 2
MAX_ROLE_SCORE = 20


def task_categories_for_role(role: str) -> list[str]:
    return list(TASK_CATEGORIES.get(role, ["general"]))


def role_alignment(task: str, role: str) -> float:
    """Keyword overlap between a task description and a role, in [10, 20]."""
    task_lower = task.lower()
    matches = sum(1 for kw in ROLE_KEYWORDS.get(role, []) if kw in task_lower)
    return float(min(MAX_ROLE_SCORE, BASE_ROLE_SCORE + matches * KEYWORD_MATCH_SCORE))


def extract_capabilities(descriptor: ExecutorDescriptor) -> SubagentCapabilities:
    """Derive the capability set recorded alongside a registration."""
    return SubagentCapabilities(
        specializations=list(descriptor.specializations),
        task_categories=task_categories_for_role(descriptor.role),
        tools=list(descriptor.tools),
        integrations=list(DEFAULT_INTEGRATIONS),
        performance=PerformanceProfile(
            avg_response_time=descriptor.expected_latency_ms,
            max_concurrent_tasks=descriptor.max_concurrent_tasks,
            reliability=descriptor.reliability,
        ),
    )
