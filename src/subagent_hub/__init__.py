"""Subagent Hub: executor registry, capability routing and task delegation."""

__version__ = "0.1.0"
