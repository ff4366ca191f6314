"""Shared fixtures for the hub tests."""

from __future__ import annotations

from collections.abc import Callable

import pytest

from subagent_hub.engine.models import ExecutorDescriptor
from subagent_hub.engine.registry import ExecutorRegistry


class FakeClock:
    """Manually advanced clock, in seconds."""

    def __init__(self, start: float = 1_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def registry(clock: FakeClock) -> ExecutorRegistry:
    return ExecutorRegistry(clock=clock)


@pytest.fixture
def make_descriptor() -> Callable[..., ExecutorDescriptor]:
    def factory(executor_id: str = "E1", role: str = "BackendDev", **kwargs) -> ExecutorDescriptor:
        kwargs.setdefault("name", executor_id)
        return ExecutorDescriptor(id=executor_id, role=role, **kwargs)

    return factory
