"""Tests for the FastAPI server."""

from __future__ import annotations

import pytest
from httpx import ASGITransport, AsyncClient

from subagent_hub.api.server import build_app, create_app
from subagent_hub.delegation.executor import HandlerBackend
from subagent_hub.discovery.cache import StaticSource
from subagent_hub.hub import SubagentHub

pytestmark = pytest.mark.anyio


async def finish(descriptor, request) -> str:
    return f"done: {request.task}"


@pytest.fixture
def hub() -> SubagentHub:
    backend = HandlerBackend()
    backend.register_handler("E1", finish)
    return SubagentHub(backend=backend, sources=[StaticSource("skills", "skills", ["pdf"])])


@pytest.fixture
async def client(hub):
    transport = ASGITransport(app=create_app(hub))
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


async def register(client, **body) -> dict:
    body.setdefault("id", "E1")
    body.setdefault("role", "BackendDev")
    response = await client.post("/api/executors", json=body)
    assert response.status_code == 200
    return response.json()


async def test_health(client) -> None:
    response = await client.get("/api/health")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "ok"
    assert "version" in data
    assert data["total_executors"] == 0


async def test_register_and_list(client) -> None:
    data = await register(client, tools=["git"])
    assert data["registered"] is True
    assert data["executor"]["status"] == "active"

    response = await client.get("/api/executors", params={"tool": "git"})
    assert response.json()["count"] == 1
    response = await client.get("/api/executors", params={"role": "QA"})
    assert response.json()["count"] == 0


async def test_register_requires_id(client) -> None:
    response = await client.post("/api/executors", json={"role": "QA"})
    assert response.status_code == 200
    assert "error" in response.json()


async def test_invalid_status_filter(client) -> None:
    response = await client.get("/api/executors", params={"status": "sleeping"})
    assert "error" in response.json()


async def test_unregister(client) -> None:
    await register(client)
    assert (await client.delete("/api/executors/E1")).json() == {"removed": True}
    assert (await client.delete("/api/executors/E1")).json() == {"removed": False}


async def test_update_status_and_load(client) -> None:
    await register(client)
    response = await client.put("/api/executors/E1/status", json={"load": 90})
    assert response.json()["executor"]["status"] == "busy"

    response = await client.put("/api/executors/E1/status", json={"status": "maintenance"})
    assert response.json()["executor"]["status"] == "maintenance"

    response = await client.put("/api/executors/ghost/status", json={"status": "active"})
    assert response.json() == {"updated": False, "executor": None}


async def test_route(client) -> None:
    await register(client, id="A")
    await register(client, id="B", specializations=["search"])
    response = await client.post("/api/route", json={"task": "improve search"})
    data = response.json()
    assert data["executor_id"] == "B"
    assert [c["executor_id"] for c in data["candidates"]] == ["B", "A"]


async def test_delegate(client) -> None:
    await register(client, tools=["git"])
    response = await client.post(
        "/api/delegate", json={"executor_id": "E1", "task": "tag release", "required_tools": ["git"]}
    )
    data = response.json()
    assert data["success"] is True
    assert data["result"] == "done: tag release"
    assert data["metadata"]["executor_id"] == "E1"


async def test_delegate_failures_are_not_5xx(client) -> None:
    response = await client.post("/api/delegate", json={"executor_id": "ghost", "task": "x"})
    assert response.status_code == 200
    assert response.json()["error_kind"] == "not_found"

    response = await client.post("/api/delegate", json={"task": "x", "priority": 99})
    assert response.status_code == 200
    assert response.json()["error_kind"] == "validation_failure"


async def test_task_status_and_cancel_unknown(client) -> None:
    assert (await client.get("/api/tasks/task_1_x")).json()["running"] is False
    assert (await client.delete("/api/tasks/task_1_x")).json()["cancelled"] is False
    assert (await client.get("/api/tasks")).json()["count"] == 0


async def test_statistics(client) -> None:
    await register(client)
    data = (await client.get("/api/statistics")).json()
    assert data["total"] == 1
    assert data["by_role"] == {"BackendDev": 1}


async def test_discovery(client) -> None:
    data = (await client.post("/api/discovery/refresh")).json()
    assert data["refreshed"] == 1
    assert data["cache_size"] == 1
    data = (await client.get("/api/discovery")).json()
    assert data["sources"][0]["status"] == "updated"


def test_build_app_reads_config_files(tmp_path, monkeypatch) -> None:
    monkeypatch.setattr("subagent_hub.config.USER_CONFIG_FILE", tmp_path / "missing.toml")
    (tmp_path / ".subagent-hub.toml").write_text("default_timeout = 90.0\n")
    explicit = tmp_path / "explicit.toml"
    explicit.write_text("enforce_timeout = false\n")
    monkeypatch.chdir(tmp_path)

    settings = build_app(str(explicit)).state.hub.settings
    assert settings.default_timeout == 90.0
    assert settings.enforce_timeout is False

    assert build_app().state.hub.settings.default_timeout == 90.0
