"""FastAPI server for programmatic hub access."""

from __future__ import annotations

import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

import click
from fastapi import FastAPI

from subagent_hub import __version__
from subagent_hub.config import load_settings
from subagent_hub.delegation.models import TaskRequest
from subagent_hub.engine.models import DiscoveryFilter, ExecutorDescriptor
from subagent_hub.hub import SubagentHub


def create_app(hub: SubagentHub | None = None) -> FastAPI:
    """Build the API around one hub; the hub is started and stopped with the app."""
    hub = hub or SubagentHub()
    start_time = time.monotonic()

    @asynccontextmanager
    async def lifespan(_: FastAPI) -> AsyncIterator[None]:
        await hub.start()
        try:
            yield
        finally:
            await hub.stop()

    app = FastAPI(
        title="Subagent Hub API",
        version=__version__,
        description="Executor registry, routing and task delegation API",
        lifespan=lifespan,
    )
    app.state.hub = hub

    @app.get("/api/health")
    async def health() -> dict[str, Any]:
        """Health check."""
        uptime = time.monotonic() - start_time
        return {
            "status": "ok",
            "version": __version__,
            "uptime_seconds": round(uptime, 1),
            **hub.get_system_status(),
        }

    @app.get("/api/executors")
    async def list_executors(
        role: str | None = None,
        status: str | None = None,
        tool: str | None = None,
    ) -> dict[str, Any]:
        """Registered executors, optionally filtered."""
        try:
            criteria = DiscoveryFilter(
                role=role,
                status=status,
                required_tools=[tool] if tool else [],
            )
            criteria.statuses()
            registrations = hub.find(criteria)
        except ValueError as e:
            return {"error": str(e)}
        executors = [reg.to_dict() for reg in registrations]
        return {"executors": executors, "count": len(executors)}

    @app.post("/api/executors")
    async def register_executor(request: dict[str, Any]) -> dict[str, Any]:
        """Register or replace an executor."""
        if not request.get("id"):
            return {"error": "id is required"}
        try:
            descriptor = ExecutorDescriptor.from_dict(request)
        except (TypeError, ValueError) as e:
            return {"error": str(e)}
        return {"registered": True, "executor": hub.register(descriptor).to_dict()}

    @app.delete("/api/executors/{executor_id}")
    async def unregister_executor(executor_id: str) -> dict[str, Any]:
        return {"removed": hub.unregister(executor_id)}

    @app.put("/api/executors/{executor_id}/status")
    async def update_status(executor_id: str, request: dict[str, Any]) -> dict[str, Any]:
        """Set status and/or load of one executor."""
        updated = executor_id in hub.registry
        try:
            if "status" in request:
                updated = hub.update_status(executor_id, request["status"])
            if updated and "load" in request:
                updated = hub.update_load(executor_id, float(request["load"]))
        except (TypeError, ValueError) as e:
            return {"error": str(e)}
        registration = hub.get(executor_id)
        return {
            "updated": updated,
            "executor": registration.to_dict() if registration and updated else None,
        }

    @app.post("/api/route")
    async def route(request: dict[str, Any]) -> dict[str, Any]:
        """Explain routing: best executor plus every candidate's score breakdown."""
        task = request.get("task", "")
        tools = list(request.get("required_tools", []))
        ranked = hub.router.rank(task, tools, bool(request.get("allow_fallback", False)))
        return {
            "executor_id": ranked[0].registration.id if ranked else None,
            "candidates": [candidate.to_dict() for candidate in ranked],
        }

    @app.post("/api/delegate")
    async def delegate(request: dict[str, Any]) -> dict[str, Any]:
        try:
            task_request = TaskRequest.from_dict(request)
        except (TypeError, ValueError) as e:
            return {"success": False, "errors": [str(e)], "error_kind": "validation_failure"}
        response = await hub.delegate_task(task_request)
        return response.to_dict()

    @app.get("/api/tasks")
    async def running_tasks() -> dict[str, Any]:
        tasks = [meta.to_dict() for meta in hub.orchestrator.running_tasks().values()]
        return {"tasks": tasks, "count": len(tasks)}

    @app.get("/api/tasks/{task_id}")
    async def task_status(task_id: str) -> dict[str, Any]:
        metadata = hub.get_task_status(task_id)
        return {"task_id": task_id, "running": metadata is not None,
                "metadata": metadata.to_dict() if metadata else None}

    @app.delete("/api/tasks/{task_id}")
    async def cancel_task(task_id: str) -> dict[str, Any]:
        return {"task_id": task_id, "cancelled": hub.cancel_task(task_id)}

    @app.get("/api/statistics")
    async def statistics() -> dict[str, Any]:
        return hub.get_statistics().to_dict()

    @app.get("/api/discovery")
    async def discovery() -> dict[str, Any]:
        return hub.discovery.status()

    @app.post("/api/discovery/refresh")
    async def refresh_discovery() -> dict[str, Any]:
        refreshed = await hub.discovery.refresh_all()
        return {"refreshed": refreshed, **hub.discovery.status()}

    return app


def build_app(config_path: str | None = None) -> FastAPI:
    """App over a hub built from the user, project and explicit config files."""
    return create_app(SubagentHub(load_settings(config_path)))


app = build_app()


@click.command()
@click.option("--port", default=3848, help="Port to listen on")
@click.option("--host", default="127.0.0.1", help="Host to bind to")
@click.option("--config", "config_path", default=None, help="Explicit config file")
def main(port: int, host: str, config_path: str | None) -> None:
    """Start the Subagent Hub API server."""
    import uvicorn

    uvicorn.run(build_app(config_path), host=host, port=port)
