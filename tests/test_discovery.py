"""Tests for the discovery cache."""

from __future__ import annotations

import asyncio

import pytest

from subagent_hub.discovery.cache import (
    DiscoveryCache,
    DiscoverySource,
    StaticSource,
    default_sources,
    file_scanner,
    load_executor_file,
)

pytestmark = pytest.mark.anyio


class CountingMethod:
    def __init__(self, items: list) -> None:
        self.items = items
        self.calls = 0

    def __call__(self) -> list:
        self.calls += 1
        return list(self.items)


def make_source(method, refresh_interval: float = 100.0, type: str = "skills") -> DiscoverySource:
    return DiscoverySource(
        id="src", name="Source", type=type, refresh_interval=refresh_interval, methods=[method]
    )


async def test_refresh_within_freshness_window_runs_once(clock) -> None:
    method = CountingMethod(["a"])
    cache = DiscoveryCache([make_source(method)], clock=clock)

    assert await cache.refresh("src") is True
    clock.advance(79)
    assert await cache.refresh("src") is False
    assert method.calls == 1

    clock.advance(1)
    assert await cache.refresh("src") is True
    assert method.calls == 2


async def test_force_refresh(clock) -> None:
    method = CountingMethod(["a"])
    cache = DiscoveryCache([make_source(method)], clock=clock)
    await cache.refresh("src")
    assert await cache.refresh("src", force=True) is True
    assert method.calls == 2


async def test_get_never_serves_expired(clock) -> None:
    method = CountingMethod(["a"])
    cache = DiscoveryCache([make_source(method)], clock=clock)
    assert await cache.get("src") == ["a"]

    method.items = ["b"]
    clock.advance(50)
    assert await cache.get("src") == ["a"]
    clock.advance(30)
    assert await cache.get("src") == ["b"]


async def test_unknown_source(clock) -> None:
    cache = DiscoveryCache(clock=clock)
    with pytest.raises(KeyError):
        await cache.refresh("nope")


async def test_methods_concatenated_and_deduplicated(clock) -> None:
    async def remote() -> list:
        return ["b", "c", {"name": "x"}]

    def local() -> list:
        return ["a", "b", {"name": "x"}]

    source = DiscoverySource(
        id="src", name="S", type="skills", refresh_interval=10, methods=[local, remote]
    )
    assert await source.discover() == ["a", "b", {"name": "x"}, "c"]


async def test_failing_method_is_skipped() -> None:
    def broken() -> list:
        raise OSError("registry offline")

    source = DiscoverySource(
        id="src", name="S", type="skills", refresh_interval=10, methods=[broken, lambda: ["ok"]]
    )
    assert await source.discover() == ["ok"]


async def test_get_items_by_type_and_status(clock) -> None:
    cache = DiscoveryCache(
        [
            StaticSource("s1", "skills", ["a", "b"]),
            StaticSource("s2", "skills", ["c"]),
            StaticSource("c1", "commands", ["deploy"]),
        ],
        clock=clock,
    )
    assert cache.status()["sources"][0]["status"] == "stale"
    assert await cache.refresh_all() == 3
    assert cache.get_items("skills") == ["a", "b", "c"]
    assert cache.get_items("commands") == ["deploy"]

    status = cache.status()
    assert status["cache_size"] == 3
    assert {s["status"] for s in status["sources"]} == {"updated"}

    clock.advance(301)
    assert cache.status_of("s1") == "stale"


async def test_on_refresh_callback(clock) -> None:
    seen = []
    cache = DiscoveryCache(
        [StaticSource("s1", "agents", ["x"])],
        clock=clock,
        on_refresh=lambda source, items: seen.append((source.id, items)),
    )
    await cache.refresh("s1")
    assert seen == [("s1", ["x"])]


async def test_background_loop_refreshes_and_stops() -> None:
    method = CountingMethod(["a"])
    cache = DiscoveryCache([make_source(method, refresh_interval=0.01)])
    cache.start()
    assert cache.running
    await asyncio.sleep(0.05)
    await cache.stop()
    assert not cache.running
    assert method.calls >= 2


def test_freshness_ratio_validated() -> None:
    with pytest.raises(ValueError):
        DiscoveryCache(freshness_ratio=0)


def test_file_scanner(tmp_path) -> None:
    (tmp_path / "commands").mkdir()
    (tmp_path / "commands" / "deploy.md").write_text("# deploy")
    (tmp_path / "commands" / "notes.txt").write_text("skip")
    assert file_scanner(tmp_path / "commands")() == ["deploy"]
    assert file_scanner(tmp_path / "missing")() == []


def test_load_executor_file(tmp_path) -> None:
    path = tmp_path / "executors.toml"
    path.write_text(
        '[[executors]]\nid = "qa-bot"\nrole = "QA"\ntools = ["pytest"]\n'
    )
    (descriptor,) = load_executor_file(path)
    assert descriptor.id == "qa-bot"
    assert descriptor.tools == ("pytest",)


async def test_default_sources(tmp_path) -> None:
    (tmp_path / "executors.toml").write_text('[[executors]]\nid = "a"\n')
    (tmp_path / "skills" / "pdf").mkdir(parents=True)
    (tmp_path / "skills" / "pdf" / "SKILL.md").write_text("pdf")
    cache = DiscoveryCache(default_sources(tmp_path))
    await cache.refresh_all()
    assert [d.id for d in cache.get_items("agents")] == ["a"]
    assert cache.get_items("skills") == ["pdf"]
