"""Discovery Cache - TTL-bound inventories polled from discovery sources."""

from __future__ import annotations

import asyncio
import inspect
import logging
import time
from collections.abc import Awaitable, Callable, Iterable
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import toml

from subagent_hub.engine.models import ExecutorDescriptor

logger = logging.getLogger(__name__)

Clock = Callable[[], float]
DiscoveryMethod = Callable[[], "Iterable[Any] | Awaitable[Iterable[Any]]"]
RefreshCallback = Callable[["DiscoverySource", list[Any]], None]

# Entries stay fresh for this share of their source's refresh interval
CACHE_FRESHNESS_RATIO = 0.8

AGENTS = "agents"
SKILLS = "skills"
COMMANDS = "commands"
MCP = "mcp"


def _dedupe(items: Iterable[Any]) -> list[Any]:
    """Drop repeats, keeping first occurrence; unhashable items compare by ==."""
    seen: set[Any] = set()
    unhashable: list[Any] = []
    result: list[Any] = []
    for item in items:
        try:
            if item in seen:
                continue
            seen.add(item)
        except TypeError:
            if item in unhashable:
                continue
            unhashable.append(item)
        result.append(item)
    return result


@dataclass
class DiscoverySource:
    """
    One polled inventory provider.

    Each method returns a list (sync or async). Results of all methods
    are concatenated and de-duplicated.
    """

    id: str
    name: str
    type: str
    refresh_interval: float
    methods: list[DiscoveryMethod] = field(default_factory=list)
    last_update: float = 0.0

    async def discover(self) -> list[Any]:
        items: list[Any] = []
        for method in self.methods:
            try:
                found = method()
                if inspect.isawaitable(found):
                    found = await found
                items.extend(found or [])
            except Exception as exc:
                logger.warning(
                    "Discovery method %s of %s failed: %s",
                    getattr(method, "__name__", repr(method)),
                    self.id,
                    exc,
                )
        return _dedupe(items)


class StaticSource(DiscoverySource):
    """Source whose inventory is a fixed list, mostly for configuration and tests."""

    def __init__(
        self,
        id: str,
        type: str,
        items: Iterable[Any],
        refresh_interval: float = 300.0,
        name: str | None = None,
    ) -> None:
        fixed = list(items)
        super().__init__(
            id=id,
            name=name or id,
            type=type,
            refresh_interval=refresh_interval,
            methods=[lambda: fixed],
        )


@dataclass
class CacheEntry:
    payload: list[Any]
    timestamp: float
    ttl: float

    def is_valid(self, now: float) -> bool:
        return now - self.timestamp < self.ttl


# ── inventory helpers ────────────────────────────────────────────────────


def file_scanner(root: str | Path, pattern: str = "*.md") -> DiscoveryMethod:
    """Discovery method listing file stems under ``root`` matching ``pattern``."""
    base = Path(root).expanduser()

    def scan() -> list[str]:
        if not base.is_dir():
            return []
        return sorted(path.stem for path in base.rglob(pattern) if path.is_file())

    scan.__name__ = f"scan:{base}"
    return scan


def skill_scanner(root: str | Path) -> DiscoveryMethod:
    """Discovery method listing directories under ``root`` that hold a SKILL.md."""
    base = Path(root).expanduser()

    def scan() -> list[str]:
        if not base.is_dir():
            return []
        return sorted(path.parent.name for path in base.rglob("SKILL.md"))

    scan.__name__ = f"skills:{base}"
    return scan


def load_executor_file(path: str | Path) -> list[ExecutorDescriptor]:
    """
    Read executor descriptors from a TOML file.

    Expected layout::

        [[executors]]
        id = "backend-dev"
        name = "Backend Developer"
        role = "BackendDev"
        tools = ["git", "docker"]
    """
    data = toml.load(Path(path).expanduser())
    return [ExecutorDescriptor.from_dict(entry) for entry in data.get("executors", [])]


def executor_file_loader(path: str | Path) -> DiscoveryMethod:
    """Discovery method yielding descriptors from an executors TOML file."""
    target = Path(path).expanduser()

    def load() -> list[ExecutorDescriptor]:
        if not target.is_file():
            return []
        return load_executor_file(target)

    load.__name__ = f"load:{target}"
    return load


def default_sources(home: Path | None = None) -> list[DiscoverySource]:
    """Filesystem-backed sources for a standard ``~/.subagent-hub`` layout."""
    base = home or Path.home() / ".subagent-hub"
    return [
        DiscoverySource(
            id="file-agents",
            name="Executor Files",
            type=AGENTS,
            refresh_interval=300.0,
            methods=[executor_file_loader(base / "executors.toml")],
        ),
        DiscoverySource(
            id="skill-registry",
            name="Skill Registry",
            type=SKILLS,
            refresh_interval=600.0,
            methods=[skill_scanner(base / "skills")],
        ),
        DiscoverySource(
            id="command-registry",
            name="Command Registry",
            type=COMMANDS,
            refresh_interval=300.0,
            methods=[file_scanner(base / "commands")],
        ),
    ]


# ── cache ────────────────────────────────────────────────────────────────


class DiscoveryCache:
    """
    Per-source cache with background refresh loops.

    ``refresh`` is a no-op while the source's entry is fresh, i.e. younger
    than ``freshness_ratio * refresh_interval``. ``get`` never serves an
    expired entry; it re-runs discovery first.
    """

    def __init__(
        self,
        sources: Iterable[DiscoverySource] = (),
        clock: Clock = time.time,
        freshness_ratio: float = CACHE_FRESHNESS_RATIO,
        on_refresh: RefreshCallback | None = None,
    ) -> None:
        if not 0.0 < freshness_ratio <= 1.0:
            raise ValueError(f"freshness_ratio must be in (0, 1], got {freshness_ratio}")
        self.clock = clock
        self.freshness_ratio = freshness_ratio
        self.on_refresh = on_refresh
        self._sources: dict[str, DiscoverySource] = {}
        self._entries: dict[tuple[str, str], CacheEntry] = {}
        self._tasks: list[asyncio.Task[None]] = []
        self._stop = asyncio.Event()
        for source in sources:
            self.add_source(source)

    def __len__(self) -> int:
        return len(self._entries)

    @property
    def running(self) -> bool:
        return any(not task.done() for task in self._tasks)

    def add_source(self, source: DiscoverySource) -> None:
        self._sources[source.id] = source

    def sources(self) -> list[DiscoverySource]:
        return list(self._sources.values())

    def _source(self, source_id: str) -> DiscoverySource:
        try:
            return self._sources[source_id]
        except KeyError:
            raise KeyError(f"Unknown discovery source: {source_id}") from None

    def entry(self, source_id: str) -> CacheEntry | None:
        source = self._source(source_id)
        return self._entries.get((source.type, source.id))

    async def refresh(self, source_id: str, force: bool = False) -> bool:
        """
        Re-run a source's discovery unless its entry is still fresh.

        Returns:
            True when discovery actually ran.
        """
        source = self._source(source_id)
        key = (source.type, source.id)
        now = self.clock()
        cached = self._entries.get(key)
        if not force and cached is not None and cached.is_valid(now):
            logger.debug("Discovery source %s is fresh, skipping", source_id)
            return False

        items = await source.discover()
        stamp = self.clock()
        self._entries[key] = CacheEntry(
            payload=items,
            timestamp=stamp,
            ttl=source.refresh_interval * self.freshness_ratio,
        )
        source.last_update = stamp
        logger.info("Refreshed %s: %d items", source_id, len(items))

        if self.on_refresh is not None:
            self.on_refresh(source, items)
        return True

    async def get(self, source_id: str) -> list[Any]:
        """Payload of one source, refreshed first if missing or expired."""
        await self.refresh(source_id)
        entry = self.entry(source_id)
        return list(entry.payload) if entry else []

    def get_items(self, source_type: str) -> list[Any]:
        """Cached payloads of every source of one type, concatenated."""
        items: list[Any] = []
        for source in self._sources.values():
            if source.type != source_type:
                continue
            entry = self._entries.get((source.type, source.id))
            if entry is not None:
                items.extend(entry.payload)
        return items

    async def refresh_all(self) -> int:
        """Force every source; failures are logged per source. Returns refreshed count."""
        refreshed = 0
        for source_id in list(self._sources):
            try:
                await self.refresh(source_id, force=True)
                refreshed += 1
            except Exception:
                logger.exception("Failed to refresh discovery source %s", source_id)
        return refreshed

    def status_of(self, source_id: str) -> str:
        """``updated`` within one refresh interval of the last update, else ``stale``."""
        source = self._source(source_id)
        if source.last_update == 0.0:
            return "stale"
        if self.clock() - source.last_update > source.refresh_interval:
            return "stale"
        return "updated"

    def status(self) -> dict[str, Any]:
        sources = [
            {
                "id": source.id,
                "name": source.name,
                "type": source.type,
                "last_update": source.last_update,
                "status": self.status_of(source.id),
            }
            for source in self._sources.values()
        ]
        return {"sources": sources, "cache_size": len(self._entries)}

    # ── scheduling ───────────────────────────────────────────────────────

    async def _run(self, source: DiscoverySource) -> None:
        while not self._stop.is_set():
            try:
                await self.refresh(source.id)
            except Exception:
                logger.exception("Failed to refresh discovery source %s", source.id)
            try:
                await asyncio.wait_for(self._stop.wait(), source.refresh_interval)
            except asyncio.TimeoutError:
                pass

    def start(self) -> None:
        if self.running:
            return
        self._stop = asyncio.Event()
        self._tasks = [
            asyncio.create_task(self._run(source), name=f"discovery:{source.id}")
            for source in self._sources.values()
        ]
        logger.info("Discovery started with %d sources", len(self._tasks))

    async def stop(self) -> None:
        self._stop.set()
        tasks, self._tasks = self._tasks, []
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

    def clear(self) -> None:
        self._entries.clear()
