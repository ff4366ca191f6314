"""Periodically refreshed inventories of executors, skills and commands."""

from subagent_hub.discovery.cache import (
    CacheEntry,
    DiscoveryCache,
    DiscoverySource,
    StaticSource,
    default_sources,
    load_executor_file,
)

__all__ = [
    "CacheEntry",
    "DiscoveryCache",
    "DiscoverySource",
    "StaticSource",
    "default_sources",
    "load_executor_file",
]
