"""Hub configuration: defaults, user file, project file, explicit path."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import toml
from pydantic import BaseModel, Field

HUB_HOME = Path.home() / ".subagent-hub"
USER_CONFIG_FILE = HUB_HOME / "config.toml"
PROJECT_CONFIG_NAME = ".subagent-hub.toml"


class HubSettings(BaseModel):
    """Tunables for the hub. Times are seconds, loads and rates percentages."""

    health_check_interval: float = Field(default=30.0, gt=0)
    health_check_frequency: float = Field(default=10.0, gt=0)
    probe_timeout: float = Field(default=5.0, gt=0)
    max_load_threshold: float = Field(default=80.0, ge=0, le=100)
    busy_load_threshold: float = Field(default=80.0, ge=0, le=100)
    rolling_weight: float = Field(default=0.1, gt=0, le=1)
    default_timeout: float = Field(default=300.0, gt=0)
    enforce_timeout: bool = True
    cache_freshness_ratio: float = Field(default=0.8, gt=0, le=1)
    ledger_path: str | None = None
    discovery_home: str | None = None

    @classmethod
    def default(cls) -> HubSettings:
        return cls()


def deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Deep merge two dictionaries, with override taking precedence."""
    result = base.copy()
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def find_project_config(start: Path | None = None) -> Path | None:
    """Find the project config file by searching up from ``start`` (cwd)."""
    cwd = start or Path.cwd()
    for parent in [cwd, *cwd.parents]:
        config_file = parent / PROJECT_CONFIG_NAME
        if config_file.exists():
            return config_file
        if parent == Path.home():
            break
    return None


def load_settings(
    path: str | Path | None = None,
    user_file: Path | None = None,
    start: Path | None = None,
) -> HubSettings:
    """Load settings from all sources.

    Priority (highest to lowest):
    1. Explicit ``path``
    2. Project config (.subagent-hub.toml in cwd or parents)
    3. User config (~/.subagent-hub/config.toml)
    4. Defaults
    """
    config_dict: dict[str, Any] = {}

    user_config = user_file or USER_CONFIG_FILE
    if user_config.exists():
        config_dict = deep_merge(config_dict, toml.load(user_config))

    project_config = find_project_config(start)
    if project_config is not None:
        config_dict = deep_merge(config_dict, toml.load(project_config))

    if path is not None:
        config_dict = deep_merge(config_dict, toml.load(Path(path).expanduser()))

    if config_dict:
        return HubSettings.model_validate(config_dict)
    return HubSettings.default()


def save_settings(settings: HubSettings, path: Path | None = None) -> Path:
    """Write settings as TOML, creating parent directories."""
    target = path or USER_CONFIG_FILE
    target.parent.mkdir(parents=True, exist_ok=True)
    with open(target, "w") as f:
        toml.dump(settings.model_dump(exclude_none=True), f)
    return target
