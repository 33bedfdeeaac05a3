from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path

from .constraint import DEFAULT_CONFIG_PATH, ENV_PREFIX, FALSE_TOKENS, TRUE_TOKENS


@dataclass(frozen=True, slots=True)
class Settings:
    """Process settings sourced from environment variables."""

    config_path: Path = DEFAULT_CONFIG_PATH
    workspace: Path | None = None
    verbose: bool | None = None


def parse_bool(value: str | None) -> bool | None:
    if value is None:
        return None
    normalized = value.strip().lower()
    if normalized in TRUE_TOKENS:
        return True
    if normalized in FALSE_TOKENS:
        return False
    return None


def _read_settings() -> Settings:
    config_env = os.getenv(f"{ENV_PREFIX}CONFIG_PATH")
    workspace_env = os.getenv("GITHUB_WORKSPACE")
    verbose_env = os.getenv(f"{ENV_PREFIX}VERBOSE") or os.getenv("RUNNER_DEBUG")
    config_path = Path(config_env) if config_env else DEFAULT_CONFIG_PATH
    workspace = Path(workspace_env) if workspace_env else None
    return Settings(config_path=config_path, workspace=workspace, verbose=parse_bool(verbose_env))


@lru_cache
def get_settings() -> Settings:
    """Return cached settings instance."""

    return _read_settings()


__all__ = ["Settings", "get_settings", "parse_bool"]
