"""State shared between the CLI callback and its commands."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from .config import PlanscopeConfig, discover_config


@dataclass
class CliState:
    """Global options given before the subcommand."""

    config_path: Path | None = None


_state = CliState()


def set_config_path(path: Path | None) -> None:
    """Remember the --config option of the current invocation."""
    _state.config_path = path


def config_for(workspace_path: Path) -> PlanscopeConfig:
    """Configuration for a workspace; an explicit --config wins over discovery."""
    return discover_config(workspace_path, _state.config_path)
