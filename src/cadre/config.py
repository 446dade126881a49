"""Configuration constants, config file loading, and environment overrides."""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

from cadre.errors import ConfigError

logger = logging.getLogger(__name__)

DEFAULT_ROOT_AGENT_ID = "goat"
DEFAULT_PROVIDER_ID = "command"
DEFAULT_PORT = 41888
DEFAULT_BOARD_DB_NAME = "boards.sqlite"
CONFIG_FILE_NAME = "config.json"


def get_home_dir() -> Path:
    env = os.environ.get("CADRE_HOME")
    if env:
        return Path(env)
    return Path.home() / ".cadre"


@dataclass
class Config:
    home_dir: Path = field(default_factory=get_home_dir)
    root_agent_id: str = DEFAULT_ROOT_AGENT_ID
    default_provider_id: str = DEFAULT_PROVIDER_ID
    port: int = DEFAULT_PORT
    board_db_name: str = DEFAULT_BOARD_DB_NAME

    @property
    def workspaces_dir(self) -> Path:
        return self.home_dir / "workspaces"

    @property
    def agents_dir(self) -> Path:
        return self.home_dir / "agents"

    @property
    def runs_dir(self) -> Path:
        return self.home_dir / "runs"

    @property
    def board_db_path(self) -> Path:
        return self.home_dir / self.board_db_name


def load_config(path: Path | None = None, *, home_dir: Path | None = None) -> Config:
    """Load config from JSON file with env var overrides.

    With no explicit path, ``<home>/config.json`` is read when present.
    """
    config = Config(home_dir=home_dir) if home_dir is not None else Config()
    if path is None:
        path = config.home_dir / CONFIG_FILE_NAME

    if path.exists():
        try:
            text = path.read_text(encoding="utf-8")
            if text.strip():
                _apply(config, json.loads(text))
        except (json.JSONDecodeError, OSError) as e:
            logger.warning(f"Failed to load config from {path}: {e}")

    # Env var overrides
    root_env = os.environ.get("CADRE_ROOT_AGENT")
    if root_env and root_env.strip():
        config.root_agent_id = root_env.strip().lower()
    provider_env = os.environ.get("CADRE_DEFAULT_PROVIDER")
    if provider_env and provider_env.strip():
        config.default_provider_id = provider_env.strip().lower()
    port_env = os.environ.get("CADRE_PORT")
    if port_env:
        try:
            config.port = int(port_env)
        except ValueError as e:
            raise ConfigError(f"CADRE_PORT must be an integer, got {port_env!r}") from e

    return config


def _apply(cfg: Config, data: dict) -> None:
    if not isinstance(data, dict):
        logger.warning("Ignoring config: top-level JSON value is not an object")
        return
    if isinstance(data.get("rootAgentId"), str) and data["rootAgentId"].strip():
        cfg.root_agent_id = data["rootAgentId"].strip().lower()
    if isinstance(data.get("defaultProvider"), str) and data["defaultProvider"].strip():
        cfg.default_provider_id = data["defaultProvider"].strip().lower()
    if isinstance(data.get("port"), int):
        cfg.port = data["port"]
    if isinstance(data.get("boardDbName"), str) and data["boardDbName"].strip():
        cfg.board_db_name = data["boardDbName"].strip()
