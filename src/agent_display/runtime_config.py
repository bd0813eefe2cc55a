"""
Runtime configuration for the agent display server and watch client.

This module provides:
- load_envs(): load AGENT_DISPLAY_HOST, AGENT_DISPLAY_PORT, AGENT_DISPLAY_LOG_LEVEL
  and AGENT_DISPLAY_MAX_HISTORY from a .env file if they are not already present
  in the environment.
- RuntimeConfig: a dataclass holding runtime settings for the server and client.
"""

import os
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Optional

from dotenv import dotenv_values

# Environment variable names
HOST_ENV: str = "AGENT_DISPLAY_HOST"
PORT_ENV: str = "AGENT_DISPLAY_PORT"
LOG_LEVEL_ENV: str = "AGENT_DISPLAY_LOG_LEVEL"
MAX_HISTORY_ENV: str = "AGENT_DISPLAY_MAX_HISTORY"

DEFAULT_HOST: str = "localhost"
DEFAULT_PORT: int = 8765


def load_envs(env_file: Optional[str] = None) -> None:
    """
    Load AGENT_DISPLAY_* settings from a .env file into the process environment
    if they are not already set.
    """
    env_values = dotenv_values(env_file) if env_file else dotenv_values()
    for key in (HOST_ENV, PORT_ENV, LOG_LEVEL_ENV, MAX_HISTORY_ENV):
        if not os.environ.get(key):
            val = env_values.get(key)
            if val:
                os.environ[key] = str(val)


class LogLevel(str, Enum):
    """Supported log levels."""

    debug = "debug"
    info = "info"
    warning = "warning"
    error = "error"


@dataclass(frozen=True)
class RuntimeConfig:
    """
    Holds runtime configuration for agent-display.

    Attributes:
        host: Interface the websocket broadcaster binds to.
        port: Port the websocket broadcaster listens on.
        log_level: Minimum level written to the log file.
        max_history: Maximum number of undo entries kept, or None for no limit.
        reconnect_delay: Seconds the watch client waits before reconnecting.
        action_log_size: Number of entries the watch client keeps in its action log.
        input_wait_timeout: Default seconds get_input waits for an answer.
    """

    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT
    log_level: LogLevel = LogLevel.info
    max_history: Optional[int] = None
    reconnect_delay: float = 2.0
    action_log_size: int = 20
    input_wait_timeout: float = 300.0

    @property
    def websocket_url(self) -> str:
        return f"ws://{self.host}:{self.port}"


def get_data_dir() -> Path:
    """
    Return the agent-display data directory under XDG_DATA_HOME or fallback to ~/.local/share.
    """
    data_home = Path(os.environ.get("XDG_DATA_HOME", Path.home() / ".local/share"))
    return data_home / "agent_display"
