"""
Logging setup. Stdout carries the MCP stdio protocol, so logs go to a file.
"""

import logging
from pathlib import Path
from typing import Optional

from agent_display.runtime_config import LogLevel, get_data_dir

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def get_log_file() -> Path:
    return get_data_dir() / "logs" / "agent-display.log"


def setup_logging(
    level: LogLevel = LogLevel.info, log_file: Optional[Path] = None
) -> Path:
    """Send agent_display logs to ``log_file`` and return its path."""
    log_path = log_file or get_log_file()
    log_path.parent.mkdir(parents=True, exist_ok=True)

    logger = logging.getLogger("agent_display")
    logger.setLevel(level.value.upper())

    # Replace handlers from a previous call rather than stacking them
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    file_handler = logging.FileHandler(log_path)
    file_handler.setLevel(level.value.upper())
    file_handler.setFormatter(logging.Formatter(LOG_FORMAT))
    logger.addHandler(file_handler)
    logger.propagate = False

    return log_path
