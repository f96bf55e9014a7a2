"""Logging configuration for the API server and CLI.

Provides dual output (stdout + file) at the level configured by LOG_LEVEL.
Default: INFO. Set LOG_LEVEL=WARNING for production, DEBUG for verbose output.
"""

import logging
import sys
from pathlib import Path

# Map string level names to logging constants
LOG_LEVEL_MAP = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARNING": logging.WARNING,
    "ERROR": logging.ERROR,
    "CRITICAL": logging.CRITICAL,
}

# Third-party loggers that are too chatty at INFO
NOISY_LOGGERS = ("sqlalchemy.engine", "aiosqlite", "uvicorn.access")


def parse_log_level(level: str | None) -> int:
    """Translate a level name to a logging constant.

    Args:
        level: Level name, case-insensitive (None or unknown names fall back to INFO)

    Returns:
        Logging level constant
    """
    return LOG_LEVEL_MAP.get((level or "INFO").upper(), logging.INFO)


def setup_server_logging(log_file: str = "logs/server.log", level: str | None = None) -> None:
    """
    Configure the root logger for the API server and CLI.

    Args:
        log_file: Path to log file (default: logs/server.log)
        level: Level name (default: INFO)

    Behavior:
        - Sends every logger to both stdout and the log file
        - ISO format timestamps for consistency
        - Keeps SQL and access logs at WARNING unless DEBUG is requested
    """
    log_path = Path(log_file)
    log_path.parent.mkdir(parents=True, exist_ok=True)

    # ISO format: [YYYY-MM-DD HH:MM:SS]
    formatter = logging.Formatter(
        fmt="[%(asctime)s] %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    log_level = parse_log_level(level)

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)

    # Remove any existing handlers to avoid duplicates
    for handler in root_logger.handlers[:]:
        handler.close()
        root_logger.removeHandler(handler)

    stdout_handler = logging.StreamHandler(sys.stdout)
    stdout_handler.setLevel(log_level)
    stdout_handler.setFormatter(formatter)
    root_logger.addHandler(stdout_handler)

    file_handler = logging.FileHandler(log_path)
    file_handler.setLevel(log_level)
    file_handler.setFormatter(formatter)
    root_logger.addHandler(file_handler)

    if log_level > logging.DEBUG:
        for name in NOISY_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)


__all__ = ["LOG_LEVEL_MAP", "parse_log_level", "setup_server_logging"]
