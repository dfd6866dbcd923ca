"""
Logging setup for Closet Swap.

All subsystem loggers hang off the ``closet`` root logger:
- closet.store, closet.settlement, closet.moderation, closet.ranking
- closet.assistant, closet.scheduler, closet.storage.*

Console output is colored with colorlog and goes to stderr so that
command output (e.g. ``closet browse --json``) stays machine readable.
"""

import logging
import os
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

import colorlog

ROOT_LOGGER = "closet"
LOG_FILE = "closet.log"

CONSOLE_FORMAT = "%(log_color)s%(asctime)s [%(name)s] %(levelname)-8s%(reset)s %(message)s"
FILE_FORMAT = "%(asctime)s [%(name)s] %(levelname)-8s %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

LOG_COLORS = {
    "DEBUG": "cyan",
    "INFO": "green",
    "WARNING": "yellow",
    "ERROR": "red",
    "CRITICAL": "red,bg_white",
}


def _level_from_env(default: int) -> int:
    """CLOSET_LOG_LEVEL=DEBUG|INFO|... overrides the default level."""
    name = os.environ.get("CLOSET_LOG_LEVEL", "").strip().upper()
    level = logging.getLevelName(name) if name else default
    return level if isinstance(level, int) else default


class ClosetLogger:
    """Owns the handlers of the ``closet`` logger tree"""

    _configured = False
    _log_dir: Optional[Path] = None

    @classmethod
    def setup(
        cls,
        level: int = logging.INFO,
        log_dir: Optional[str] = None,
        log_to_file: bool = False,
    ):
        """
        Install console (and optionally file) handlers.

        Calling it again replaces the handlers, so a CLI flag such as
        ``--debug`` takes effect even after a module logged at import.

        Args:
            level: Logging level (DEBUG, INFO, WARNING, ERROR)
            log_dir: Directory for closet.log. If None, uses ./logs
            log_to_file: Also write a rotating log file
        """
        root = logging.getLogger(ROOT_LOGGER)
        root.setLevel(level)
        for handler in list(root.handlers):
            root.removeHandler(handler)
            handler.close()
        console = colorlog.StreamHandler()
        console.setLevel(level)
        console.setFormatter(
            colorlog.ColoredFormatter(CONSOLE_FORMAT, datefmt=DATE_FORMAT, log_colors=LOG_COLORS)
        )
        root.addHandler(console)

        if log_to_file:
            cls._log_dir = Path(log_dir) if log_dir else Path("logs")
            cls._log_dir.mkdir(exist_ok=True, parents=True)
            file_handler = RotatingFileHandler(
                cls._log_dir / LOG_FILE, maxBytes=5 * 1024 * 1024, backupCount=3
            )
            file_handler.setLevel(level)
            file_handler.setFormatter(logging.Formatter(FILE_FORMAT, datefmt=DATE_FORMAT))
            root.addHandler(file_handler)

        cls._configured = True

    @classmethod
    def get_logger(cls, name: str) -> logging.Logger:
        """
        Logger of one subsystem, configuring defaults on first use.

        Args:
            name: Subsystem name (e.g., 'store', 'settlement', 'assistant')
        """
        if not cls._configured:
            cls.setup(level=_level_from_env(logging.INFO))

        return logging.getLogger(f"{ROOT_LOGGER}.{name}")


def get_logger(name: str) -> logging.Logger:
    return ClosetLogger.get_logger(name)


def setup_logging(
    level: Optional[int] = None,
    log_dir: Optional[str] = None,
    log_to_file: bool = False,
):
    """Configure logging for an entry point. level None = CLOSET_LOG_LEVEL or INFO"""
    if level is None:
        level = _level_from_env(logging.INFO)
    ClosetLogger.setup(level=level, log_dir=log_dir, log_to_file=log_to_file)
