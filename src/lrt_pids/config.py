"""
Global configuration for PIDS nodes.

This module contains environment-specific settings and the logging setup
shared by the publisher and subscriber entry points.
"""

import logging
import os

_SUPPORTED_PIDS_ENVS: list[str] = ["prod", "test"]

PIDS_ENV = os.environ.get("LRT_PIDS_ENV", "prod").lower()
"""The environment flag ('prod' or 'test'). Defaults to 'prod'."""

if PIDS_ENV not in _SUPPORTED_PIDS_ENVS:
    raise ValueError(
        f"Invalid LRT_PIDS_ENV environment variable: '{PIDS_ENV}'. "
        f"Supported values: {_SUPPORTED_PIDS_ENVS}"
    )


class ColoredFormatter(logging.Formatter):
    """Formatter that colors the timestamp, level and logger name for terminals."""

    RESET = "\x1b[0m"
    TIME_COLOR = "\x1b[38;5;51m"
    NAME_COLOR = "\x1b[38;5;39m"

    LEVEL_COLORS: dict[int, str] = {
        logging.DEBUG: "\x1b[38;5;244m",
        logging.INFO: "\x1b[38;5;40m",
        logging.WARNING: "\x1b[38;5;220m",
        logging.ERROR: "\x1b[38;5;196m",
        logging.CRITICAL: "\x1b[38;5;196;1m",
    }

    def _paint(self, color: str, text: str) -> str:
        return f"{color}{text}{self.RESET}"

    def format(self, record: logging.LogRecord) -> str:
        """Render `time LEVEL logger: message` with ANSI colors."""
        level_color = self.LEVEL_COLORS.get(record.levelno, self.RESET)
        parts = (
            self._paint(self.TIME_COLOR, self.formatTime(record, self.datefmt)),
            self._paint(level_color, f"{record.levelname:8}"),
            self._paint(self.NAME_COLOR, record.name) + ":",
            record.getMessage(),
        )
        return " ".join(parts)


def setup_logging(verbose: bool = False, no_color: bool = False) -> None:
    """Configure root logging for a node with optional colors."""
    level = logging.DEBUG if verbose else logging.INFO

    handler = logging.StreamHandler()
    handler.setLevel(level)

    if no_color:
        formatter = logging.Formatter(
            "%(asctime)s %(levelname)-8s %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
    else:
        formatter = ColoredFormatter(datefmt="%Y-%m-%d %H:%M:%S")

    handler.setFormatter(formatter)

    root = logging.getLogger()
    root.setLevel(level)
    root.addHandler(handler)

    # aioquic logs every packet at DEBUG.
    if not verbose:
        logging.getLogger("quic").setLevel(logging.WARNING)
