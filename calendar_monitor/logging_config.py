"""Central logging configuration for calendar_monitor.

Installs a single colorized console handler on the root logger and keeps the
HTTP libraries quiet so the once-per-second push loop does not flood the log.
"""

import logging
import os
import sys
from typing import Optional

from colorlog import ColoredFormatter

DEBUG_ENV = "CALENDAR_MONITOR_DEBUG"
LOG_LEVEL_ENV = "CALENDAR_MONITOR_LOG_LEVEL"

LOG_FORMAT = "%(asctime)s %(log_color)s%(levelname)-7s%(reset)s %(name)s: %(message)s"

LOG_COLORS = {
    "DEBUG": "cyan",
    "INFO": "green",
    "WARNING": "yellow",
    "ERROR": "red",
    "CRITICAL": "bold_red",
}

NOISY_LOGGERS = ("httpx", "httpcore", "aiohttp.access")


def _resolve_level(level_name: Optional[str]) -> int:
    if os.environ.get(DEBUG_ENV, "").strip().lower() in ("1", "true", "yes", "on"):
        return logging.DEBUG

    level_name = level_name or os.environ.get(LOG_LEVEL_ENV)
    if isinstance(level_name, str):
        level = logging.getLevelName(level_name.upper())
        if isinstance(level, int):
            return level
    return logging.INFO


def init_logging(level_name: Optional[str] = None) -> None:
    """Initialize root logging to stream to stderr.

    CALENDAR_MONITOR_DEBUG (truthy) forces DEBUG; otherwise ``level_name`` or
    CALENDAR_MONITOR_LOG_LEVEL picks the level, defaulting to INFO.
    """
    root = logging.getLogger()
    # Only add a handler once to avoid duplicate output
    if not root.handlers:
        handler = logging.StreamHandler(stream=sys.stderr)
        handler.setFormatter(ColoredFormatter(LOG_FORMAT, datefmt="%H:%M:%S", log_colors=LOG_COLORS))
        root.addHandler(handler)

    level = _resolve_level(level_name)
    root.setLevel(level)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    logging.getLogger(__name__).debug(
        "Logging initialized at level %s", logging.getLevelName(level)
    )
