"""
Trello Sync — Logging setup.

``configure_logging()`` runs once when ``trello_sync.app`` is imported.  Level,
format and the list of third-party loggers to hold at WARNING all come from
``trello_sync.config`` (``LOG_LEVEL``, ``LOG_FORMAT``, ``QUIET_LOGGERS``).
"""

from __future__ import annotations

import logging
import sys
from typing import Iterable, Optional

from trello_sync import config

_CONFIGURED = False


def _resolve_level(name: Optional[str]) -> int:
    level = logging.getLevelName((name or config.LOG_LEVEL).upper())
    return level if isinstance(level, int) else logging.INFO


def configure_logging(
    level: Optional[str] = None,
    quiet: Optional[Iterable[str]] = None,
) -> None:
    """Install a stdout handler on the root logger, once per process.

    ``level`` and ``quiet`` override ``config.LOG_LEVEL`` and
    ``config.QUIET_LOGGERS``.  An unknown level name falls back to INFO.
    """
    global _CONFIGURED
    if _CONFIGURED:
        return

    root = logging.getLogger()
    root.setLevel(_resolve_level(level))

    # uvicorn may already have attached its handlers
    if not root.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter(config.LOG_FORMAT, "%Y-%m-%d %H:%M:%S"))
        root.addHandler(handler)

    for name in (config.QUIET_LOGGERS if quiet is None else quiet):
        logging.getLogger(name).setLevel(logging.WARNING)

    _CONFIGURED = True


def reset_logging_for_tests() -> None:
    global _CONFIGURED
    _CONFIGURED = False
