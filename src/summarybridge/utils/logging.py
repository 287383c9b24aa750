"""Logging setup for the summarybridge command line.

Records go to a rotating ``summarybridge.log`` kept in a ``logs`` folder
beside the persisted state file, so ``state_path`` relocates everything the
client writes to disk. Stdout is left to command output; the console handler
writes to stderr.
"""

from __future__ import annotations

import logging
import logging.handlers
import sys
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:  # pragma: no cover
    from ..services.settings import Settings

__all__ = ["LOG_FILENAME", "configure_from_settings", "log_path_for"]

LOG_FILENAME = "summarybridge.log"
_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
_QUIET_LOGGERS: tuple[str, ...] = ("asyncio", "httpx", "httpcore", "markdown_it")
_installed: list[logging.Handler] = []


def log_path_for(settings: Settings) -> Path:
    return settings.resolved_state_path().parent / "logs" / LOG_FILENAME


def configure_from_settings(settings: Settings, *, debug: bool = False) -> Path:
    """Route root logging to the file that belongs to ``settings``.

    DEBUG records are kept when ``debug`` or ``settings.debug_logging`` is
    set, otherwise only warnings. A repeat call swaps out the handlers added
    by the previous one and leaves handlers installed by anyone else alone.
    """

    level = logging.DEBUG if debug or settings.debug_logging else logging.WARNING
    path = log_path_for(settings)
    path.parent.mkdir(parents=True, exist_ok=True)

    formatter = logging.Formatter(_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")
    file_handler = logging.handlers.RotatingFileHandler(
        path, maxBytes=1_000_000, backupCount=3, encoding="utf-8"
    )
    console_handler = logging.StreamHandler(sys.stderr)

    root = logging.getLogger()
    for handler in _installed:
        root.removeHandler(handler)
        handler.close()
    _installed[:] = [file_handler, console_handler]
    for handler in _installed:
        handler.setLevel(level)
        handler.setFormatter(formatter)
        root.addHandler(handler)
    root.setLevel(level)

    logging.captureWarnings(True)
    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))
    return path
