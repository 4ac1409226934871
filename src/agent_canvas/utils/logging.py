"""
Console + optional file logging for the relay and the command tools.
"""

from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import Optional

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def setup_logging(
    verbose: bool = False,
    log_file: Optional[str] = None,
    level: Optional[str] = None,
) -> logging.Logger:
    """
    Configure root logging.

    Args:
        verbose: DEBUG instead of INFO (overrides `level`).
        log_file: Also append to this file when given.
        level: Level name, e.g. "WARNING".

    Returns:
        The package logger.
    """
    if verbose:
        resolved = logging.DEBUG
    else:
        resolved = logging.getLevelName((level or "INFO").upper())
        if not isinstance(resolved, int):
            resolved = logging.INFO

    handlers: list[logging.Handler] = []

    console = logging.StreamHandler(sys.stdout)
    console.setFormatter(logging.Formatter(LOG_FORMAT))
    handlers.append(console)

    if log_file:
        try:
            Path(log_file).parent.mkdir(parents=True, exist_ok=True)
            file_handler = logging.FileHandler(log_file, mode="a")
            file_handler.setFormatter(logging.Formatter(LOG_FORMAT))
            handlers.append(file_handler)
        except OSError as e:
            print(f"Warning: could not set up file logging at {log_file}: {e}", file=sys.stderr)

    logging.basicConfig(level=resolved, format=LOG_FORMAT, handlers=handlers, force=True)

    logger = logging.getLogger("agent_canvas")
    logger.setLevel(resolved)
    return logger
