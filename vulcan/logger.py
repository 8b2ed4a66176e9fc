"""
logger.py

Responsibility: Configure stdlib logging for the vulcan CLI.

Build output and `>>` status lines go to stdout through `ProgressSink`; log
records stay on stderr.
"""

from __future__ import annotations

import logging
import os
import sys
from typing import Optional, TextIO, Union


def _level_number(level: Union[int, str], default: int = logging.WARNING) -> int:
    if isinstance(level, int):
        return level
    value = getattr(logging, level.strip().upper(), None)
    return value if isinstance(value, int) else default


def setup_logging(
    level: Union[int, str] = logging.WARNING, stream: TextIO = sys.stderr, fmt: Optional[str] = None
) -> None:
    """
    Sets up the root logger with a stream handler and basic formatting.
    Does nothing if handlers are already configured.
    """
    level = _level_number(level)

    root_logger = logging.getLogger()
    if not root_logger.hasHandlers():
        if fmt is None:
            if level == logging.DEBUG:
                fmt = "%(asctime)s | %(levelname)-5s | %(name)s | %(filename)s:%(lineno)d | %(message)s"
            else:
                fmt = "%(asctime)s | %(levelname)-5s | %(message)s"

        handler = logging.StreamHandler(stream)
        handler.setFormatter(logging.Formatter(fmt))
        root_logger.addHandler(handler)

    root_logger.setLevel(level)

    # Optionally allow log level override via env var; unknown names keep `level`
    env_level = os.environ.get("LOG_LEVEL")
    if env_level:
        root_logger.setLevel(_level_number(env_level, default=level))

    # urllib3 logs every connection at DEBUG
    logging.getLogger("urllib3").setLevel(max(root_logger.level, logging.INFO))
