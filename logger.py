"""
logger.py

Responsibility: Configures Python logging for the whole process: a stdout
stream plus a daily-rotated log file keeping one week of history.
Does NOT: write application messages itself; every module logs through its
own logging.getLogger(__name__).
"""

from __future__ import annotations

import logging
import logging.handlers
import os
import sys

LOG_FILE_NAME = "ddns.log"

# Rotated files older than this many days are deleted by the handler
DAYS_TO_KEEP = 7

_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"
_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def setup_logging(log_dir: str | None = "log", verbose: bool = False) -> logging.Logger:
    """
    Installs the stdout and file handlers on the root logger.

    Safe to call more than once: handlers installed by a previous call are
    replaced, not duplicated.

    Args:
        log_dir: Directory for ddns.log; None disables the file handler.
        verbose: Log at DEBUG instead of INFO.

    Returns:
        The configured root logger.
    """
    root = logging.getLogger()
    root.setLevel(logging.DEBUG if verbose else logging.INFO)

    for handler in list(root.handlers):
        if getattr(handler, "_ddns_handler", False):
            root.removeHandler(handler)
            handler.close()

    formatter = logging.Formatter(_FORMAT, datefmt=_DATE_FORMAT)

    stream_handler = logging.StreamHandler(sys.stdout)
    stream_handler.setFormatter(formatter)
    stream_handler._ddns_handler = True  # type: ignore[attr-defined]
    root.addHandler(stream_handler)

    if log_dir:
        os.makedirs(log_dir, exist_ok=True)
        file_handler = logging.handlers.TimedRotatingFileHandler(
            os.path.join(log_dir, LOG_FILE_NAME),
            when="midnight",
            backupCount=DAYS_TO_KEEP,
            encoding="utf-8",
        )
        file_handler.setFormatter(formatter)
        file_handler._ddns_handler = True  # type: ignore[attr-defined]
        root.addHandler(file_handler)

    # httpx logs every request at INFO; keep that for --verbose only
    logging.getLogger("httpx").setLevel(logging.DEBUG if verbose else logging.WARNING)
    logging.getLogger("apscheduler").setLevel(logging.INFO if verbose else logging.WARNING)

    return root
