from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import Optional

from loguru import logger


_configured = False

DEFAULT_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
    "<level>{level: <8}</level> | "
    "<magenta>session={extra[session_id]}</magenta> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - "
    "<level>{message}</level>"
)

_ALWAYS_SHOWN = ("WARNING", "ERROR", "CRITICAL")


class InterceptHandler(logging.Handler):
    """Route stdlib `logging` records (bus, action log, config) into loguru."""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            level = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        frame, depth = logging.currentframe(), 2
        while frame and frame.f_code.co_filename == logging.__file__:
            frame = frame.f_back
            depth += 1

        logger.opt(depth=depth, exception=record.exc_info).log(level, record.getMessage())


def setup_logging(
    *,
    level: str = "INFO",
    force: bool = False,
    session_id: Optional[int] = None,
    log_file: Optional[str | Path] = None,
    fmt: Optional[str] = None,
) -> None:
    """
    Install the observer's loguru sinks (stderr, optionally a rotating file).

    - session_id: follow one coaching session; records bound to other
      sessions are hidden unless they are warnings or worse.
    - log_file: also write plain-text logs there, rotated at 10 MB.

    Records that were never bound to a session render as `session=-`.
    """
    global _configured

    if _configured and not force:
        return

    logger.remove()
    logger.configure(extra={"session_id": "-"})
    min_level = logger.level(level.upper()).no

    def _filter(record) -> bool:
        if record["level"].no < min_level:
            return False
        if session_id is None or record["level"].name in _ALWAYS_SHOWN:
            return True
        return record["extra"].get("session_id") == session_id

    logger.add(sys.stderr, level=level.upper(), colorize=True, filter=_filter, format=fmt or DEFAULT_FORMAT)
    if log_file is not None:
        logger.add(
            str(log_file),
            level=level.upper(),
            filter=_filter,
            format=fmt or DEFAULT_FORMAT,
            colorize=False,
            rotation="10 MB",
            enqueue=True,
        )

    logging.basicConfig(handlers=[InterceptHandler()], level=0, force=True)
    _configured = True
