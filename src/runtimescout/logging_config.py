"""Logging setup for the runtimescout command line.

Library modules only call ``logging.getLogger(__name__)``; handlers are
attached here, once, by the application entry point.
"""

from __future__ import annotations

import json
import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional, TextIO, Union

LOGGER_NAME = "runtimescout"

PLAIN_FORMAT = "%(levelname)s: %(message)s"
DETAILED_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"

DEFAULT_MAX_BYTES = 10 * 1024 * 1024
DEFAULT_BACKUP_COUNT = 3


class ColorLevelFormatter(logging.Formatter):
    """Plain formatter that wraps the level name in ANSI colour codes."""

    COLORS = {
        logging.DEBUG: "\033[36m",
        logging.INFO: "\033[32m",
        logging.WARNING: "\033[33m",
        logging.ERROR: "\033[31m",
        logging.CRITICAL: "\033[1;31m",
    }
    RESET = "\033[0m"

    def format(self, record: logging.LogRecord) -> str:
        text = super().format(record)
        color = self.COLORS.get(record.levelno)
        if color is None or not text.startswith(record.levelname):
            return text
        return f"{color}{record.levelname}{self.RESET}{text[len(record.levelname):]}"


class JsonLineFormatter(logging.Formatter):
    """Render each record as one JSON object per line."""

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "time": self.formatTime(record),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, sort_keys=True)


def setup_logging(
    level: int = logging.WARNING,
    *,
    structured: bool = False,
    colors: bool = False,
    log_file: Optional[Union[str, Path]] = None,
    stream: Optional[TextIO] = None,
) -> logging.Logger:
    """Configure the ``runtimescout`` logger tree.

    Calling this again replaces the handlers installed by a previous call.

    Args:
        level: Threshold applied to the logger and its handlers.
        structured: Emit JSON lines instead of plain text.
        colors: Colour console level names. Ignored for structured output
            and never applied to the log file.
        log_file: Optional path for an additional rotating log file.
        stream: Console stream, ``sys.stderr`` by default.
    """

    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(level)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    logger.propagate = False

    console = logging.StreamHandler(stream if stream is not None else sys.stderr)
    console.setLevel(level)
    if structured:
        console.setFormatter(JsonLineFormatter())
    elif colors:
        console.setFormatter(ColorLevelFormatter(PLAIN_FORMAT))
    else:
        console.setFormatter(logging.Formatter(PLAIN_FORMAT))
    logger.addHandler(console)

    if log_file:
        path = Path(log_file).expanduser()
        path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            path,
            maxBytes=DEFAULT_MAX_BYTES,
            backupCount=DEFAULT_BACKUP_COUNT,
            encoding="utf-8",
        )
        file_handler.setLevel(level)
        file_handler.setFormatter(
            JsonLineFormatter() if structured else logging.Formatter(DETAILED_FORMAT)
        )
        logger.addHandler(file_handler)

    return logger


__all__ = ["ColorLevelFormatter", "JsonLineFormatter", "LOGGER_NAME", "setup_logging"]
