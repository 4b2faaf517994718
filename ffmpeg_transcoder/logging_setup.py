"""Console logging setup for the transcoder (plain text or JSON lines)."""

import json
import logging
import math
import sys
from datetime import datetime
from typing import Any, Optional

TEXT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

# LogRecord attributes that are not user-supplied ``extra`` fields
_RESERVED_ATTRS = frozenset(
    [
        "name",
        "msg",
        "args",
        "created",
        "filename",
        "funcName",
        "levelname",
        "levelno",
        "lineno",
        "module",
        "msecs",
        "message",
        "pathname",
        "process",
        "processName",
        "relativeCreated",
        "thread",
        "threadName",
        "taskName",
        "exc_info",
        "exc_text",
        "stack_info",
    ]
)


class JsonFormatter(logging.Formatter):
    """JSON log formatter for transcoder logs.

    Emits one object per record: timestamp, level, logger, thread and message,
    then any ``extra`` fields (``frame``, ``completion``, ...). Progress
    callbacks run on the ``ffmpeg-output`` reader thread, so the thread name
    tells reader output apart from the caller's own messages. Non-finite
    floats, such as the unbounded completion of an input with unknown
    duration, are written as strings so every line stays valid JSON.
    """

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.fromtimestamp(record.created).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "thread": record.threadName,
            "message": record.getMessage(),
        }

        for key, value in record.__dict__.items():
            if key not in _RESERVED_ATTRS:
                log_data[key] = _json_value(value)

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data, default=str)


def _json_value(value: Any) -> Any:
    if isinstance(value, float) and not math.isfinite(value):
        return str(value)
    return value


def configure_logging(
    level: str = "INFO",
    json_format: bool = False,
    stream: Optional[object] = None,
) -> logging.Logger:
    """
    Install a single console handler on the ``ffmpeg_transcoder`` logger.

    Args:
        level: Log level name (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        json_format: Emit JSON lines instead of plain text
        stream: Output stream (defaults to stderr)

    Returns:
        The configured package logger

    Raises:
        ValueError: If the level name is unknown
    """
    numeric_level = logging.getLevelName(level.upper())
    if not isinstance(numeric_level, int):
        raise ValueError(f"Invalid log level: {level}")

    logger = logging.getLogger("ffmpeg_transcoder")
    logger.setLevel(numeric_level)
    logger.handlers.clear()  # Remove any existing handlers

    handler = logging.StreamHandler(stream or sys.stderr)
    handler.setLevel(numeric_level)
    handler.setFormatter(JsonFormatter() if json_format else logging.Formatter(TEXT_FORMAT))
    logger.addHandler(handler)

    return logger
