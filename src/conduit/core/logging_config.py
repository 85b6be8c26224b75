"""Centralized logging configuration for Conduit.

Every module logs through ``logging.getLogger(__name__)`` using
``event_name: key=value`` messages. This module decides where those
records go: console (text or JSON) and an optional log file.

Usage:
    from conduit.core.logging_config import configure_logging, get_logger

    # Configure once at application startup
    configure_logging(level="DEBUG", format="json")

    # Get loggers in modules
    logger = get_logger(__name__)

Environment Variables:
    CONDUIT_LOG_LEVEL: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    CONDUIT_LOG_FORMAT: Output format ("text" or "json")
    CONDUIT_LOG_FILE: Optional log file path
"""

from __future__ import annotations

import json
import logging
import os
import sys
from datetime import datetime
from typing import Any, Literal

TEXT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
TEXT_FORMAT_WITH_MS = "%(asctime)s.%(msecs)03d - %(name)s - %(levelname)s - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

PACKAGE_LOGGER = "conduit"

# LogRecord attributes that are not caller-supplied extras
_STANDARD_ATTRS = frozenset(
    vars(logging.LogRecord("", 0, "", 0, "", None, None)).keys() | {"message", "asctime"}
)

_configured = False


class JsonFormatter(logging.Formatter):
    """JSON log formatter for structured logging.

    Outputs one object per line:
    {
        "timestamp": "2026-10-19T14:30:00.123456",
        "level": "DEBUG",
        "logger": "conduit.core.session.orchestrator",
        "message": "process_spawned: session_id=chat-1, pid=4242",
        "session_id": "chat-1"
    }

    ``session_id`` is lifted to the top level when passed via ``extra``;
    any other extras land under "extra".
    """

    def format(self, record: logging.LogRecord) -> str:
        log_data: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        extra = {k: v for k, v in record.__dict__.items() if k not in _STANDARD_ATTRS}
        session_id = extra.pop("session_id", None)
        if session_id is not None:
            log_data["session_id"] = session_id
        if extra:
            log_data["extra"] = extra

        return json.dumps(log_data, default=str)


def _make_formatter(format: str, include_ms: bool) -> logging.Formatter:
    if format == "json":
        return JsonFormatter()
    fmt = TEXT_FORMAT_WITH_MS if include_ms else TEXT_FORMAT
    return logging.Formatter(fmt, datefmt=DATE_FORMAT)


def configure_logging(
    level: str | None = None,
    format: Literal["text", "json"] | None = None,
    file_path: str | None = None,
    include_ms: bool = True,
    force: bool = False,
) -> None:
    """Configure logging for the application.

    Subsequent calls are ignored unless force=True. Arguments win over
    CONDUIT_LOG_* environment variables, which win over defaults.

    Args:
        level: Log level. Defaults to CONDUIT_LOG_LEVEL or "INFO".
        format: Output format. Defaults to CONDUIT_LOG_FORMAT or "text".
        file_path: Optional log file. Defaults to CONDUIT_LOG_FILE.
        include_ms: Include milliseconds in text timestamps.
        force: Reconfigure even if already configured.

    Raises:
        ValueError: If the level name is unknown.
    """
    global _configured
    if _configured and not force:
        return

    level = (level or os.environ.get("CONDUIT_LOG_LEVEL", "INFO")).upper()
    format = format or os.environ.get("CONDUIT_LOG_FORMAT", "text")  # type: ignore[assignment]
    file_path = file_path or os.environ.get("CONDUIT_LOG_FILE")

    numeric_level = logging.getLevelName(level)
    if not isinstance(numeric_level, int):
        raise ValueError(f"Unknown log level: {level}")

    root_logger = logging.getLogger()
    root_logger.setLevel(numeric_level)
    root_logger.handlers.clear()

    formatter = _make_formatter(format or "text", include_ms)

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    if file_path:
        file_handler = logging.FileHandler(file_path)
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)

    _configured = True


def get_logger(name: str) -> logging.Logger:
    """Get a logger with the given name (typically __name__)."""
    return logging.getLogger(name)


def set_level(level: str, logger_name: str | None = PACKAGE_LOGGER) -> None:
    """Set log level for a logger.

    Args:
        level: Log level name.
        logger_name: Logger name. Defaults to the package logger;
            None for the root logger.
    """
    logging.getLogger(logger_name).setLevel(level.upper())


def add_file_handler(
    file_path: str,
    level: str = "DEBUG",
    json_format: bool = False,
    logger_name: str | None = PACKAGE_LOGGER,
) -> logging.FileHandler:
    """Add a file handler, e.g. to capture one run's debug trace.

    Args:
        file_path: Path to log file.
        level: Log level for this handler.
        json_format: Use JSON format.
        logger_name: Logger to attach to. Defaults to the package logger.

    Returns:
        The created file handler (remove it with logger.removeHandler).
    """
    handler = logging.FileHandler(file_path)
    handler.setLevel(level.upper())
    handler.setFormatter(_make_formatter("json" if json_format else "text", include_ms=True))
    logging.getLogger(logger_name).addHandler(handler)
    return handler
