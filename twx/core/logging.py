"""Structured logging for the TWX API and CLI.

Services log events by name (``transfer_completed``, ``mapping_linked``)
with keyword context; the request middleware adds ``request_id`` through
contextvars so every line of one request can be correlated.
"""

import logging
import os
import sys
from pathlib import Path
from typing import Any

import structlog

LOG_FILE = Path("logs/twx.log")

# Library loggers that drown out workflow events at INFO
_QUIET_LOGGERS = ("sqlalchemy.engine", "aiosqlite", "asyncio")


def _renderer(json_logs: bool) -> Any:
    if json_logs:
        return structlog.processors.JSONRenderer()
    return structlog.dev.ConsoleRenderer()


def configure_logging(level: str | None = None, json_logs: bool | None = None) -> None:
    """Configure structlog and route stdlib logging through the same handlers.

    Args:
        level: Log level name; defaults to ``LOG_LEVEL`` or INFO
        json_logs: One JSON object per line; defaults to ``JSON_LOGS``
    """
    level = (level or os.getenv("LOG_LEVEL", "INFO")).upper()
    if json_logs is None:
        json_logs = os.getenv("JSON_LOGS", "false").lower() == "true"

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            _renderer(json_logs),
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    if LOG_FILE.parent.is_dir():
        handlers.append(logging.FileHandler(LOG_FILE))

    logging.basicConfig(format="%(message)s", handlers=handlers, level=level)

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(logging.WARNING, logging.getLevelName(level)))
