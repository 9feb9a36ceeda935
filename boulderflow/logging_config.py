"""Logging setup shared by the client core and the functions service.

Records are emitted as JSON lines (python-json-logger) so the functions
service can ship them to a log collector; ``json_output=False`` switches to
a plain single-line layout for local runs.
"""

import logging
import sys
from typing import Any, Final

from pythonjsonlogger import jsonlogger

SERVICE_NAME: Final[str] = "boulderflow"

# Chatty dependencies kept at WARNING regardless of the configured level
QUIET_LOGGERS: Final[tuple[str, ...]] = (
    "httpx",
    "httpcore",
    "hpack",
    "uvicorn.access",
    "ultralytics",
)

_JSON_FORMAT = "%(timestamp)s %(level)s %(name)s %(message)s"
_PLAIN_FORMAT = "%(asctime)s %(levelname)-8s [%(name)s] %(message)s"


class CustomJsonFormatter(jsonlogger.JsonFormatter):
    """JSON formatter stamping service, level and logger on every record.

    Warnings and errors also carry the source location of the call.
    """

    def __init__(self, *args: Any, service: str = SERVICE_NAME, **kwargs: Any):
        super().__init__(*args, **kwargs)
        self.service = service

    def add_fields(
        self,
        log_record: dict[str, Any],
        record: logging.LogRecord,
        message_dict: dict[str, Any],
    ) -> None:
        super().add_fields(log_record, record, message_dict)

        log_record["timestamp"] = self.formatTime(record)
        log_record["level"] = record.levelname
        log_record["logger"] = record.name
        log_record["service"] = self.service

        if record.levelno >= logging.WARNING:
            log_record["location"] = f"{record.pathname}:{record.lineno}"
            log_record["function"] = record.funcName


def configure_logging(log_level: str = "INFO", json_output: bool = True) -> None:
    """Install a single stdout handler on the root logger.

    Args:
        log_level: Level name; unknown names fall back to INFO.
        json_output: JSON lines when True, plain text otherwise.
    """
    level = getattr(logging, log_level.upper(), logging.INFO)

    formatter: logging.Formatter
    if json_output:
        formatter = CustomJsonFormatter(_JSON_FORMAT, datefmt="%Y-%m-%dT%H:%M:%S%z")
    else:
        formatter = logging.Formatter(_PLAIN_FORMAT, datefmt="%H:%M:%S")

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level)
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers.clear()
    root_logger.addHandler(handler)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    """Module logger; pass ``extra={...}`` for structured context.

    Example:
        >>> logger = get_logger(__name__)
        >>> logger.info("Loaded locations", extra={"count": 3})
    """
    return logging.getLogger(name)
