"""Structured JSON logging configuration.

This module configures structured logging for the service, outputting logs
in JSON format suitable for log aggregation systems. Every record carries
the id of the request being served, when there is one.
"""

import logging
import sys
from contextvars import ContextVar
from typing import Any

from pythonjsonlogger import jsonlogger

# Id of the request handled by the current task, set by the request-id middleware
request_id_var: ContextVar[str | None] = ContextVar("request_id", default=None)


class CustomJsonFormatter(jsonlogger.JsonFormatter):
    """JSON formatter adding timestamp, level, logger and request id.

    Warnings and above also carry the source location.
    """

    def add_fields(
        self,
        log_record: dict[str, Any],
        record: logging.LogRecord,
        message_dict: dict[str, Any],
    ) -> None:
        """Add custom fields to the log record.

        Args:
            log_record: Dictionary to populate with log fields.
            record: The original LogRecord.
            message_dict: Message dictionary from the record.
        """
        super().add_fields(log_record, record, message_dict)

        log_record["timestamp"] = self.formatTime(record, self.datefmt)
        log_record["level"] = record.levelname
        log_record["logger"] = record.name

        request_id = request_id_var.get()
        if request_id is not None and "request_id" not in log_record:
            log_record["request_id"] = request_id

        if record.levelno >= logging.WARNING:
            log_record["location"] = f"{record.pathname}:{record.lineno}"
            log_record["function"] = record.funcName


def configure_logging(log_level: str = "INFO", json_output: bool = True) -> None:
    """Configure logging for the service.

    Args:
        log_level: Minimum log level to capture (DEBUG, INFO, WARNING,
            ERROR, CRITICAL). Unknown names fall back to INFO.
        json_output: If True, output JSON. If False, use a human-readable
            format for local development.

    Example:
        >>> configure_logging("DEBUG", json_output=False)
        >>> logging.info("Service started")
    """
    numeric_level = getattr(logging, log_level.upper(), logging.INFO)

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(numeric_level)

    if json_output:
        formatter: logging.Formatter = CustomJsonFormatter(
            "%(timestamp)s %(level)s %(name)s %(message)s",
            datefmt="%Y-%m-%dT%H:%M:%S%z",
        )
    else:
        formatter = logging.Formatter(
            "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )

    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.setLevel(numeric_level)

    # Remove existing handlers to avoid duplicates
    root_logger.handlers.clear()
    root_logger.addHandler(handler)

    # Access logging is done by our own middleware
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    """Get a logger instance with the given name.

    Args:
        name: Name for the logger, typically __name__.

    Returns:
        Logger instance.
    """
    return logging.getLogger(name)
