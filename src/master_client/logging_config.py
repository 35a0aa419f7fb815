"""Logging configuration for processes embedding the master client."""

from __future__ import annotations

import json
import logging
import os
import sys
from datetime import datetime
from typing import TextIO

from opentelemetry import trace

DEFAULT_LOG_FORMAT = (
    "%(asctime)s - %(levelname)s - [%(client_name)s] - [%(name)s] - "
    "[%(module)s.%(funcName)s:%(lineno)d] - %(message)s"
)

LOG_LEVELS = {
    "CRITICAL": logging.CRITICAL,
    "ERROR": logging.ERROR,
    "WARNING": logging.WARNING,
    "INFO": logging.INFO,
    "DEBUG": logging.DEBUG,
    "NOTSET": logging.NOTSET,
}

DEFAULT_LOG_LEVEL = "INFO"
LOG_OFF_LEVEL = "OFF"  # Special string to turn off logging

# Attributes set by the per-attempt RPC logger
RPC_RECORD_FIELDS = ("operation", "attempt", "outcome")


class ClientNameFilter(logging.Filter):
    """Filter to inject the client name into log records.

    Records that already name their client, such as the per-attempt lines of
    a client built with its own ``client_name``, keep that name.
    """

    def __init__(self, client_name: str) -> None:
        super().__init__()
        self.client_name = client_name

    def filter(self, record: logging.LogRecord) -> bool:
        if getattr(record, "client_name", None) is None:
            record.client_name = self.client_name
        return True


class TraceContextFilter(logging.Filter):
    """Filter to inject trace context into log records."""

    def filter(self, record: logging.LogRecord) -> bool:
        """Add trace_id and span_id to log record if available."""
        current_span = trace.get_current_span()
        if current_span and current_span.is_recording():
            span_context = current_span.get_span_context()
            record.trace_id = format(span_context.trace_id, "032x")
            record.span_id = format(span_context.span_id, "016x")
        else:
            record.trace_id = None
            record.span_id = None
        return True


class JSONFormatter(logging.Formatter):
    """JSON formatter for structured logging with trace correlation."""

    def format(self, record: logging.LogRecord) -> str:
        log_entry = {
            "timestamp": datetime.fromtimestamp(record.created).isoformat(),
            "level": record.levelname,
            "client": getattr(record, "client_name", "unknown"),
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        if getattr(record, "trace_id", None):
            log_entry["trace_id"] = record.trace_id
        if getattr(record, "span_id", None):
            log_entry["span_id"] = record.span_id

        for key in RPC_RECORD_FIELDS:
            value = getattr(record, key, None)
            if value is not None:
                log_entry[key] = value

        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_entry)


def setup_logging(
    client_name: str = "master-client",
    log_level_env_var: str = "MASTER_CLIENT_LOG_LEVEL",
    log_format_env_var: str = "MASTER_CLIENT_LOG_FORMAT",
    stream: TextIO | None = None,
) -> None:
    """
    Configure root logging for a process that uses the master client.

    Args:
        client_name: Name stamped on every record as ``client_name``
        log_level_env_var: Environment variable to read the log level from
        log_format_env_var: Environment variable to read the log format from;
            the value ``json`` selects structured output
        stream: Stream for the console handler, stdout by default
    """
    log_level_str = os.environ.get(log_level_env_var, DEFAULT_LOG_LEVEL).upper()
    log_format_str = os.environ.get(log_format_env_var, DEFAULT_LOG_FORMAT)

    root_logger = logging.getLogger()

    # Remove any existing handlers to prevent duplicate messages
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    if log_level_str == LOG_OFF_LEVEL:
        root_logger.setLevel(logging.CRITICAL + 1)
        return

    numeric_log_level = LOG_LEVELS.get(log_level_str, logging.INFO)
    root_logger.setLevel(numeric_log_level)

    console_handler = logging.StreamHandler(stream or sys.stdout)
    if log_format_str.lower() == "json":
        formatter: logging.Formatter = JSONFormatter()
    else:
        formatter = logging.Formatter(log_format_str)
    console_handler.setFormatter(formatter)

    console_handler.addFilter(ClientNameFilter(client_name))
    console_handler.addFilter(TraceContextFilter())
    root_logger.addHandler(console_handler)

    # gRPC core is chatty at debug
    logging.getLogger("grpc").setLevel(max(numeric_log_level, logging.INFO))

    logger = logging.getLogger(__name__)
    logger.info("Logging configured. Client: %s, Level: %s", client_name, log_level_str)


def get_logger(name: str | None = None) -> logging.Logger:
    """
    Get a logger instance for the module.

    Args:
        name: Logger name (typically __name__)

    Returns:
        Configured logger instance
    """
    return logging.getLogger(name or __name__)
