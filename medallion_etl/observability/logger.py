"""
Structured JSON logging for the medallion anomaly pipeline

Every stage run binds its job name and processing-log id into a run
context; records emitted while the context is active carry both fields,
so all lines of one Bronze->Silver or Silver->Gold run can be grepped
together in either output format.
"""
import logging
import os
import sys
import time
from contextvars import ContextVar
from typing import Any

from pythonjsonlogger import jsonlogger

DEFAULT_LOGGER_NAME = "medallion-etl"

LOG_LEVELS = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARNING": logging.WARNING,
    "WARN": logging.WARNING,
    "ERROR": logging.ERROR,
    "CRITICAL": logging.CRITICAL,
}

CONTEXT_FIELDS = ("job_name", "run_id", "source_file")

_run_context: ContextVar[dict[str, Any]] = ContextVar("medallion_run_context", default={})


def current_run_context() -> dict[str, Any]:
    return dict(_run_context.get())


class RunContextFilter(logging.Filter):
    """Copies the active run context onto each record without overriding explicit extras."""

    def filter(self, record: logging.LogRecord) -> bool:
        for key, value in _run_context.get().items():
            if not hasattr(record, key):
                setattr(record, key, value)
        return True


class CustomJsonFormatter(jsonlogger.JsonFormatter):
    """
    JSON formatter for pipeline records

    Adds: timestamp, level, logger, module and function. Run context
    fields arrive as record extras.
    """

    def add_fields(self, log_record: dict, record: logging.LogRecord, message_dict: dict) -> None:
        super().add_fields(log_record, record, message_dict)

        if not log_record.get("timestamp"):
            log_record["timestamp"] = self.formatTime(record, self.datefmt)

        if log_record.get("level"):
            log_record["level"] = log_record["level"].upper()
        else:
            log_record["level"] = record.levelname

        log_record["logger"] = record.name
        log_record["module"] = record.module
        log_record["function"] = record.funcName


class ContextTextFormatter(logging.Formatter):
    """Text format for local runs; appends the bound run context in brackets."""

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        context = " ".join(
            f"{field}={getattr(record, field)}" for field in CONTEXT_FIELDS if getattr(record, field, None)
        )
        return f"{line} [{context}]" if context else line


def setup_logger(
    name: str = DEFAULT_LOGGER_NAME,
    level: str | None = None,
    format_type: str | None = None,
) -> logging.Logger:
    """
    Setup and configure a logger

    Args:
        name: Logger name
        level: Log level (defaults to env var LOG_LEVEL, then INFO)
        format_type: "json" or "text" (defaults to env var LOG_FORMAT, then json)

    Returns:
        Configured logger instance
    """
    log_level_str = level or os.getenv("LOG_LEVEL", "INFO")
    log_level = LOG_LEVELS.get(log_level_str.upper(), logging.INFO)
    format_type = format_type or os.getenv("LOG_FORMAT", "json")

    logger = logging.getLogger(name)
    logger.setLevel(log_level)
    logger.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(log_level)
    handler.addFilter(RunContextFilter())

    if format_type == "json":
        formatter = CustomJsonFormatter(
            fmt="%(timestamp)s %(level)s %(logger)s %(module)s %(function)s %(message)s",
            datefmt="%Y-%m-%dT%H:%M:%S",
        )
    else:
        formatter = ContextTextFormatter(
            fmt="%(asctime)s - %(name)s - %(levelname)s - %(module)s:%(funcName)s - %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )

    handler.setFormatter(formatter)
    logger.addHandler(handler)
    logger.propagate = False

    return logger


def get_logger(name: str = DEFAULT_LOGGER_NAME) -> logging.Logger:
    """Return the named logger, configuring it from the environment on first use."""
    logger = logging.getLogger(name)
    if not logger.handlers:
        return setup_logger(name)
    return logger


class log_operation:
    """
    Context manager that logs start, completion or failure of a stage run
    and binds its context fields for every record logged inside it.

    Usage:
        with log_operation("bronze_to_silver_anomalies", logger=logger, run_id=run.id):
            ...
    """

    def __init__(self, operation_name: str, logger: logging.Logger | None = None, **context_fields):
        self.operation_name = operation_name
        self.logger = logger or get_logger()
        self.context_fields = {"job_name": operation_name, **context_fields}
        self.start_time: float | None = None
        self._token = None

    def __enter__(self):
        self._token = _run_context.set({**_run_context.get(), **self.context_fields})
        self.start_time = time.time()
        self.logger.info(f"Starting: {self.operation_name}")
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        duration = round(time.time() - self.start_time, 3)
        try:
            if exc_type is None:
                self.logger.info(
                    f"Completed: {self.operation_name} in {duration}s",
                    extra={"duration_seconds": duration, "status": "success"},
                )
            else:
                self.logger.error(
                    f"Failed: {self.operation_name} after {duration}s",
                    extra={
                        "duration_seconds": duration,
                        "status": "error",
                        "error_type": exc_type.__name__,
                    },
                    exc_info=(exc_type, exc_val, exc_tb),
                )
        finally:
            _run_context.reset(self._token)
        return False
