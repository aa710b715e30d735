"""Structured logging utilities.

Console logs go to stderr only; stdout belongs to the ``stdout`` sink.
Run-scoped fields (``run_id``, ``mode``) are attached with
:class:`LogContext`, per-call fields with ``extra={"extra_fields": {...}}``.
"""

import json
import logging
import logging.handlers
import sys
from contextvars import ContextVar, Token
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional

# Third-party loggers that are chatty at INFO
QUIET_LOGGERS = ("aiokafka", "asyncpg", "uvicorn.access")

# Fields bound by LogContext; each asyncio task sees its own copy
_context_fields: ContextVar[Dict[str, Any]] = ContextVar("fluxmux_log_context", default={})


def record_fields(record: logging.LogRecord) -> Dict[str, Any]:
    """Context fields overlaid with per-call fields for one record."""
    fields = dict(getattr(record, "context_fields", {}))
    fields.update(getattr(record, "extra_fields", {}))
    return fields


class StructuredFormatter(logging.Formatter):
    """One JSON object per record."""

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if record.levelno >= logging.WARNING:
            log_data["location"] = f"{record.module}:{record.funcName}:{record.lineno}"

        if record.exc_info and record.exc_info[0] is not None:
            log_data["exception"] = {
                "type": record.exc_info[0].__name__,
                "message": str(record.exc_info[1]),
                "traceback": self.formatException(record.exc_info),
            }

        log_data.update(record_fields(record))
        return json.dumps(log_data, default=str)


class ConsoleFormatter(logging.Formatter):
    """Plain text with structured fields appended as ``key=value``."""

    SIMPLE = "%(levelname)-8s | %(name)s | %(message)s"
    DETAILED = "%(asctime)s | %(levelname)-8s | %(name)s:%(funcName)s:%(lineno)d | %(message)s"

    def __init__(self, detailed: bool = False) -> None:
        super().__init__(
            fmt=self.DETAILED if detailed else self.SIMPLE,
            datefmt="%Y-%m-%d %H:%M:%S",
        )

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        fields = record_fields(record)
        if fields:
            line += " | " + " ".join(f"{k}={v}" for k, v in fields.items())
        return line


def _console_formatter(format: str) -> logging.Formatter:
    if format == "json":
        return StructuredFormatter()
    return ConsoleFormatter(detailed=format == "detailed")


def setup_logging(
    level: str = "INFO",
    format: str = "simple",
    log_file: Optional[Path] = None,
    max_file_size_mb: int = 10,
    backup_count: int = 5,
) -> None:
    """Configure the root logger for a fluxmux process.

    Replaces any existing root handlers, so calling it twice is safe.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR)
        format: Console format (simple, detailed, json)
        log_file: Optional rotating log file, always written as JSON
        max_file_size_mb: Size at which the log file rotates
        backup_count: Rotated files to keep
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, level.upper()))
    root_logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setFormatter(_console_formatter(format))
    root_logger.addHandler(console_handler)

    if log_file:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.handlers.RotatingFileHandler(
            log_file,
            maxBytes=max_file_size_mb * 1024 * 1024,
            backupCount=backup_count,
            encoding="utf-8",
        )
        file_handler.setFormatter(StructuredFormatter())
        root_logger.addHandler(file_handler)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    """Get logger with structured logging support."""
    return logging.getLogger(name)


def _install_context_factory() -> None:
    """Stamp bound context fields on every new record, once per process."""
    base_factory = logging.getLogRecordFactory()
    if getattr(base_factory, "_fluxmux_context", False):
        return

    def record_factory(*args: Any, **kwargs: Any) -> logging.LogRecord:
        record = base_factory(*args, **kwargs)
        fields = _context_fields.get()
        if fields:
            record.context_fields = dict(fields)
        return record

    record_factory._fluxmux_context = True
    logging.setLogRecordFactory(record_factory)


_install_context_factory()


class LogContext:
    """Attach fields to every record created inside the block.

    Fields live in a context variable, so concurrent runs in separate
    asyncio tasks never see each other's fields. They land on
    ``record.context_fields`` and never collide with the ``extra_fields`` a
    call passes. Nested contexts stack.
    """

    def __init__(self, logger: logging.Logger, **fields: Any) -> None:
        self.logger = logger
        self.fields = fields
        self._token: Optional[Token] = None

    def __enter__(self) -> "LogContext":
        self._token = _context_fields.set({**_context_fields.get(), **self.fields})
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        _context_fields.reset(self._token)
