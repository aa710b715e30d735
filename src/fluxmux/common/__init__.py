"""Shared infrastructure for fluxmux: errors, logging and configuration."""

from .config import ConfigLoader
from .logging import setup_logging, get_logger, LogContext
from .logging_config import LoggingConfig
from .errors import (
    FluxmuxError, ConfigurationError, EndpointError, SourceError, SinkError,
    DecodeError, ValidationError, UnsupportedFormatError, PipelineError,
    classify_error,
)

__all__ = [
    'ConfigLoader',
    'LoggingConfig',
    'setup_logging',
    'get_logger',
    'LogContext',
    'FluxmuxError',
    'ConfigurationError',
    'EndpointError',
    'SourceError',
    'SinkError',
    'DecodeError',
    'ValidationError',
    'UnsupportedFormatError',
    'PipelineError',
    'classify_error',
]
