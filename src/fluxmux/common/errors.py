"""Base error definitions for fluxmux."""

from typing import Any, Dict


class FluxmuxError(Exception):
    """Base exception for all fluxmux errors."""

    def __init__(self, message: str, **context: Any) -> None:
        super().__init__(message)
        self.message = message
        self.context: Dict[str, Any] = context


class ConfigurationError(FluxmuxError):
    """Configuration, endpoint URI or action syntax is invalid."""
    pass


class EndpointError(FluxmuxError):
    """Base exception for endpoint (source/sink) failures."""
    pass


class SourceError(EndpointError):
    """A source could not read from its medium."""
    pass


class SinkError(EndpointError):
    """A sink could not deliver to its medium."""
    pass


class DecodeError(FluxmuxError):
    """Payload is malformed for its declared format."""
    pass


class ValidationError(FluxmuxError):
    """Record does not satisfy the required-field schema."""
    pass


class UnsupportedFormatError(FluxmuxError):
    """Format is not supported by the codec layer."""
    pass


class PipelineError(FluxmuxError):
    """Pipeline run ended with a terminal error."""
    pass


def classify_error(exception: Exception) -> str:
    """
    Classify an exception into an error category for log records.

    Args:
        exception: The exception to classify

    Returns:
        Error category string: 'config', 'decode', 'validation', 'endpoint',
        'unsupported', 'io', or 'unknown'
    """
    if isinstance(exception, ConfigurationError):
        return 'config'
    elif isinstance(exception, DecodeError):
        return 'decode'
    elif isinstance(exception, ValidationError):
        return 'validation'
    elif isinstance(exception, EndpointError):
        return 'endpoint'
    elif isinstance(exception, UnsupportedFormatError):
        return 'unsupported'
    elif isinstance(exception, (OSError, ConnectionError)):
        return 'io'
    elif isinstance(exception, (ValueError, KeyError, TypeError)):
        return 'decode'
    else:
        return 'unknown'
