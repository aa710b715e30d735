"""Checks on an endpoint combination made before any adapter exists."""

from typing import Sequence

from fluxmux.common import ConfigurationError
from fluxmux.endpoints.uri import EndpointKind, SinkSpec, SourceSpec


def validate_endpoints(source: SourceSpec, sinks: Sequence[SinkSpec]) -> None:
    """Reject unsupported source/sink pairings.

    File to file is rejected; format conversion between files is the job of
    ``fluxmux convert``.

    Raises:
        ConfigurationError: For a file source paired with any file sink, or
            when no sink is given
    """
    if not sinks:
        raise ConfigurationError("At least one sink is required", source=source.uri)

    if source.kind is EndpointKind.FILE:
        for sink in sinks:
            if sink.kind is EndpointKind.FILE:
                raise ConfigurationError(
                    "File to file transfer is not supported; use 'fluxmux convert' instead",
                    source=source.uri,
                    sink=sink.uri,
                )
