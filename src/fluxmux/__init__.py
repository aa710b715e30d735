"""fluxmux: a streaming data-bridge engine."""

__version__ = "0.1.0"
