"""Command line entry point: bridge, pipe, convert and serve."""

import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

from pydantic import ValidationError as PydanticValidationError

from fluxmux import __version__
from fluxmux.actions import parse_steps
from fluxmux.codecs import CodecFormat, convert
from fluxmux.common import ConfigLoader, ConfigurationError, FluxmuxError, setup_logging
from fluxmux.config import FluxmuxConfig, MiddlewareConfig
from fluxmux.engine import launch_bridge, launch_pipe

APP_NAME = "fluxmux"

logger = logging.getLogger(__package__ or __name__)

# CLI flag destination -> MiddlewareConfig field
_MIDDLEWARE_FLAGS = (
    "batch_size",
    "batch_timeout_ms",
    "deduplicate",
    "throttle_per_sec",
    "retry_max_attempts",
    "retry_delay_ms",
    "schema_path",
)


def merge_middleware(base: MiddlewareConfig, args: argparse.Namespace) -> MiddlewareConfig:
    """Overlay command line middleware flags on the configured options.

    Raises:
        ConfigurationError: If a resulting value is out of range
    """
    overrides: Dict[str, Any] = {
        name: getattr(args, name) for name in _MIDDLEWARE_FLAGS
        if getattr(args, name, None) is not None
    }
    try:
        return MiddlewareConfig(**{**base.model_dump(), **overrides})
    except PydanticValidationError as e:
        raise ConfigurationError(f"Invalid middleware options: {e}") from e


def bridge_command(config: FluxmuxConfig, args: argparse.Namespace) -> int:
    """Run a bridge between one source and one sink."""
    try:
        middleware = merge_middleware(config.middleware, args)
        logger.info(
            f"Bridge configuration: {{'source': {args.source!r}, 'sink': {args.sink!r}, "
            f"'middleware': {middleware.model_dump(exclude_none=True)!r}}}"
        )
        stats = asyncio.run(launch_bridge(args.source, args.sink, middleware, config.engine))
    except FluxmuxError as e:
        logger.error(f"Bridge failed: {e}")
        return 1

    logger.info(f"Bridge complete: {stats.to_dict()!r}")
    return 0


def pipe_command(config: FluxmuxConfig, args: argparse.Namespace) -> int:
    """Run a pipe: a source, CLI-style action steps, then tee sinks."""
    try:
        actions, sinks = parse_steps(args.steps, default_schema=args.schema)
        logger.info(
            f"Pipe configuration: {{'source': {args.source!r}, 'actions': {[a.name for a in actions]!r}, "
            f"'sinks': {sinks or ['stdout']!r}}}"
        )
        stats = asyncio.run(launch_pipe(args.source, actions, sinks, config.engine))
    except FluxmuxError as e:
        logger.error(f"Pipe failed: {e}")
        return 1

    logger.info(f"Pipe complete: {stats.to_dict()!r}")
    return 0


def convert_command(args: argparse.Namespace) -> int:
    """Convert a whole document between formats."""
    try:
        from_fmt = CodecFormat.parse(args.from_format) if args.from_format else None
        to_fmt = CodecFormat.parse(args.to_format) if args.to_format else None
        convert(args.input, args.output, from_fmt, to_fmt)
    except FluxmuxError as e:
        logger.error(f"Conversion failed: {e}")
        return 1
    except OSError as e:
        logger.error(f"Conversion failed: {{'error': {str(e)!r}}}")
        return 1
    return 0


def serve_command(config: FluxmuxConfig, args: argparse.Namespace) -> int:
    """Serve the HTTP API with uvicorn."""
    import uvicorn

    from fluxmux.api import create_app

    host = args.host or config.api.host
    port = args.port or config.api.port
    logger.info(f"Starting API server: {{'host': {host!r}, 'port': {port}}}")
    uvicorn.run(create_app(config), host=host, port=port, log_config=None)
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog=APP_NAME,
        description="Move records between files, Kafka, Postgres and standard streams",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument(
        "--config",
        type=Path,
        help="Path to config file (defaults.toml)"
    )
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        type=str.upper,
        help="Log level (overrides config)"
    )

    # Also accepted after the subcommand; SUPPRESS keeps the global value when absent
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("--config", type=Path, default=argparse.SUPPRESS, help="Path to config file (defaults.toml)")

    subparsers = parser.add_subparsers(dest="command", required=True)

    bridge = subparsers.add_parser("bridge", parents=[common], help="Stream from one source to one sink through middleware")
    bridge.add_argument("--source", required=True, help="Source URI (file:PATH, kafka://host:port/topic, -)")
    bridge.add_argument("--sink", required=True, help="Sink URI (file:PATH, kafka://..., postgres:..., -)")
    bridge.add_argument("--batch-size", type=int, help="Combine this many messages into one JSON array")
    bridge.add_argument("--batch-timeout-ms", type=int, help="Flush a partial batch after this long (default 5000)")
    bridge.add_argument("--deduplicate", action="store_true", default=None, help="Drop messages with a repeated key")
    bridge.add_argument("--throttle-per-sec", type=int, help="Maximum messages per second")
    bridge.add_argument("--retry-max-attempts", type=int, help="Retries after a failed delivery")
    bridge.add_argument("--retry-delay-ms", type=int, help="Delay between delivery attempts (default 1000)")
    bridge.add_argument("--schema-path", help="JSON schema whose 'required' list gates messages")

    pipe = subparsers.add_parser(
        "pipe",
        parents=[common],
        help="Stream a source through actions to one or more sinks",
        description="Steps: filter EXPR | transform EXPR | aggregate [SPEC] | normalize [SCHEMA] | "
                    "validate [SCHEMA] | limit N | sample N, optionally followed by tee SINK...",
    )
    pipe.add_argument("--schema", help="Schema used by normalize/validate steps given without one")
    pipe.add_argument("source", help="Source URI")
    pipe.add_argument("steps", nargs=argparse.REMAINDER, help="Action steps and an optional tee")

    conv = subparsers.add_parser("convert", parents=[common], help="Convert a document between formats")
    conv.add_argument("input", type=Path, help="Input file")
    conv.add_argument("output", type=Path, help="Output file")
    conv.add_argument("--from", dest="from_format", help="Input format (default: from extension)")
    conv.add_argument("--to", dest="to_format", help="Output format (default: from extension)")

    serve = subparsers.add_parser("serve", parents=[common], help="Run the HTTP API")
    serve.add_argument("--host", help="Bind address (overrides config)")
    serve.add_argument("--port", type=int, help="Port (overrides config)")

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    args = build_parser().parse_args(argv)

    loader = ConfigLoader(app_name=APP_NAME, config_class=FluxmuxConfig)
    try:
        config = loader.load(defaults_path=args.config)
    except ConfigurationError as e:
        setup_logging(level=args.log_level or "INFO", format="simple")
        logger.error(f"Configuration error: {e}")
        return 1

    setup_logging(
        level=args.log_level or config.logging.level,
        format=config.logging.format,
        log_file=config.logging.file,
        max_file_size_mb=config.logging.max_file_size_mb,
        backup_count=config.logging.backup_count,
    )

    if args.command == "bridge":
        return bridge_command(config, args)
    if args.command == "pipe":
        return pipe_command(config, args)
    if args.command == "convert":
        return convert_command(args)
    return serve_command(config, args)


if __name__ == "__main__":
    sys.exit(main())
