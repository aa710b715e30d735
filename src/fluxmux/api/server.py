"""FastAPI server setup."""

from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from fluxmux import __version__
from fluxmux.common import (
    ConfigurationError,
    DecodeError,
    FluxmuxError,
    UnsupportedFormatError,
    classify_error,
    get_logger,
)
from fluxmux.config import FluxmuxConfig

logger = get_logger(__name__)

# Errors caused by the request itself rather than by a running pipeline
CLIENT_ERRORS = (ConfigurationError, UnsupportedFormatError, DecodeError)


async def fluxmux_error_handler(request: Request, exc: FluxmuxError) -> JSONResponse:
    status = 400 if isinstance(exc, CLIENT_ERRORS) else 500
    logger.error(
        f"Request failed: {{'path': {request.url.path!r}, 'status': {status}, 'error': {exc.message!r}}}",
        extra={"extra_fields": {"error_category": classify_error(exc)}},
    )
    return JSONResponse(status_code=status, content={"error": exc.message})


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    problems = "; ".join(
        f"{'.'.join(str(p) for p in err.get('loc', ()) if p != 'body')}: {err.get('msg')}"
        for err in exc.errors()
    )
    return JSONResponse(status_code=400, content={"error": problems or "Invalid request"})


def create_app(config: Optional[FluxmuxConfig] = None) -> FastAPI:
    """Create and configure FastAPI application."""
    config = config or FluxmuxConfig()

    app = FastAPI(
        title="fluxmux",
        version=__version__,
        docs_url="/api/docs",
        redoc_url="/api/redoc",
    )
    app.state.config = config

    # CORS middleware
    if config.api.enable_cors:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=config.api.cors_origins or ["*"],
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    app.add_exception_handler(FluxmuxError, fluxmux_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)

    # Register routes
    from .routes import health, pipelines

    app.include_router(health.router, prefix="/api", tags=["health"])
    app.include_router(pipelines.router, prefix="/api", tags=["pipelines"])

    logger.info(
        "FastAPI application created",
        extra={"extra_fields": {"app_name": "fluxmux", "version": __version__}},
    )

    return app
