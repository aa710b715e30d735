"""Health check endpoints."""

from fastapi import APIRouter, Depends

from fluxmux import __version__
from fluxmux.common import get_logger
from fluxmux.config import FluxmuxConfig

from .deps import get_config

router = APIRouter()
logger = get_logger(__name__)


@router.get("/health")
async def health_check():
    """Health check endpoint."""
    logger.debug("Health check requested")

    return {
        "status": "ok",
        "version": __version__,
    }


@router.get("/config")
async def get_configuration(config: FluxmuxConfig = Depends(get_config)):
    """Get the configuration the server runs with."""
    logger.debug("Configuration requested")

    return config.model_dump()
