"""Request dependencies shared by the route modules."""

from fastapi import Request

from fluxmux.config import FluxmuxConfig


def get_config(request: Request) -> FluxmuxConfig:
    return request.app.state.config
