"""HTTP front end."""

from .server import create_app

__all__ = ["create_app"]
