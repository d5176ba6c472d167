"""API layer: FastAPI app, routes, and schemas."""

from .app import create_app

__all__ = ["create_app"]
