"""API routers for the imagestage FastAPI application."""

from . import config, images

__all__ = ["config", "images"]
