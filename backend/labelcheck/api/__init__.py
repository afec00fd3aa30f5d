"""HTTP API routes."""

from .routes import router, get_validation_service

__all__ = ["router", "get_validation_service"]
