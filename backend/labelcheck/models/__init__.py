"""Pydantic models for claims, jobs, and API responses."""

from .schemas import (
    ValidationStatus,
    LabelClaim,
    ValidationJob,
    ErrorResponse,
    HealthResponse,
)

__all__ = [
    "ValidationStatus",
    "LabelClaim",
    "ValidationJob",
    "ErrorResponse",
    "HealthResponse",
]
