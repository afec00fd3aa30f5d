"""Pydantic schemas for claims, validation jobs, and API responses."""

from datetime import datetime
from enum import Enum
from pydantic import BaseModel, Field, field_validator
from pydantic.alias_generators import to_camel
from typing import Optional


class ValidationStatus(str, Enum):
    """Lifecycle status of a validation job."""
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self is not ValidationStatus.PROCESSING


class LabelClaim(BaseModel):
    """Attribute values the submitter asserts are printed on the label."""
    brand_name: str = Field(..., min_length=1, description="Claimed brand name")
    product_class: str = Field(..., min_length=1, description="Claimed class/type (e.g., Kentucky Straight Bourbon Whiskey)")
    alcohol_content: float = Field(..., ge=0, le=100, description="Claimed alcohol by volume, in percent")
    net_contents: Optional[str] = Field(None, description="Claimed net contents as printed (e.g., 750 mL)")

    @field_validator("brand_name", "product_class", mode="before")
    @classmethod
    def _strip_required(cls, value):
        if isinstance(value, str):
            return value.strip()
        return value

    @field_validator("net_contents", mode="before")
    @classmethod
    def _blank_to_none(cls, value):
        if isinstance(value, str):
            return value.strip() or None
        return value

    class Config:
        frozen = True
        alias_generator = to_camel
        populate_by_name = True
        json_schema_extra = {
            "example": {
                "brandName": "Old Tom Distillery",
                "productClass": "Kentucky Straight Bourbon Whiskey",
                "alcoholContent": 45,
                "netContents": "750 mL"
            }
        }


class ValidationJob(BaseModel):
    """One asynchronous label verification request.

    Records are frozen: every state change is written back to the store as a
    complete replacement built with ``model_copy(update=...)``.
    """
    id: str
    status: ValidationStatus = ValidationStatus.PROCESSING
    created_at: datetime
    success: bool = False
    claim: LabelClaim = Field(..., alias="formData")
    issues: Optional[dict[str, str]] = None

    class Config:
        frozen = True
        alias_generator = to_camel
        populate_by_name = True
        json_schema_extra = {
            "example": {
                "id": "1",
                "status": "completed",
                "createdAt": "2025-01-01T12:00:00Z",
                "success": False,
                "formData": {
                    "brandName": "Old Tom Distillery",
                    "productClass": "Kentucky Straight Bourbon Whiskey",
                    "alcoholContent": 45,
                    "netContents": "750 mL"
                },
                "issues": {
                    "netContents": 'Net contents "750 mL" not found in label (confidence: 40%)'
                }
            }
        }


class ErrorResponse(BaseModel):
    """Standard error response."""
    detail: str

    class Config:
        json_schema_extra = {
            "example": {
                "detail": "brandName, productClass, and alcoholContent are required"
            }
        }


class HealthResponse(BaseModel):
    """Health check response."""
    status: str
    version: str
    ocr_ready: bool
