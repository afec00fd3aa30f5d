"""API route definitions."""

from fastapi import APIRouter, Depends, UploadFile, File, Form, HTTPException
from functools import lru_cache
from typing import Optional, List
import logging

from ..models import (
    ValidationJob,
    ErrorResponse,
    HealthResponse,
)
from ..services import (
    ImagePreprocessor,
    OCRService,
    ValidationJobService,
    JobNotFoundError,
    InvalidClaimError,
)
from .. import __version__

logger = logging.getLogger(__name__)
router = APIRouter()

# Initialize services
preprocessor = ImagePreprocessor()
ocr_service = OCRService()


@lru_cache
def get_validation_service() -> ValidationJobService:
    """Process-wide job service (one store, one worker pool)."""
    return ValidationJobService(ocr_service=ocr_service)


@router.get("/health", response_model=HealthResponse, tags=["System"])
async def health_check():
    """Check API health and OCR readiness."""
    return HealthResponse(
        status="healthy",
        version=__version__,
        ocr_ready=ocr_service.is_ready
    )


@router.post(
    "/label-validation",
    response_model=ValidationJob,
    status_code=202,
    responses={
        400: {"model": ErrorResponse, "description": "Invalid input"},
    },
    tags=["Label Validation"]
)
async def create_label_validation(
    brand_name: Optional[str] = Form(None, alias="brandName", description="Claimed brand name"),
    product_class: Optional[str] = Form(None, alias="productClass", description="Claimed class/type"),
    alcohol_content: Optional[str] = Form(None, alias="alcoholContent", description="Claimed alcohol by volume (%)"),
    net_contents: Optional[str] = Form(None, alias="netContents", description="Claimed net contents, e.g. 750 mL"),
    label_image: Optional[UploadFile] = File(None, alias="labelImage", description="Label image file"),
    service: ValidationJobService = Depends(get_validation_service),
):
    """
    Submit a label image and its claimed fields for verification.

    Returns the new job in the `processing` state right away. Poll
    `GET /label-validation/{id}` until the status is `completed` or `failed`.
    """
    image_bytes = None
    if label_image is not None:
        try:
            image_bytes = await label_image.read()
        except Exception as e:
            logger.error(f"Failed to read uploaded image: {e}")
            raise HTTPException(status_code=400, detail="Failed to read uploaded image")

    try:
        if image_bytes:
            is_valid, error_msg = preprocessor.validate_image(image_bytes, label_image.filename or "unknown")
            if not is_valid:
                raise InvalidClaimError(error_msg)

        return service.submit(
            brand_name=brand_name,
            product_class=product_class,
            alcohol_content=alcohol_content,
            net_contents=net_contents,
            image_bytes=image_bytes,
        )
    except InvalidClaimError as e:
        logger.info(f"Rejected label validation: {e}")
        raise HTTPException(status_code=400, detail=str(e))


@router.get(
    "/label-validation",
    response_model=List[ValidationJob],
    tags=["Label Validation"]
)
async def list_label_validations(
    service: ValidationJobService = Depends(get_validation_service),
):
    """List every label validation known to this service."""
    return service.list_all()


@router.get(
    "/label-validation/{job_id}",
    response_model=ValidationJob,
    responses={
        404: {"model": ErrorResponse, "description": "Unknown validation id"},
    },
    tags=["Label Validation"]
)
async def get_label_validation(
    job_id: str,
    service: ValidationJobService = Depends(get_validation_service),
):
    """Fetch one label validation (poll this until it leaves `processing`)."""
    try:
        return service.get(job_id)
    except JobNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
