"""Services for text normalization, matching, comparison, OCR, and job processing."""

from .normalization import normalize_text
from .units import to_milliliters
from .matching import FieldMatch, match_field
from .preprocessing import ImagePreprocessor
from .ocr import OCRService, OCRResult, OCRBox
from .comparison import ComparisonService, ComparisonResult
from .jobs import (
    ValidationJobService,
    InMemoryJobStore,
    CounterIdGenerator,
    UuidIdGenerator,
    JobNotFoundError,
    InvalidClaimError,
    build_claim,
)

__all__ = [
    "normalize_text",
    "to_milliliters",
    "FieldMatch",
    "match_field",
    "ImagePreprocessor",
    "OCRService",
    "OCRResult",
    "OCRBox",
    "ComparisonService",
    "ComparisonResult",
    "ValidationJobService",
    "InMemoryJobStore",
    "CounterIdGenerator",
    "UuidIdGenerator",
    "JobNotFoundError",
    "InvalidClaimError",
    "build_claim",
]
