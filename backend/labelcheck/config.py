"""Application configuration."""

from typing import Literal

from pydantic_settings import BaseSettings
from functools import lru_cache


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # App settings
    app_name: str = "Label Compliance Verification API"
    debug: bool = False
    host: str = "0.0.0.0"
    port: int = 3000

    # CORS - the web client runs on the Vite dev server by default
    cors_origins: list[str] = ["http://localhost:5173"]

    # Upload limits
    max_upload_size_mb: int = 10
    allowed_extensions: set = {"png", "jpg", "jpeg", "webp"}
    min_image_dimension: int = 100  # Reject anything smaller at submit time
    max_image_dimension: int = 1600  # Downscale before OCR
    contrast_threshold: float = 20.0  # Below this, adaptive threshold instead of CLAHE

    # OCR settings
    ocr_lang: str = "en"
    ocr_max_concurrent: int = 1  # CPU-bound, no benefit from concurrency

    # Matching thresholds (percent, 0-100)
    brand_match_threshold: float = 60.0
    product_class_match_threshold: float = 60.0
    alcohol_content_match_threshold: float = 90.0
    net_contents_match_threshold: float = 60.0

    # Net contents comparison: "fuzzy" searches the raw OCR text,
    # "unit" converts both sides to mL and compares numerically.
    # Applies to every job handled by this process.
    net_contents_mode: Literal["fuzzy", "unit"] = "fuzzy"
    net_contents_tolerance_ml: float = 1.0

    # Job processing
    job_id_strategy: Literal["counter", "uuid"] = "counter"
    max_workers: int = 2  # Background validation threads

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
