"""FastAPI application entry point."""

import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .api import router, get_validation_service
from .services import OCRService
from .config import get_settings
from . import __version__

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager - handles startup and shutdown."""
    # Startup
    logger.info("Starting Label Compliance Verification API...")
    settings = get_settings()

    # Initialize OCR engine on startup (keep warm)
    ocr_service = OCRService()
    if ocr_service.initialize():
        logger.info("OCR engine initialized and ready")
    else:
        logger.warning("OCR engine failed to initialize - labels will be processed with empty OCR text")

    logger.info(
        f"API ready - Version {__version__} "
        f"(net contents mode: {settings.net_contents_mode}, ids: {settings.job_id_strategy})"
    )

    yield

    # Shutdown
    logger.info("Shutting down Label Compliance Verification API...")
    get_validation_service().shutdown(wait=True)


def create_app() -> FastAPI:
    """Create and configure FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title=settings.app_name,
        description="""
## Alcohol Label Compliance Verification API

Checks that the brand name, product class, alcohol content and net contents
claimed for a product actually appear on its label image.

### Flow
1. `POST /api/v1/label-validation` with the claimed fields and the label image
2. Poll `GET /api/v1/label-validation/{id}` until `status` is `completed` or `failed`
3. `success` tells whether every claim was found; `issues` explains each miss
        """,
        version=__version__,
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
    )

    # Configure CORS - restrict to allowed frontend origins
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=False,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["*"],
    )

    # Include routes
    app.include_router(router, prefix="/api/v1")

    # Root redirect to docs
    @app.get("/", include_in_schema=False)
    async def root():
        return {
            "message": "Label Compliance Verification API",
            "version": __version__,
            "docs": "/docs"
        }

    return app


# Create app instance
app = create_app()
