"""FastAPI application entry point."""

import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .api import router
from .config import get_settings
from . import __version__

# Configure logging
logging.basicConfig(
    level=get_settings().log_level.upper(),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager - handles startup and shutdown."""
    # Startup
    logger.info("Starting Label Verification API...")
    settings = get_settings()
    if settings.debug:
        logger.info(
            f"Limits: {settings.max_images_per_application} images per application, "
            f"{settings.max_batch_size} applications per batch"
        )

    logger.info(f"API ready - Version {__version__}")

    yield

    # Shutdown
    logger.info("Shutting down Label Verification API...")


def create_app() -> FastAPI:
    """Create and configure FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title=settings.app_name,
        description="""
## Alcohol Label Verification API

Validates the fields a vision model extracted from alcohol label images
against the values declared on the label application.

### Features
- **Multi-Image Merge**: Combine front, back and neck label extractions with per-field provenance
- **Field Verification**: Tolerant text matching, ABV/proof and net contents conversion
- **Government Warning**: Exact wording, uppercase and bold header checks
- **Batch Processing**: Verify many applications at once, with expected values from JSON or CSV

### Quick Start
1. Use `/health` to check API status
2. Use `/extractions/parse` to validate a model response
3. Use `/verify` to verify an application against its extractions
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
        allow_credentials=True,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["*"],
    )

    # Include routes
    app.include_router(router, prefix="/api/v1")

    # Root redirect to docs
    @app.get("/", include_in_schema=False)
    async def root():
        return {
            "message": "Label Verification API",
            "version": __version__,
            "docs": "/docs"
        }

    return app


# Create app instance
app = create_app()
