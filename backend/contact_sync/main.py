"""Main FastAPI application for contact tagging and segmentation."""

from fastapi import FastAPI
import logging

from contact_sync.config import settings
from contact_sync.database import Base

# Import models to register them with SQLAlchemy
from contact_sync import models  # noqa: F401

from contact_sync.routers import maintenance_routes, segment_routes
from contact_sync.scheduler import start_scheduler, stop_scheduler

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s"
)
logger = logging.getLogger(__name__)

# Create FastAPI app
app = FastAPI(
    title="Contact Tagging API",
    description="Contact tagging, segmentation and tag reconciliation for creator stores",
    version="1.0.0",
    redirect_slashes=False
)

app.include_router(segment_routes.router)
app.include_router(maintenance_routes.router)


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {
        "status": "healthy",
        "version": "1.0.0",
        "environment": settings.ENVIRONMENT,
        "registered_tables": len(Base.metadata.tables),
        "scheduled_reconciliation": settings.ENABLE_SCHEDULED_RECONCILIATION
    }


@app.on_event("startup")
async def startup_event():
    """Run on application startup."""
    logger.info("Starting Contact Tagging API...")
    logger.info(f"Registered {len(Base.metadata.tables)} SQLAlchemy tables")

    if settings.ENABLE_SCHEDULED_RECONCILIATION:
        start_scheduler()

    logger.info("Application started successfully!")


@app.on_event("shutdown")
async def shutdown_event():
    """Run on application shutdown."""
    logger.info("Shutting down Contact Tagging API...")
    stop_scheduler()
