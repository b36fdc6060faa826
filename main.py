"""
Main application entry point for the Contact Book API.

This module configures logging, creates the FastAPI application, sets up
middleware and error handlers, mounts the public media directory and
includes the authentication and contacts routers.
"""

from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI
from fastapi.staticfiles import StaticFiles

from contactbook.auth import router as auth_router
from contactbook.contacts import router as contacts_router
from contactbook.core import get_settings
from contactbook.database import init_db
from contactbook.errors import register_exception_handlers
from contactbook.logging_setup import configure_logging
from contactbook.middleware import setup_middleware

settings = get_settings()

configure_logging()
logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create tables on startup (use migrations for real deployments)."""
    init_db()
    logger.info("Contact Book API started", environment=settings.ENVIRONMENT)
    yield
    logger.info("Contact Book API stopped")


# Initialize FastAPI application
app = FastAPI(title="Contact Book API", lifespan=lifespan)

setup_middleware(app)
register_exception_handlers(app)

# Uploaded contact images
app.mount(
    settings.MEDIA_URL,
    StaticFiles(directory=settings.MEDIA_ROOT, check_dir=False),
    name="media",
)

# Include routers for application areas
app.include_router(auth_router)
app.include_router(contacts_router)


@app.get("/")
def root():
    """
    Root endpoint for the API.

    Returns:
        dict: JSON message directing users to the Swagger UI.
    """
    return {"msg": "Contact Book API. Visit /docs for Swagger UI"}


@app.get("/health")
def health():
    return {"status": "ok"}
