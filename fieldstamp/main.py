"""
Field Overlay Service - Main FastAPI Application
Stamps field annotations onto PDF documents and verifies document integrity.
"""
import logging
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from fieldstamp.config import get_settings
from fieldstamp.exceptions import register_exception_handlers
from fieldstamp.routers import overlay
from fieldstamp.utils.logging import setup_logging, RequestIdMiddleware, get_logger

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    settings = get_settings()
    setup_logging(
        environment=settings.environment,
        level=logging.DEBUG if settings.debug else logging.INFO,
    )
    logger.info(f"Starting Field Overlay Service v1.0.0 ({settings.environment})")
    yield
    logger.info("Shutting down Field Overlay Service")


app = FastAPI(
    title="Field Overlay Service",
    description="Stamps text, date, checkbox, radio and image fields onto PDF pages.",
    version="1.0.0",
    lifespan=lifespan,
    openapi_tags=[
        {"name": "overlay", "description": "Field overlay and integrity verification"},
    ],
)

# Middleware
app.add_middleware(RequestIdMiddleware)

app.add_middleware(
    CORSMiddleware,
    allow_origins=get_settings().allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Exception handlers
register_exception_handlers(app)

# Routers
app.include_router(overlay.router)


# Run with uvicorn
if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "fieldstamp.main:app",
        host="0.0.0.0",
        port=int(os.environ.get("PORT", 8000)),
        reload=get_settings().debug,
    )
