import logging
import os
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles
from app.core.config import settings
from app.core.logging_config import setup_logging
from app.api.v1.api import api_router
from app.middleware.logging import LoggingMiddleware

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging()
    if settings.AUTO_CREATE_TABLES:
        from app.db.init_db import create_tables
        await create_tables()
    logger.info(f"🚀 PG Salary Management API started ({settings.ENVIRONMENT})")
    yield
    logger.info("🛑 PG Salary Management API stopped")


# Create FastAPI app
app_config = {
    "title": "PG Salary Management API",
    "description": "Maintainer salary records, payments and reporting for PG operators",
    "version": "1.0.0",
    "lifespan": lifespan,
}

app = FastAPI(**app_config)

# Add middleware
app.add_middleware(LoggingMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=settings.ALLOWED_METHODS,
    allow_headers=settings.ALLOWED_HEADERS,
)

# Mount uploaded receipts
os.makedirs(settings.UPLOAD_PATH, exist_ok=True)
app.mount("/uploads", StaticFiles(directory=settings.UPLOAD_PATH), name="uploads")

# Include routers
app.include_router(api_router, prefix="/api/v1")

@app.get("/")
async def root():
    return {
        "message": "Welcome to the PG Salary Management API",
        "status": "active",
        "version": "1.0.0",
        "docs": "/docs"
    }

@app.get("/health")
async def health_check():
    return {
        "status": "healthy",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "environment": settings.ENVIRONMENT,
    }


def run_http():
    """Run HTTP server on port 8000"""
    import uvicorn
    print("🚀 Starting HTTP server on port 8000...")
    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.DEBUG
    )


if __name__ == "__main__":
    run_http()
