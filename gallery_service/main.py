"""
Media Gallery Service
Main FastAPI application
"""
from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager
from datetime import datetime, timezone
import logging

from .config import settings
from .schemas import ErrorResponse
from .infrastructure.blob_storage import create_blob_storage
from .infrastructure.database.connection import db_connection
from .infrastructure.storage import MemoryStorage, create_storage, initialize_storage
from .application.migration import migrate_legacy_keys
from .api.routes import auth, blobs, comments, media, storage, users

# Configure logging
logging.basicConfig(
    level=logging.INFO if not settings.DEBUG else logging.DEBUG,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager"""
    # Startup
    logger.info("Starting Media Gallery Service...")

    app.state.storage = create_storage()
    initialize_storage(app.state.storage)

    result = migrate_legacy_keys(app.state.storage)
    if not result.success:
        logger.error(f"Legacy data migration failed: {result.error}")

    # Ephemeral sessions do not outlive the process
    app.state.tab_storage = MemoryStorage()
    app.state.blob_storage = create_blob_storage(app.state.storage)

    if settings.DATA_BACKEND == "postgres":
        await db_connection.connect()
        await db_connection.create_schema()
        logger.info("Database connected")

    logger.info(f"{settings.APP_NAME} v{settings.APP_VERSION} started ({settings.DATA_BACKEND} backend)")

    yield

    # Shutdown
    logger.info("Shutting down Media Gallery Service...")

    if settings.DATA_BACKEND == "postgres":
        await db_connection.disconnect()


# Create FastAPI application
app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="Media gallery with uploads, favorites, history and comments",
    lifespan=lifespan
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=settings.CORS_ALLOW_CREDENTIALS,
    allow_methods=settings.CORS_ALLOW_METHODS,
    allow_headers=settings.CORS_ALLOW_HEADERS,
)


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    """Report unexpected failures as a JSON error"""
    logger.exception(f"Unhandled error on {request.method} {request.url.path}: {exc}")
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=ErrorResponse(
            error="Internal server error",
            detail="Reset local data with POST /api/v1/storage/reset if the problem persists"
        ).model_dump()
    )


app.include_router(auth.router)
app.include_router(users.router)
app.include_router(media.router)
app.include_router(comments.router)
app.include_router(blobs.router)
app.include_router(storage.router)


@app.get("/", tags=["Health"])
async def root():
    """Root endpoint"""
    return {
        "service": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "status": "healthy",
        "timestamp": datetime.now(timezone.utc).isoformat()
    }


@app.get("/health", tags=["Health"])
async def health_check():
    """Health check endpoint"""
    return {
        "service": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "status": "healthy",
        "data_backend": settings.DATA_BACKEND,
        "storage_backend": settings.STORAGE_BACKEND,
        "timestamp": datetime.now(timezone.utc).isoformat()
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "gallery_service.main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.DEBUG
    )
