"""
LogTrace - Main Application
===========================

FastAPI application exposing the log parsing and source location pipelines.

Responsibilities:
- Parse log files and extract their errors
- Correlate errors with each other
- Locate the source code behind each error
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator
import uuid

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from logtrace.config import get_settings
from logtrace.api.routes import router as api_router
from logtrace.core.errors import (
    FileAccessError,
    FilePermissionError,
    FileTooLargeError,
    LogFileNotFoundError,
    NotARegularFileError,
)
from logtrace.utils.logging import setup_logging, get_logger, set_analysis_id


settings = get_settings()

# Initialize logging
setup_logging(
    service_name=settings.service_name,
    log_level=settings.log_level,
    json_output=settings.log_json
)

logger = get_logger(__name__)

# Most specific first
FILE_ERROR_RESPONSES = [
    (LogFileNotFoundError, 404, "log_file_not_found"),
    (NotARegularFileError, 400, "not_a_regular_file"),
    (FileTooLargeError, 413, "file_too_large"),
    (FilePermissionError, 403, "permission_denied"),
    (FileAccessError, 500, "file_read_error"),
]


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator:
    """
    Application lifespan manager.
    """
    logger.info(
        f"Starting {settings.service_name} v{settings.service_version}",
        extra={
            "version": settings.service_version,
            "max_file_size_mb": settings.max_file_size_mb,
            "stream_mode": settings.stream_mode,
        }
    )

    yield

    logger.info(f"{settings.service_name} shutdown complete")


# Create FastAPI application
app = FastAPI(
    title="LogTrace",
    description="Log parsing, error extraction and source code correlation",
    version=settings.service_version,
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def analysis_id_middleware(request: Request, call_next):
    """Middleware to extract or generate the analysis ID."""
    analysis_id = request.headers.get("X-Analysis-ID")
    if not analysis_id:
        analysis_id = str(uuid.uuid4())

    set_analysis_id(analysis_id)
    response = await call_next(request)
    response.headers["X-Analysis-ID"] = analysis_id

    return response


@app.exception_handler(FileAccessError)
async def file_access_exception_handler(request: Request, exc: FileAccessError):
    """Map log file validation and read failures to HTTP errors."""
    status_code, error = next(
        (status, code) for error_type, status, code in FILE_ERROR_RESPONSES
        if isinstance(exc, error_type)
    )

    logger.warning(
        f"Rejected log file: {exc}",
        extra={"path": request.url.path, "log_path": exc.path, "status_code": status_code}
    )

    return JSONResponse(
        status_code=status_code,
        content={
            "error": error,
            "message": str(exc),
            "log_path": exc.path,
        }
    )


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Global exception handler."""
    logger.error(
        f"Unhandled exception: {exc}",
        extra={"path": request.url.path},
        exc_info=True
    )

    return JSONResponse(
        status_code=500,
        content={
            "error": "internal_server_error",
            "message": "An unexpected error occurred",
            "detail": str(exc) if settings.debug else None
        }
    )


# Health check
@app.get("/health", tags=["health"])
async def health_check():
    """Health check endpoint."""
    return {
        "status": "healthy",
        "service": settings.service_name,
        "version": settings.service_version
    }


@app.get("/ready", tags=["health"])
async def readiness_check():
    """Readiness check endpoint."""
    return {
        "status": "ready",
        "service": settings.service_name,
    }


# Include API routes
app.include_router(api_router, prefix="/api/v1")


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "logtrace.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug
    )
