"""Filedrop Backend Application.

This is the main entry point for the Filedrop upload service.

Endpoints:
    - POST /upload: store one file (multipart form), returns its public URL
    - GET /files/{name}: serve a stored file
    - GET /health: liveness check

A retention sweeper runs alongside request handling and deletes stored files
older than the configured retention window.
"""
import logging
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from filedrop import __version__
from filedrop.config import get_config
from filedrop.files.errors import INTERNAL_ERROR, ErrorKind, UploadError
from filedrop.files.retention import RetentionSweeper
from filedrop.files.router import error_response, router as files_router
from filedrop.files.storage import FileStorage

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)

for _noisy in ("multipart", "python_multipart", "uvicorn.access"):
    logging.getLogger(_noisy).setLevel(logging.WARNING)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager for startup/shutdown events."""
    # Startup
    config = get_config()

    configured_level = getattr(logging, config.logging.level.upper(), None)
    if configured_level is not None:
        logging.getLogger().setLevel(configured_level)
        logger.info("Root logger level set to %s", config.logging.level.upper())

    FileStorage.get_instance().ensure_dir()

    sweeper = None
    if config.retention.enabled:
        sweeper = RetentionSweeper(
            upload_dir=config.uploads.upload_dir,
            max_age_seconds=config.retention.max_age_seconds,
            interval_seconds=config.retention.sweep_interval_seconds,
            max_concurrency=config.retention.max_concurrency,
        )
        await sweeper.start()
    else:
        logger.info("Retention sweeper disabled in config")
    app.state.sweeper = sweeper

    logger.info("Server running: http://localhost:%s", config.server.port)
    logger.info("Upload endpoint: POST http://localhost:%s/upload", config.server.port)

    yield  # Application runs here

    # Shutdown
    if sweeper is not None:
        await sweeper.stop()
    logger.info("Application shutdown complete")


app = FastAPI(
    title="Filedrop API",
    description="Single-file upload service with age-based retention",
    version=__version__,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[get_config().server.cors_origin],
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(files_router)


@app.exception_handler(UploadError)
async def handle_upload_error(request: Request, exc: UploadError) -> JSONResponse:
    if exc.kind in (ErrorKind.CLIENT_INPUT, ErrorKind.QUOTA):
        logger.warning("[upload] Rejected %s %s: %s", request.method, request.url.path, exc.message)
    else:
        logger.error("[upload] %s failure on %s: %s", exc.kind.value, request.url.path, exc.message)
    return error_response(exc.status_code, exc.message)


@app.exception_handler(StarletteHTTPException)
async def handle_http_error(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return error_response(exc.status_code, str(exc.detail))


@app.exception_handler(Exception)
async def handle_unexpected_error(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return error_response(500, INTERNAL_ERROR)


@app.get("/health")
async def health() -> dict:
    """Health check endpoint.

    Returns:
        dict: Status object indicating the server is running.
    """
    return {"status": "ok"}


def run() -> None:
    """Start uvicorn with the configured host and port."""
    config = get_config()
    uvicorn.run(
        app,
        host=config.server.host,
        port=config.server.port,
        log_level=config.logging.level.lower(),
    )
