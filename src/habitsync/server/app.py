"""FastAPI application for the HabitSync reference server.

This module creates and configures the FastAPI application with:
- GET/POST /api/state: one tracker document per sync code
- GET /health

Usage:
    uvicorn habitsync.server.app:app_factory --factory --host 0.0.0.0 --port 8000
"""

from __future__ import annotations

import logging
import os
import sys
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from habitsync import __version__
from habitsync.server.api.router import router as api_router
from habitsync.server.database import Database
from habitsync.server.schemas import ErrorResponse

# Configuration from environment variables with defaults
DEFAULT_DB_PATH = "habitsync.db"
DEFAULT_LOG_PATH = "habitsync-server.log"

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

logger = logging.getLogger(__name__)


def get_db_path() -> Path:
    """Get the database path from HABITSYNC_DB_PATH."""
    return Path(os.environ.get("HABITSYNC_DB_PATH", DEFAULT_DB_PATH))


def get_log_path() -> Path:
    """Get the log file path from HABITSYNC_LOG_PATH."""
    return Path(os.environ.get("HABITSYNC_LOG_PATH", DEFAULT_LOG_PATH))


def setup_logging(log_path: Path | None) -> None:
    """Configure logging to output to stdout and, if given, a file.

    Args:
        log_path: Path to the log file (None for stdout only).
    """
    formatter = logging.Formatter(LOG_FORMAT)

    root_logger = logging.getLogger("habitsync")
    root_logger.setLevel(logging.INFO)

    stdout_handler = logging.StreamHandler(sys.stdout)
    stdout_handler.setFormatter(formatter)
    root_logger.addHandler(stdout_handler)

    if log_path is None:
        return

    file_handler = logging.FileHandler(log_path, encoding="utf-8")
    file_handler.setFormatter(formatter)
    root_logger.addHandler(file_handler)

    # Also capture uvicorn logs to file
    for uvicorn_name in ("uvicorn", "uvicorn.error", "uvicorn.access"):
        logging.getLogger(uvicorn_name).addHandler(file_handler)


async def _http_error(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    body = ErrorResponse(error=str(exc.detail))
    return JSONResponse(status_code=exc.status_code, content=body.model_dump())


async def _validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = exc.errors()
    first = errors[0] if errors else {}
    location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    message = first.get("msg", "invalid request")
    detail = f"Invalid document: {location}: {message}" if location else message
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content=ErrorResponse(error=detail).model_dump(),
    )


def create_app(db: Database) -> FastAPI:
    """Create FastAPI application with a custom database.

    This is primarily used for testing with isolated databases.

    Args:
        db: Database instance.

    Returns:
        Configured FastAPI application.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        """Application lifespan handler for startup/shutdown."""
        logger.info("=" * 60)
        logger.info("HabitSync Server Starting")
        logger.info("=" * 60)
        logger.info("  Database: %s", db.path)
        logger.info("=" * 60)

        yield

        logger.info("HabitSync Server shutting down")
        db.close()

    application = FastAPI(
        title="HabitSync Server",
        description="Single-document sync backend for the habit tracker",
        version=__version__,
        lifespan=lifespan,
    )

    application.state.db = db
    application.add_exception_handler(StarletteHTTPException, _http_error)  # type: ignore[arg-type]
    application.add_exception_handler(RequestValidationError, _validation_error)  # type: ignore[arg-type]
    application.include_router(api_router)

    return application


def app_factory() -> FastAPI:
    """Factory function for uvicorn --factory mode."""
    setup_logging(get_log_path())
    return create_app(db=Database(get_db_path()))
