"""FastAPI dependencies for API routes."""

from __future__ import annotations

from fastapi import HTTPException, Request, status

from habitsync.core.document import normalize_sync_code
from habitsync.server.database import Database


def get_db(request: Request) -> Database:
    """Get database from app state."""
    db: Database = request.app.state.db
    return db


def get_sync_code(code: str = "") -> str:
    """Normalize the `code` query parameter.

    Raises:
        HTTPException: 400 if nothing is left after normalization.
    """
    safe_code = normalize_sync_code(code)
    if not safe_code:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Missing or invalid sync code",
        )
    return safe_code
