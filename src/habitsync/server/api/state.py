"""Document state API routes.

One document per normalized sync code. Pushes replace the stored
document wholesale; conflict resolution happens on the clients.
"""

from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, status

from habitsync.core.document import Document
from habitsync.server.api.deps import get_db, get_sync_code
from habitsync.server.database import Database, WordMismatchError
from habitsync.server.schemas import DocumentPayload

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["state"])


@router.get("/state")
def get_state(
    code: str = Depends(get_sync_code),
    word: str | None = None,
    db: Database = Depends(get_db),
) -> dict[str, Any]:
    """Get the stored document, or the empty document for an unused code."""
    try:
        state = db.get_state(code, word)
    except WordMismatchError as e:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(e)) from e
    if state is None:
        return Document.empty().to_payload()
    return state


@router.post("/state")
def put_state(
    payload: DocumentPayload,
    code: str = Depends(get_sync_code),
    word: str | None = None,
    db: Database = Depends(get_db),
) -> dict[str, Any]:
    """Replace the stored document and echo it back."""
    try:
        stored = db.put_state(code, payload.to_stored(), word)
    except WordMismatchError as e:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(e)) from e
    logger.info(
        "Stored document for %s (updatedAt=%d, device=%s)",
        code,
        payload.updated_at,
        payload.device_id or "?",
    )
    return stored
