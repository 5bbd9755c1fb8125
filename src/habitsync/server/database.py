"""Server database using SQLAlchemy with SQLite.

This module provides:
- Document storage keyed by normalized sync code
- Shared-word checks (words are stored hashed)
"""

from __future__ import annotations

import hashlib
import json
import logging
from pathlib import Path
from typing import TYPE_CHECKING, Any

from sqlalchemy import create_engine
from sqlalchemy.orm import Session

from habitsync.server.models import Base, SyncStateRow

if TYPE_CHECKING:
    from sqlalchemy import Engine

logger = logging.getLogger(__name__)


def hash_word(word: str) -> str:
    """Hash a shared word using SHA-256.

    Args:
        word: Raw word.

    Returns:
        Hex-encoded SHA-256 hash.
    """
    return hashlib.sha256(word.encode()).hexdigest()


class WordMismatchError(Exception):
    """Raised when a request's word does not match the stored one."""


class Database:
    """SQLAlchemy database for stored documents.

    Uses SQLite with WAL mode for better concurrency with multiple readers.
    """

    def __init__(self, db_path: Path | str) -> None:
        """Initialize the database.

        Args:
            db_path: Path to the SQLite database file.
        """
        self._db_path = Path(db_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)

        self._engine: Engine = create_engine(
            f"sqlite:///{self._db_path}",
            connect_args={"check_same_thread": False},
            echo=False,
        )

        with self._engine.connect() as conn:
            conn.exec_driver_sql("PRAGMA journal_mode=WAL")

        Base.metadata.create_all(self._engine)

    @property
    def path(self) -> Path:
        """Get the database file path."""
        return self._db_path

    def close(self) -> None:
        """Close the database connection."""
        self._engine.dispose()

    def _session(self) -> Session:
        """Create a new database session."""
        return Session(self._engine)

    # === Document operations ===

    def check_word(self, row: SyncStateRow | None, word: str | None) -> None:
        """Verify a request's word against a stored row.

        Rows without a word accept any request.

        Raises:
            WordMismatchError: If the row has a word and it differs.
        """
        if row is None or row.word_hash is None:
            return
        if not word or hash_word(word) != row.word_hash:
            raise WordMismatchError("Wrong sync word")

    def get_row(self, code: str) -> SyncStateRow | None:
        """Get the stored row for a code."""
        with self._session() as session:
            row = session.get(SyncStateRow, code)
            if row is not None:
                session.expunge(row)
            return row

    def get_state(self, code: str, word: str | None = None) -> dict[str, Any] | None:
        """Get the stored document for a code.

        Args:
            code: Normalized sync code.
            word: Shared word from the request.

        Returns:
            Stored document payload, or None if the code was never used.

        Raises:
            WordMismatchError: If the word does not match.
        """
        row = self.get_row(code)
        self.check_word(row, word)
        if row is None:
            return None
        state: dict[str, Any] = json.loads(row.state)
        return state

    def put_state(
        self, code: str, payload: dict[str, Any], word: str | None = None
    ) -> dict[str, Any]:
        """Store the full document for a code, replacing any previous one.

        The first push that carries a word sets it for the code.

        Args:
            code: Normalized sync code.
            payload: Document payload.
            word: Shared word from the request.

        Returns:
            The stored payload.

        Raises:
            WordMismatchError: If the word does not match.
        """
        with self._session() as session:
            row = session.get(SyncStateRow, code)
            self.check_word(row, word)
            if row is None:
                row = SyncStateRow(code=code)
                session.add(row)
                logger.info("New sync code registered: %s", code)
            if row.word_hash is None and word:
                row.word_hash = hash_word(word)
            row.state = json.dumps(payload)
            row.updated_at = int(payload.get("updatedAt") or 0)
            row.device_id = str(payload.get("deviceId") or "")
            session.commit()
        return payload

