"""Local persistent store for the sync client.

This module provides:
- LocalStore: SQLite-based durable key/value storage of the document
  and its sync metadata

Layout (key -> value):
    document-habits        JSON list of habits
    document-mood-log      JSON mental state
    document-school-data   JSON school data
    document-updated-at    logical clock (int)
    document-sync-code     active sync code
    document-sync-word     optional shared word
    device-id              stable per-installation identifier

Corrupted entries never propagate: loading falls back to defaults and
saving failures are logged.
"""

from __future__ import annotations

import json
import logging
import sqlite3
import threading
from pathlib import Path
from typing import Any

from habitsync.core.document import (
    Document,
    MalformedDocumentError,
    MentalState,
    default_habits,
    default_school_data,
    generate_device_id,
    parse_habits,
)

logger = logging.getLogger(__name__)

KEY_HABITS = "document-habits"
KEY_MOOD_LOG = "document-mood-log"
KEY_SCHOOL_DATA = "document-school-data"
KEY_UPDATED_AT = "document-updated-at"
KEY_SYNC_CODE = "document-sync-code"
KEY_SYNC_WORD = "document-sync-word"
KEY_DEVICE_ID = "device-id"


class LocalStore:
    """SQLite-backed key/value store surviving process restarts."""

    def __init__(self, db_path: Path | str) -> None:
        """Open (or create) the store.

        Args:
            db_path: Path to SQLite database file, or ":memory:".
        """
        self._db_path = db_path if db_path == ":memory:" else Path(db_path)
        if isinstance(self._db_path, Path):
            self._db_path.parent.mkdir(parents=True, exist_ok=True)

        # Lock for thread-safe database access
        self._lock = threading.RLock()

        self._conn = sqlite3.connect(
            str(self._db_path),
            check_same_thread=False,
            isolation_level=None,  # Autocommit mode
        )
        self._conn.row_factory = sqlite3.Row
        if isinstance(self._db_path, Path):
            self._conn.execute("PRAGMA journal_mode=WAL")

        self._conn.execute("""
            CREATE TABLE IF NOT EXISTS kv (
                key TEXT PRIMARY KEY,
                value TEXT
            )
        """)

    def close(self) -> None:
        """Close the database connection."""
        self._conn.close()

    # === Raw key/value ===

    def get(self, key: str) -> str | None:
        """Get a raw value."""
        with self._lock:
            cursor = self._conn.execute("SELECT value FROM kv WHERE key = ?", (key,))
            row = cursor.fetchone()
        return row["value"] if row else None

    def set(self, key: str, value: str) -> None:
        """Set a raw value."""
        with self._lock:
            self._conn.execute(
                "INSERT OR REPLACE INTO kv (key, value) VALUES (?, ?)",
                (key, value),
            )

    def delete(self, key: str) -> None:
        """Remove a key if present."""
        with self._lock:
            self._conn.execute("DELETE FROM kv WHERE key = ?", (key,))

    def get_json(self, key: str) -> Any:
        """Get a JSON value.

        Raises:
            json.JSONDecodeError: If the stored value is not valid JSON.
        """
        value = self.get(key)
        return json.loads(value) if value is not None else None

    def set_json(self, key: str, value: Any) -> None:
        """Set a JSON value."""
        self.set(key, json.dumps(value, ensure_ascii=False))

    # === Sync metadata ===

    @property
    def device_id(self) -> str:
        """Get the device id, generating and persisting it on first use."""
        device_id = self.get(KEY_DEVICE_ID)
        if not device_id:
            device_id = generate_device_id()
            self.set(KEY_DEVICE_ID, device_id)
            logger.info("Generated device id %s", device_id)
        return device_id

    def get_sync_code(self) -> str | None:
        """Get the active sync code."""
        return self.get(KEY_SYNC_CODE) or None

    def get_sync_word(self) -> str | None:
        """Get the shared word for the active code."""
        return self.get(KEY_SYNC_WORD) or None

    def set_sync_code(self, code: str | None, word: str | None = None) -> None:
        """Persist the active sync code (None clears it)."""
        if code:
            self.set(KEY_SYNC_CODE, code)
        else:
            self.delete(KEY_SYNC_CODE)
        if code and word:
            self.set(KEY_SYNC_WORD, word)
        else:
            self.delete(KEY_SYNC_WORD)

    # === Document ===

    def load_document(self) -> Document:
        """Load the document, falling back to defaults per field.

        Returns:
            Complete document (never partial).
        """
        document = Document(device_id=self.device_id)

        try:
            raw_habits = self.get_json(KEY_HABITS)
            if raw_habits is not None:
                document.habits = parse_habits(raw_habits)
        except (sqlite3.Error, json.JSONDecodeError, MalformedDocumentError) as e:
            logger.warning("Stored habits unreadable, using defaults: %s", e)
            document.habits = default_habits()

        try:
            raw_mood = self.get_json(KEY_MOOD_LOG)
            if raw_mood is not None:
                document.mental_state = MentalState.from_dict(raw_mood)
        except (sqlite3.Error, json.JSONDecodeError, MalformedDocumentError) as e:
            logger.warning("Stored mood log unreadable, using defaults: %s", e)
            document.mental_state = MentalState()

        school = default_school_data()
        try:
            raw_school = self.get_json(KEY_SCHOOL_DATA)
            if isinstance(raw_school, dict):
                school.update(raw_school)
        except (sqlite3.Error, json.JSONDecodeError) as e:
            logger.warning("Stored school data unreadable, using defaults: %s", e)
        document.school_data = school

        document.updated_at = self.load_updated_at()
        return document

    def load_updated_at(self) -> int:
        """Load only the stored clock (0 if missing or unreadable)."""
        try:
            value = self.get(KEY_UPDATED_AT)
            return int(value) if value else 0
        except (sqlite3.Error, ValueError) as e:
            logger.warning("Stored clock unreadable, resetting to 0: %s", e)
            return 0

    def save_document(self, document: Document) -> None:
        """Persist the document's collections and clock.

        Failures are logged, not raised.
        """
        payload = document.to_payload()
        try:
            with self._lock:
                if "habits" in payload:
                    self.set_json(KEY_HABITS, payload["habits"])
                if "mentalState" in payload:
                    self.set_json(KEY_MOOD_LOG, payload["mentalState"])
                if "schoolData" in payload:
                    self.set_json(KEY_SCHOOL_DATA, payload["schoolData"])
                self.set(KEY_UPDATED_AT, str(document.updated_at))
        except sqlite3.Error as e:
            logger.warning("Failed to persist document: %s", e)
