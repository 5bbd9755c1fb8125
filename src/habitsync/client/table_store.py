"""Direct table-store transport.

This module provides:
- TableStoreTransport: one row per normalized sync code in a
  PostgREST-style table, upserted on every push

Table layout (sync_states):
    code        TEXT PRIMARY KEY   normalized sync code
    state       JSONB              serialized document
    updated_at  TIMESTAMPTZ        wall-clock time of the push

Without URL and key the backend is unusable: fetch returns None (keep
local state) and push raises NotConfiguredError.
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime

import httpx

from habitsync.client.api import error_message
from habitsync.client.sync.types import NotConfiguredError, TransportError
from habitsync.core.config import BackendConfig
from habitsync.core.document import Document, MalformedDocumentError, normalize_sync_code

logger = logging.getLogger(__name__)

TABLE_NAME = "sync_states"

# PostgREST error code for "no rows" on single-object requests
NO_ROWS_CODE = "PGRST116"


class TableStoreTransport:
    """Async client for a row-per-code table store."""

    def __init__(
        self,
        config: BackendConfig,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialize the transport.

        Args:
            config: Backend configuration (uses table_url and table_key).
            client: Pre-built client (tests inject one); created if None.
        """
        self._config = config
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            timeout=config.timeout,
            verify=config.verify_ssl,
        )

    @property
    def is_configured(self) -> bool:
        """Check if URL and key are both set."""
        return bool(self._config.table_url and self._config.table_key)

    @property
    def table_endpoint(self) -> str:
        """Get the REST endpoint of the sync table."""
        return f"{self._config.table_url}/rest/v1/{TABLE_NAME}"

    def _headers(self) -> dict[str, str]:
        return {
            "apikey": self._config.table_key,
            "Authorization": f"Bearer {self._config.table_key}",
        }

    async def aclose(self) -> None:
        """Close the HTTP client if this transport created it."""
        if self._owns_client:
            await self._client.aclose()

    @staticmethod
    def _key(code: str) -> str:
        safe_code = normalize_sync_code(code)
        if not safe_code:
            raise ValueError(f"Invalid sync code: {code!r}")
        return safe_code

    async def fetch(self, code: str, word: str | None = None) -> Document | None:
        """Fetch the row for a code.

        The word is not used by the table store.

        Returns:
            Remote document, the empty document if no row exists,
            or None if the table store is not configured.

        Raises:
            TransportError: On network or database errors.
        """
        if not self.is_configured:
            logger.debug("Table store not configured, skipping fetch")
            return None
        try:
            response = await self._client.get(
                self.table_endpoint,
                params={"select": "state", "code": f"eq.{self._key(code)}"},
                headers=self._headers(),
            )
        except httpx.RequestError as e:
            raise TransportError(f"Connection error: {e}") from e

        if response.status_code >= 400:
            if _error_code(response) == NO_ROWS_CODE:
                return Document.empty()
            raise TransportError(
                f"Database error: {error_message(response)} (check URL and key)",
                response.status_code,
            )

        try:
            rows = response.json()
        except ValueError as e:
            raise TransportError("Invalid JSON from table store", response.status_code) from e
        if not rows or rows[0].get("state") is None:
            return Document.empty()
        try:
            return Document.from_payload(rows[0]["state"])
        except MalformedDocumentError as e:
            raise TransportError(str(e), response.status_code) from e

    async def push(self, code: str, document: Document, word: str | None = None) -> Document:
        """Upsert the row for a code with the full document.

        Returns:
            The stored document.

        Raises:
            NotConfiguredError: If URL or key is missing.
            TransportError: On network or database errors.
        """
        if not self.is_configured:
            raise NotConfiguredError("Table store not configured: set table URL and key")

        row = {
            "code": self._key(code),
            "state": document.to_payload(),
            "updated_at": datetime.fromtimestamp(document.updated_at / 1000, tz=UTC).isoformat(),
        }
        try:
            response = await self._client.post(
                self.table_endpoint,
                params={"on_conflict": "code"},
                json=row,
                headers={
                    **self._headers(),
                    "Prefer": "resolution=merge-duplicates,return=representation",
                },
            )
        except httpx.RequestError as e:
            raise TransportError(f"Connection error: {e}") from e
        if response.status_code >= 400:
            raise TransportError(
                f"Database error: {error_message(response)}",
                response.status_code,
            )

        try:
            rows = response.json()
            echo = Document.from_payload(rows[0]["state"])
        except (ValueError, LookupError, TypeError, MalformedDocumentError):
            return document.copy()
        return echo if echo.is_applicable else document.copy()

    async def ping(self) -> bool:
        """Check if the table store is reachable."""
        if not self.is_configured:
            return False
        try:
            await self._client.get(f"{self._config.table_url}/rest/v1/", headers=self._headers())
        except httpx.RequestError:
            return False
        return True


def _error_code(response: httpx.Response) -> str | None:
    try:
        data = response.json()
    except ValueError:
        return None
    return data.get("code") if isinstance(data, dict) else None
