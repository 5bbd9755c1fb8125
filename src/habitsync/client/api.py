"""HTTP transport for a REST sync backend.

This module provides:
- RestTransport: fetch/push the whole document at {api_base}/api/state

Wire format:
    GET  {state_url}?code=<code>&word=<word>  -> 200 JSON document
    POST {state_url}?code=<code>&word=<word>  body: JSON document -> 200
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from habitsync.client.sync.types import NotConfiguredError, TransportError
from habitsync.core.config import BackendConfig
from habitsync.core.document import Document, MalformedDocumentError, normalize_sync_code

logger = logging.getLogger(__name__)


class AuthenticationError(TransportError):
    """Sync word rejected by the backend."""


def error_message(response: httpx.Response) -> str:
    """Extract a human-readable error from a failed response.

    Uses the JSON `error` or `detail` field when present.
    """
    try:
        data: Any = response.json()
    except ValueError:
        data = None
    if isinstance(data, dict):
        detail = data.get("error") or data.get("detail")
        if isinstance(detail, str) and detail:
            return detail
    return f"Server error: {response.status_code}"


class RestTransport:
    """Async HTTP client for a REST sync backend."""

    def __init__(
        self,
        config: BackendConfig,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialize the transport.

        Args:
            config: Backend configuration (uses api_base and timeout).
            client: Pre-built client (tests inject one); created if None.
        """
        self._config = config
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            timeout=config.timeout,
            verify=config.verify_ssl,
        )

    async def aclose(self) -> None:
        """Close the HTTP client if this transport created it."""
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> RestTransport:
        """Context manager entry."""
        return self

    async def __aexit__(self, *args: object) -> None:
        """Context manager exit."""
        await self.aclose()

    def _params(self, code: str, word: str | None) -> dict[str, str]:
        if not self._config.api_base:
            raise NotConfiguredError("No backend URL configured")
        safe_code = normalize_sync_code(code)
        if not safe_code:
            raise ValueError(f"Invalid sync code: {code!r}")
        params = {"code": safe_code}
        if word:
            params["word"] = word
        return params

    def _handle_response(self, response: httpx.Response) -> httpx.Response:
        """Raise TransportError for any non-2xx response."""
        if response.status_code in (401, 403):
            raise AuthenticationError(error_message(response), response.status_code)
        if response.status_code >= 400:
            raise TransportError(error_message(response), response.status_code)
        return response

    async def fetch(self, code: str, word: str | None = None) -> Document:
        """Fetch the remote document for a code.

        Args:
            code: Sync code (normalized before use).
            word: Optional shared word.

        Returns:
            Remote document; the empty document (updatedAt=0) if the
            backend holds nothing for this code yet.

        Raises:
            TransportError: On network failure, non-2xx status or non-JSON body.
        """
        params = self._params(code, word)
        try:
            response = await self._client.get(
                self._config.state_url,
                params=params,
                headers={"Cache-Control": "no-store"},
            )
        except httpx.RequestError as e:
            raise TransportError(f"Connection error: {e}") from e
        self._handle_response(response)

        try:
            data = response.json()
        except ValueError as e:
            raise TransportError("Invalid JSON from server", response.status_code) from e
        if data is None:
            return Document.empty()
        try:
            return Document.from_payload(data)
        except MalformedDocumentError as e:
            raise TransportError(str(e), response.status_code) from e

    async def push(self, code: str, document: Document, word: str | None = None) -> Document:
        """Store the full document for a code.

        Returns:
            The document as stored (the server echo when it sends one).

        Raises:
            TransportError: On network failure or non-2xx status.
        """
        params = self._params(code, word)
        try:
            response = await self._client.post(
                self._config.state_url,
                params=params,
                json=document.to_payload(),
            )
        except httpx.RequestError as e:
            raise TransportError(f"Connection error: {e}") from e
        self._handle_response(response)

        try:
            echo = Document.from_payload(response.json())
        except (ValueError, MalformedDocumentError):
            return document.copy()
        return echo if echo.is_applicable else document.copy()

    async def ping(self) -> bool:
        """Check if the backend is reachable.

        Any HTTP answer counts as reachable.
        """
        if not self._config.api_base:
            return False
        try:
            await self._client.head(self._config.state_url)
        except httpx.RequestError:
            return False
        return True
