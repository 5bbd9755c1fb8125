"""Remote transport abstraction.

This module provides:
- RemoteTransport: Protocol implemented by every backend
- create_transport: Factory building a transport from BackendConfig
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol

from habitsync.core.types import BackendMode

if TYPE_CHECKING:
    import httpx

    from habitsync.core.config import BackendConfig
    from habitsync.core.document import Document


class RemoteTransport(Protocol):
    """Protocol for remote document stores.

    Implementations normalize the sync code before using it as a key.
    """

    async def fetch(self, code: str, word: str | None = None) -> Document | None:
        """Fetch the remote document.

        Returns:
            The document, the empty document (updatedAt=0) if nothing is
            stored yet, or None if the backend is unusable.
        """
        ...

    async def push(self, code: str, document: Document, word: str | None = None) -> Document:
        """Store the full document and return what was stored."""
        ...

    async def ping(self) -> bool:
        """Check if the backend is reachable."""
        ...

    async def aclose(self) -> None:
        """Release network resources."""
        ...


def create_transport(
    config: BackendConfig,
    client: httpx.AsyncClient | None = None,
) -> RemoteTransport:
    """Factory function to create a transport from configuration.

    Args:
        config: Backend configuration.
        client: Optional shared HTTP client.

    Returns:
        Configured transport.

    Raises:
        ValueError: If the backend mode is unknown.
    """
    if config.mode == BackendMode.REST:
        from habitsync.client.api import RestTransport

        return RestTransport(config, client)

    if config.mode == BackendMode.TABLE:
        from habitsync.client.table_store import TableStoreTransport

        return TableStoreTransport(config, client)

    raise ValueError(f"Unknown backend mode: {config.mode}")
