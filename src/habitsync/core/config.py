"""Shared configuration classes for habitsync.

This module defines configuration classes used by the client transports
and the sync engine.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from habitsync.core.types import BackendMode

# Serverless functions are queried directly instead of under /api/state
FUNCTION_ENDPOINT_MARKER = "/.netlify/functions/"


@dataclass
class BackendConfig:
    """Configuration for reaching the remote store.

    Attributes:
        mode: REST endpoint or direct table store.
        api_base: Base URL of the REST backend (e.g., "https://sync.example.com").
        table_url: Base URL of the table store project.
        table_key: API key of the table store.
        timeout: Request timeout in seconds.
        verify_ssl: Whether to verify SSL certificates (default True).
    """

    mode: BackendMode = BackendMode.REST
    api_base: str = ""
    table_url: str = ""
    table_key: str = ""
    timeout: float = 30.0
    verify_ssl: bool = True

    def __post_init__(self) -> None:
        """Normalize mode and URLs."""
        self.mode = BackendMode(self.mode)
        self.api_base = self.api_base.rstrip("/")
        self.table_url = self.table_url.rstrip("/")

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> BackendConfig:
        """Create from a client config dictionary.

        Unknown keys are ignored so the same file can hold other settings.
        """
        return cls(
            mode=BackendMode(data.get("backend", BackendMode.REST.value)),
            api_base=data.get("api_base") or "",
            table_url=data.get("table_url") or "",
            table_key=data.get("table_key") or "",
            timeout=float(data.get("timeout", 30.0)),
            verify_ssl=bool(data.get("verify_ssl", True)),
        )

    @property
    def is_configured(self) -> bool:
        """Check whether the selected backend has everything it needs."""
        if self.mode == BackendMode.TABLE:
            return bool(self.table_url and self.table_key)
        return bool(self.api_base)

    @property
    def state_url(self) -> str:
        """Get the REST endpoint holding the document.

        Returns:
            URL without query string.
        """
        if FUNCTION_ENDPOINT_MARKER in self.api_base:
            return self.api_base
        return f"{self.api_base}/api/state"


@dataclass
class SyncSettings:
    """Timing settings for the sync engine.

    Attributes:
        debounce_delay: Seconds after the last local mutation before pushing.
        poll_interval: Seconds between remote polls.
        remote_apply_window: Seconds during which a just-applied remote
            document suppresses the push-on-change watcher.
        persist_delay: Seconds to coalesce local store writes.
        connectivity_interval: Seconds between connectivity probes.
    """

    debounce_delay: float = 0.8
    poll_interval: float = 3.0
    remote_apply_window: float = 0.1
    persist_delay: float = 0.25
    connectivity_interval: float = 5.0
