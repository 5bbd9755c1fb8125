"""Shared types for sync operations.

This module provides:
- SyncError, TransportError, NotConfiguredError: Exception classes
- ValidationError: Rejected local mutation input
- SyncStatus: Status exposed for display
- SyncTrigger: Why a sync cycle started
- Type aliases for callbacks
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum

from habitsync.core.types import SyncState


class SyncError(Exception):
    """Base exception for sync errors."""


class TransportError(SyncError):
    """Remote backend failed or was unreachable.

    Attributes:
        status_code: HTTP status if the backend answered, else None.
    """

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class NotConfiguredError(TransportError):
    """Selected backend is missing its endpoint or key."""


class ValidationError(ValueError):
    """Local mutation input rejected before reaching the document."""


class SyncTrigger(str, Enum):
    """What started a sync cycle."""

    INIT = "init"
    DEBOUNCE = "debounce"
    POLL = "poll"
    RECONNECT = "reconnect"


@dataclass(frozen=True)
class SyncStatus:
    """Status of the active sync session.

    Attributes:
        state: Current state.
        error: Last error message (empty unless state is ERROR).
        last_synced_at: Wall-clock seconds of the last successful exchange.
    """

    state: SyncState = SyncState.IDLE
    error: str = ""
    last_synced_at: float | None = None


# Type alias for status callback
StatusCallback = Callable[[SyncStatus], None]
