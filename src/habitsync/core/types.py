"""Shared types for habitsync.

This module defines enums used by both client and server.
"""

from __future__ import annotations

from enum import Enum


class SyncState(str, Enum):
    """Sync state of a session.

    A session enters SYNCING on every trigger and settles on
    SYNCED or ERROR.
    """

    IDLE = "idle"
    SYNCING = "syncing"
    SYNCED = "synced"
    ERROR = "error"


class BackendMode(str, Enum):
    """Shape of the remote backend."""

    REST = "rest"
    TABLE = "table"
