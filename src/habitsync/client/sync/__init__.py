"""Sync of the single tracker document with a remote store.

Architecture:
    DocumentModel → ChangeTracker ← SyncEngine → RemoteTransport

Components:
- **ChangeTracker**: Dirty flag and remote-apply suppression window
- **SyncEngine / SyncSession**: Init, debounced push, poll and reconnect triggers
- **RemoteTransport**: REST or table-store backend (create_transport)
- **ConnectivityMonitor**: Online/offline transitions

Conflicts resolve last-writer-wins on the document's `updatedAt` clock.
"""

from habitsync.client.sync.connectivity import ConnectivityMonitor
from habitsync.client.sync.engine import SyncEngine, SyncSession
from habitsync.client.sync.tracker import ChangeTracker
from habitsync.client.sync.transport import RemoteTransport, create_transport
from habitsync.client.sync.types import (
    NotConfiguredError,
    StatusCallback,
    SyncError,
    SyncStatus,
    SyncTrigger,
    TransportError,
    ValidationError,
)

__all__ = [
    # Components
    "ChangeTracker",
    "ConnectivityMonitor",
    "RemoteTransport",
    "SyncEngine",
    "SyncSession",
    "create_transport",
    # Types
    "NotConfiguredError",
    "StatusCallback",
    "SyncError",
    "SyncStatus",
    "SyncTrigger",
    "TransportError",
    "ValidationError",
]
