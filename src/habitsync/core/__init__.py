"""Core module - Shared document model, config, and types."""

from habitsync.core.config import BackendConfig, SyncSettings
from habitsync.core.document import (
    Document,
    Habit,
    MalformedDocumentError,
    MentalState,
    MoodEntry,
    default_habits,
    default_school_data,
    generate_device_id,
    next_clock,
    normalize_sync_code,
    now_ms,
)
from habitsync.core.types import BackendMode, SyncState

__all__ = [
    # Config
    "BackendConfig",
    "SyncSettings",
    # Document
    "Document",
    "Habit",
    "MalformedDocumentError",
    "MentalState",
    "MoodEntry",
    "default_habits",
    "default_school_data",
    "generate_device_id",
    "next_clock",
    "normalize_sync_code",
    "now_ms",
    # Types
    "BackendMode",
    "SyncState",
]
