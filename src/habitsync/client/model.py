"""In-memory document model.

This module provides:
- DocumentModel: Holds the current Document and offers the two atomic
  update primitives used by everything else:
  * apply_local_mutation: user edits (bumps the clock, marks dirty)
  * apply_remote_document: remote wins (overwrites, marks remote applied)
- Validated habit and mood mutations built on apply_local_mutation

Every change is persisted to the local store, coalesced over
SyncSettings.persist_delay when an event loop is running.
"""

from __future__ import annotations

import asyncio
import copy
import logging
from collections.abc import Callable
from typing import TYPE_CHECKING, Any

from habitsync.client.sync.tracker import ChangeTracker
from habitsync.client.sync.types import ValidationError
from habitsync.core.config import SyncSettings
from habitsync.core.document import (
    MOOD_FIELDS,
    Document,
    Habit,
    MalformedDocumentError,
    MentalState,
    MoodEntry,
    generate_device_id,
    is_date_key,
    next_clock,
)

if TYPE_CHECKING:
    from habitsync.client.store import LocalStore

logger = logging.getLogger(__name__)

MAX_GOAL = 31
MAX_MOOD = 10

# Type alias for a draft editor
Mutation = Callable[[Document], Any]


class DocumentModel:
    """Owner of the single in-memory Document.

    Usage:
        model = DocumentModel(store)
        model.toggle_habit(1, "2025-01-15")
        model.update_mood("2025-01-15", "mood", 7)
        model.flush()
    """

    def __init__(
        self,
        store: LocalStore | None = None,
        tracker: ChangeTracker | None = None,
        settings: SyncSettings | None = None,
        document: Document | None = None,
    ) -> None:
        """Initialize the model.

        Args:
            store: Local store to load from and persist to (None = memory only).
            tracker: Change tracker shared with the sync engine.
            settings: Timing settings.
            document: Initial document (defaults to what the store holds).
        """
        self._store = store
        self.tracker = tracker or ChangeTracker()
        self._settings = settings or SyncSettings()

        if document is None:
            document = store.load_document() if store else Document()
        if not document.device_id:
            document.device_id = store.device_id if store else generate_device_id()
        self._document = document

        self._listeners: list[Callable[[], None]] = []
        self._persist_handle: asyncio.TimerHandle | None = None

    @property
    def document(self) -> Document:
        """Get the live document. Treat as read-only."""
        return self._document

    @property
    def updated_at(self) -> int:
        """Get the logical clock of the current state."""
        return self._document.updated_at

    @property
    def device_id(self) -> str:
        """Get this installation's device id."""
        return self._document.device_id

    def snapshot(self) -> Document:
        """Get a deep copy of the current document."""
        return self._document.copy()

    def add_listener(self, callback: Callable[[], None]) -> None:
        """Register a callback invoked after each local mutation."""
        self._listeners.append(callback)

    def remove_listener(self, callback: Callable[[], None]) -> None:
        """Unregister a local mutation callback."""
        if callback in self._listeners:
            self._listeners.remove(callback)

    # === Update primitives ===

    def apply_local_mutation(self, update: Mutation) -> Document:
        """Apply a user edit.

        The update runs on a draft; if it raises, the current document
        is left unchanged.

        Args:
            update: Function editing the draft document in place.

        Returns:
            The new current document.
        """
        draft = self._document.copy()
        update(draft)
        draft.updated_at = next_clock(self._document.updated_at)
        draft.device_id = self._document.device_id
        self._document = draft

        self.tracker.mark_local_change()
        self._schedule_persist()
        for listener in list(self._listeners):
            listener()
        return draft

    def apply_remote_document(self, remote: Document) -> bool:
        """Replace local state with a remote document.

        Collections absent from the remote payload keep their local value.

        Args:
            remote: Document fetched from the remote store.

        Returns:
            True if applied, False if the payload lacks the minimum shape.
        """
        if not remote.is_applicable:
            logger.warning("Refusing to apply remote document without habits/mood log")
            return False

        document = self._document
        document.habits = copy.deepcopy(remote.habits)
        document.mental_state = copy.deepcopy(remote.mental_state)
        if remote.school_data is not None:
            document.school_data = copy.deepcopy(remote.school_data)
        document.updated_at = remote.updated_at

        self.tracker.mark_remote_applied(self._settings.remote_apply_window)
        self._schedule_persist()
        logger.info(
            "Applied remote document (updatedAt=%d, device=%s)",
            remote.updated_at,
            remote.device_id or "?",
        )
        return True

    def stamp(self, updated_at: int) -> None:
        """Set the clock without marking a local change.

        Used when a push stamps the document with the push time. The
        value must not go backwards.
        """
        if updated_at < self._document.updated_at:
            raise ValueError("Logical clock cannot be decremented")
        self._document.updated_at = updated_at
        self._schedule_persist()

    # === Persistence ===

    def reload_from_store(self) -> bool:
        """Adopt edits another process saved to the local store.

        Only a stored clock newer than the in-memory one is adopted; it is
        treated as a local mutation so that it gets pushed.

        Returns:
            True if the stored document replaced the in-memory one.
        """
        if self._store is None:
            return False
        if self._store.load_updated_at() <= self._document.updated_at:
            return False
        document = self._store.load_document()
        document.device_id = self._document.device_id
        self._document = document

        self.tracker.mark_local_change()
        for listener in list(self._listeners):
            listener()
        logger.info("Reloaded local store (updatedAt=%d)", document.updated_at)
        return True

    def _schedule_persist(self) -> None:
        if self._store is None:
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            self.flush()
            return
        if self._persist_handle is not None:
            self._persist_handle.cancel()
        self._persist_handle = loop.call_later(self._settings.persist_delay, self.flush)

    def flush(self) -> None:
        """Write the current document to the local store now."""
        if self._persist_handle is not None:
            self._persist_handle.cancel()
            self._persist_handle = None
        if self._store is not None:
            self._store.save_document(self._document)

    # === Habit mutations ===

    def get_habit(self, habit_id: int) -> Habit:
        """Get a habit by id.

        Raises:
            ValidationError: If no habit has this id.
        """
        return _find_habit(self._document, habit_id)

    def toggle_habit(self, habit_id: int, date_key: str) -> bool:
        """Flip completion of a habit on a date.

        Returns:
            True if the habit is now marked done.
        """
        _require_date_key(date_key)
        self.get_habit(habit_id)

        def update(draft: Document) -> None:
            habit = _find_habit(draft, habit_id)
            if date_key in habit.completed_dates:
                habit.completed_dates.discard(date_key)
            else:
                habit.completed_dates.add(date_key)

        return _find_habit(self.apply_local_mutation(update), habit_id).is_done(date_key)

    def add_habit(self, name: str = "New habit", icon: str = "Check", goal: int = 30) -> Habit:
        """Append a new habit with the next free id."""
        name = _require_name(name)
        _require_goal(goal)
        habits = self._document.habits or []
        habit = Habit(id=max((h.id for h in habits), default=0) + 1, name=name, icon=icon, goal=goal)

        def update(draft: Document) -> None:
            draft.habits = [*(draft.habits or []), copy.deepcopy(habit)]

        self.apply_local_mutation(update)
        return habit

    def rename_habit(self, habit_id: int, name: str) -> None:
        """Rename a habit."""
        name = _require_name(name)
        self._update_habit(habit_id, name=name)

    def set_goal(self, habit_id: int, goal: int) -> None:
        """Change a habit's monthly goal (0..31)."""
        _require_goal(goal)
        self._update_habit(habit_id, goal=goal)

    def set_icon(self, habit_id: int, icon: str) -> None:
        """Change a habit's icon."""
        self._update_habit(habit_id, icon=icon)

    def set_color(self, habit_id: int, color: str | None) -> None:
        """Change a habit's display color (None clears it)."""
        self._update_habit(habit_id, color=color)

    def delete_habit(self, habit_id: int) -> None:
        """Remove a habit and its history."""
        self.get_habit(habit_id)

        def update(draft: Document) -> None:
            draft.habits = [h for h in draft.habits or [] if h.id != habit_id]

        self.apply_local_mutation(update)

    def _update_habit(self, habit_id: int, **fields: Any) -> None:
        self.get_habit(habit_id)

        def update(draft: Document) -> None:
            habit = _find_habit(draft, habit_id)
            for name, value in fields.items():
                setattr(habit, name, value)

        self.apply_local_mutation(update)

    # === Mood mutations ===

    def update_mood(self, date_key: str, field: str, value: int) -> MoodEntry:
        """Log mood or motivation for a date.

        Args:
            date_key: YYYY-MM-DD.
            field: "mood" or "motivation".
            value: 0..10 (0 clears the value).

        Returns:
            The updated entry.
        """
        _require_date_key(date_key)
        if field not in MOOD_FIELDS:
            raise ValidationError(f"Unknown mood field: {field}")
        if not isinstance(value, int) or not 0 <= value <= MAX_MOOD:
            raise ValidationError(f"{field} must be between 0 and {MAX_MOOD}, got {value}")

        result: list[MoodEntry] = []

        def update(draft: Document) -> None:
            if draft.mental_state is None:
                draft.mental_state = MentalState()
            entry = copy.copy(draft.mental_state.get(date_key))
            setattr(entry, field, value)
            draft.mental_state.logs[date_key] = entry
            result.append(entry)

        self.apply_local_mutation(update)
        return result[0]

    def mood_entry(self, date_key: str) -> MoodEntry:
        """Get the mood entry for a date (zeros if nothing is logged)."""
        mental_state = self._document.mental_state or MentalState()
        return mental_state.get(date_key)

    # === School data ===

    def update_school(self, operation: Callable[..., Any], *args: Any, **kwargs: Any) -> Any:
        """Run a school helper (see habitsync.client.school) as a local mutation.

        Returns:
            Whatever the helper returns.
        """
        result: list[Any] = []

        def update(draft: Document) -> None:
            if draft.school_data is None:
                draft.school_data = {}
            result.append(operation(draft.school_data, *args, **kwargs))

        self.apply_local_mutation(update)
        return result[0]

    # === Import ===

    def replace_document(self, payload: dict[str, Any]) -> None:
        """Import a full document payload as a local edit.

        Raises:
            ValidationError: If habits or mentalState are missing or malformed.
        """
        try:
            incoming = Document.from_payload(payload)
        except MalformedDocumentError as e:
            raise ValidationError(str(e)) from e
        if not incoming.is_applicable:
            raise ValidationError("Import requires habits and mentalState")

        def update(draft: Document) -> None:
            draft.habits = incoming.habits
            draft.mental_state = incoming.mental_state
            if incoming.school_data is not None:
                draft.school_data = incoming.school_data

        self.apply_local_mutation(update)


def _find_habit(document: Document, habit_id: int) -> Habit:
    for habit in document.habits or []:
        if habit.id == habit_id:
            return habit
    raise ValidationError(f"Unknown habit: {habit_id}")


def _require_date_key(date_key: str) -> None:
    if not is_date_key(date_key):
        raise ValidationError(f"Invalid date key: {date_key!r} (expected YYYY-MM-DD)")


def _require_name(name: str) -> str:
    name = name.strip()
    if not name:
        raise ValidationError("Name must not be empty")
    return name


def _require_goal(goal: int) -> None:
    if not isinstance(goal, int) or not 0 <= goal <= MAX_GOAL:
        raise ValidationError(f"Goal must be between 0 and {MAX_GOAL}, got {goal}")
