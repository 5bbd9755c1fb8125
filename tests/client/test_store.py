"""Tests for the local persistent store."""

from __future__ import annotations

from collections.abc import Generator
from pathlib import Path

import pytest

from habitsync.client.store import (
    KEY_HABITS,
    KEY_MOOD_LOG,
    KEY_SCHOOL_DATA,
    KEY_UPDATED_AT,
    LocalStore,
)
from habitsync.core.document import Document, Habit, MentalState, MoodEntry


@pytest.fixture
def store(tmp_path: Path) -> Generator[LocalStore, None, None]:
    """Create a store in a temporary directory."""
    local_store = LocalStore(tmp_path / "state.db")
    yield local_store
    local_store.close()


class TestKeyValue:
    """Tests for raw key/value access."""

    def test_missing_key(self, store: LocalStore) -> None:
        """Missing keys should read as None."""
        assert store.get("nope") is None
        assert store.get_json("nope") is None

    def test_set_get_delete(self, store: LocalStore) -> None:
        """Should store, replace and delete values."""
        store.set("k", "1")
        store.set("k", "2")
        assert store.get("k") == "2"
        store.delete("k")
        assert store.get("k") is None

    def test_json(self, store: LocalStore) -> None:
        """Should store JSON values."""
        store.set_json("k", {"a": [1, 2]})
        assert store.get_json("k") == {"a": [1, 2]}

    def test_survives_reopen(self, tmp_path: Path) -> None:
        """Values should survive closing and reopening."""
        first = LocalStore(tmp_path / "state.db")
        first.set("k", "v")
        first.close()

        second = LocalStore(tmp_path / "state.db")
        assert second.get("k") == "v"
        second.close()


class TestSyncMetadata:
    """Tests for device id and sync code storage."""

    def test_device_id_stable(self, store: LocalStore) -> None:
        """Device id should be generated once and reused."""
        device_id = store.device_id
        assert device_id.startswith("dev-")
        assert store.device_id == device_id

    def test_sync_code(self, store: LocalStore) -> None:
        """Should store code and word together."""
        assert store.get_sync_code() is None
        store.set_sync_code("family", "secret")
        assert store.get_sync_code() == "family"
        assert store.get_sync_word() == "secret"

    def test_clear_sync_code_clears_word(self, store: LocalStore) -> None:
        """Clearing the code should also clear the word."""
        store.set_sync_code("family", "secret")
        store.set_sync_code(None)
        assert store.get_sync_code() is None
        assert store.get_sync_word() is None

    def test_new_code_without_word(self, store: LocalStore) -> None:
        """Switching to a code without a word should drop the old word."""
        store.set_sync_code("family", "secret")
        store.set_sync_code("school")
        assert store.get_sync_word() is None


class TestDocument:
    """Tests for loading and saving the document."""

    def test_defaults_when_empty(self, store: LocalStore) -> None:
        """A fresh store should load the default document."""
        document = store.load_document()
        assert len(document.habits or []) == 8
        assert document.mental_state == MentalState()
        assert document.school_data is not None
        assert document.school_data["maxGrade"] == 10
        assert document.updated_at == 0
        assert document.device_id == store.device_id

    def test_save_and_load(self, store: LocalStore) -> None:
        """Should load what was saved."""
        document = Document(
            habits=[Habit(id=1, name="Read", completed_dates={"2025-01-01"})],
            mental_state=MentalState(logs={"2025-01-01": MoodEntry(mood=6, motivation=4)}),
            school_data={"subjects": [{"id": "s1", "name": "Math", "grades": []}], "theme": "light"},
            updated_at=1234,
        )
        store.save_document(document)

        loaded = store.load_document()
        assert loaded.habits == document.habits
        assert loaded.mental_state == document.mental_state
        assert loaded.updated_at == 1234

    def test_school_data_merged_over_defaults(self, store: LocalStore) -> None:
        """Stored school data should be completed with default fields."""
        store.set_json(KEY_SCHOOL_DATA, {"subjects": [], "theme": "light"})
        school = store.load_document().school_data
        assert school == {"subjects": [], "tests": [], "maxGrade": 10, "theme": "light"}

    def test_corrupt_habits_fall_back(self, store: LocalStore) -> None:
        """Unparseable habits should fall back to defaults."""
        store.set(KEY_HABITS, "{not json")
        store.set_json(KEY_MOOD_LOG, {"logs": {"2025-01-01": {"mood": 3, "motivation": 2}}})
        document = store.load_document()
        assert len(document.habits or []) == 8
        assert document.mental_state is not None
        assert document.mental_state.get("2025-01-01").mood == 3

    def test_corrupt_mood_log_falls_back(self, store: LocalStore) -> None:
        """A malformed mood log should fall back to an empty one."""
        store.set_json(KEY_MOOD_LOG, ["not", "a", "log"])
        assert store.load_document().mental_state == MentalState()

    def test_corrupt_clock_resets(self, store: LocalStore) -> None:
        """A non-numeric clock should read as 0."""
        store.set(KEY_UPDATED_AT, "yesterday")
        assert store.load_document().updated_at == 0

    def test_load_updated_at(self, store: LocalStore) -> None:
        """The clock should be readable without loading the document."""
        assert store.load_updated_at() == 0
        store.save_document(Document(updated_at=4321))
        assert store.load_updated_at() == 4321

    def test_save_failure_logged(self, tmp_path: Path, caplog: pytest.LogCaptureFixture) -> None:
        """Save errors should be logged, not raised."""
        local_store = LocalStore(tmp_path / "state.db")
        local_store.close()
        local_store.save_document(Document())
        assert "Failed to persist document" in caplog.text
