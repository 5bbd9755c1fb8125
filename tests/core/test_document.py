"""Tests for the synchronized document and its wire format."""

from __future__ import annotations

from unittest.mock import patch

import pytest

from habitsync.core.document import (
    Document,
    Habit,
    MalformedDocumentError,
    MentalState,
    MoodEntry,
    default_habits,
    generate_device_id,
    is_date_key,
    next_clock,
    normalize_sync_code,
)


class TestNormalizeSyncCode:
    """Tests for sync code normalization."""

    def test_strips_and_lowercases(self) -> None:
        """Should keep only letters, digits, '-' and '_', lowercased."""
        assert normalize_sync_code("My Family!") == "myfamily"
        assert normalize_sync_code("Team_A-2") == "team_a-2"

    def test_non_ascii_removed(self) -> None:
        """Should drop non-ASCII letters."""
        assert normalize_sync_code("café") == "caf"

    def test_empty_result(self) -> None:
        """Should return an empty string when nothing is left."""
        assert normalize_sync_code("!!! ") == ""


class TestClock:
    """Tests for the logical clock."""

    def test_strictly_increasing(self) -> None:
        """Should exceed the previous value even within one millisecond."""
        with patch("habitsync.core.document.now_ms", return_value=1000):
            assert next_clock(0) == 1000
            assert next_clock(1000) == 1001
            assert next_clock(5000) == 5001

    def test_uses_wall_clock(self) -> None:
        """Should use wall-clock time when ahead of the previous value."""
        with patch("habitsync.core.document.now_ms", return_value=2000):
            assert next_clock(1500) == 2000


class TestHelpers:
    """Tests for small document helpers."""

    def test_device_id_format(self) -> None:
        """Device ids should be 'dev-' plus random hex."""
        device_id = generate_device_id()
        assert device_id.startswith("dev-")
        assert len(device_id) > 4
        assert generate_device_id() != device_id

    def test_is_date_key(self) -> None:
        """Should accept YYYY-MM-DD strings only."""
        assert is_date_key("2025-01-15")
        assert not is_date_key("2025-1-15")
        assert not is_date_key(20250115)

    def test_default_habits(self) -> None:
        """A fresh install should have eight habits with ids 1..8."""
        habits = default_habits()
        assert [h.id for h in habits] == list(range(1, 9))
        assert [h.goal for h in habits] == [31, 25, 20, 31, 31, 31, 31, 30]
        assert all(not h.completed_dates for h in habits)


class TestHabit:
    """Tests for Habit wire format."""

    def test_to_dict(self) -> None:
        """Should serialize camelCase with completed dates as a map."""
        habit = Habit(id=1, name="Read", icon="Book", goal=20, completed_dates={"2025-01-02", "2025-01-01"})
        assert habit.to_dict() == {
            "id": 1,
            "name": "Read",
            "icon": "Book",
            "goal": 20,
            "completedDates": {"2025-01-01": True, "2025-01-02": True},
        }

    def test_color_included_when_set(self) -> None:
        """Should only serialize color when present."""
        assert Habit(id=1, name="Read", color="#ff0000").to_dict()["color"] == "#ff0000"
        assert "color" not in Habit(id=1, name="Read").to_dict()

    def test_from_dict_drops_false_flags(self) -> None:
        """Dates flagged false should not count as completed."""
        habit = Habit.from_dict(
            {"id": 2, "name": "Run", "completedDates": {"2025-01-01": True, "2025-01-02": False}}
        )
        assert habit.completed_dates == {"2025-01-01"}
        assert habit.icon == "Check"

    def test_from_dict_accepts_list(self) -> None:
        """Should accept completed dates as a list."""
        habit = Habit.from_dict({"id": 2, "name": "Run", "completedDates": ["2025-01-01"]})
        assert habit.is_done("2025-01-01")

    def test_from_dict_missing_name(self) -> None:
        """Should reject a record without a name."""
        with pytest.raises(MalformedDocumentError):
            Habit.from_dict({"id": 2})


class TestMentalState:
    """Tests for the mood log."""

    def test_get_missing_day(self) -> None:
        """An unlogged day should read as zeros."""
        assert MentalState().get("2025-01-01") == MoodEntry(0, 0)

    def test_round_trip(self) -> None:
        """Should parse what it serializes."""
        state = MentalState(logs={"2025-01-01": MoodEntry(mood=7, motivation=5)})
        assert MentalState.from_dict(state.to_dict()) == state

    def test_invalid_entry(self) -> None:
        """Should reject a non-object entry."""
        with pytest.raises(MalformedDocumentError):
            MentalState.from_dict({"logs": {"2025-01-01": 7}})


class TestDocument:
    """Tests for Document."""

    def test_defaults(self) -> None:
        """A new document should hold the defaults with clock 0."""
        document = Document()
        assert len(document.habits or []) == 8
        assert document.mental_state == MentalState()
        assert document.school_data == {"subjects": [], "tests": [], "maxGrade": 10, "theme": "dark"}
        assert document.updated_at == 0

    def test_empty_sentinel(self) -> None:
        """The empty sentinel should be applicable with clock 0."""
        empty = Document.empty()
        assert empty.updated_at == 0
        assert empty.habits == []
        assert empty.school_data == {"subjects": []}
        assert empty.is_applicable

    def test_payload_keys(self) -> None:
        """Should serialize the camelCase wire format."""
        payload = Document(updated_at=42, device_id="dev-abc").to_payload()
        assert set(payload) == {"habits", "mentalState", "schoolData", "updatedAt", "deviceId"}
        assert payload["updatedAt"] == 42
        assert payload["deviceId"] == "dev-abc"

    def test_from_payload(self) -> None:
        """Should parse a full payload."""
        document = Document.from_payload(
            {
                "habits": [{"id": 1, "name": "Read", "completedDates": {"2025-01-01": True}}],
                "mentalState": {"logs": {"2025-01-01": {"mood": 8, "motivation": 6}}},
                "schoolData": {"subjects": [{"id": "s1", "name": "Math", "grades": []}]},
                "updatedAt": 1700000000000,
                "deviceId": "dev-1",
            }
        )
        assert document.habits is not None and document.habits[0].is_done("2025-01-01")
        assert document.mental_state is not None
        assert document.mental_state.get("2025-01-01").mood == 8
        assert document.school_data == {"subjects": [{"id": "s1", "name": "Math", "grades": []}]}
        assert document.updated_at == 1700000000000

    def test_partial_payload(self) -> None:
        """Missing or malformed collections should be None, not errors."""
        document = Document.from_payload({"habits": "oops", "updatedAt": 5})
        assert document.habits is None
        assert document.mental_state is None
        assert document.school_data is None
        assert not document.is_applicable

    def test_partial_payload_omits_collections(self) -> None:
        """Absent collections should not be serialized."""
        payload = Document(habits=None, mental_state=None, school_data=None).to_payload()
        assert payload == {"updatedAt": 0, "deviceId": ""}

    def test_non_numeric_clock(self) -> None:
        """A non-numeric clock should read as 0."""
        assert Document.from_payload({"updatedAt": "soon"}).updated_at == 0

    def test_rejects_non_object(self) -> None:
        """Should reject payloads that are not objects."""
        with pytest.raises(MalformedDocumentError):
            Document.from_payload([1, 2, 3])

    def test_copy_is_deep(self) -> None:
        """Editing a copy should not touch the original."""
        document = Document()
        clone = document.copy()
        assert clone.habits is not None
        clone.habits[0].completed_dates.add("2025-01-01")
        assert document.habits is not None
        assert not document.habits[0].completed_dates
