"""Tests for the server database."""

from __future__ import annotations

from collections.abc import Generator
from pathlib import Path

import pytest

from habitsync.server.database import Database, WordMismatchError, hash_word


@pytest.fixture
def db(tmp_path: Path) -> Generator[Database, None, None]:
    """Create a test database."""
    database = Database(tmp_path / "test.db")
    yield database
    database.close()


def make_payload(updated_at: int = 100) -> dict[str, object]:
    """Create a stored document payload."""
    return {"habits": [], "mentalState": {"logs": {}}, "updatedAt": updated_at, "deviceId": "dev-1"}


class TestHashWord:
    """Tests for word hashing."""

    def test_hash_is_sha256_hex(self) -> None:
        """Should return a 64-character hex digest."""
        digest = hash_word("secret")
        assert len(digest) == 64
        assert digest == hash_word("secret")
        assert digest != hash_word("other")


class TestStateStorage:
    """Tests for document storage."""

    def test_unknown_code(self, db: Database) -> None:
        """An unused code should have no state."""
        assert db.get_state("family") is None

    def test_put_and_get(self, db: Database) -> None:
        """Should store and return the document."""
        db.put_state("family", make_payload())
        assert db.get_state("family") == make_payload()

    def test_put_replaces(self, db: Database) -> None:
        """A second push should replace the document wholesale."""
        db.put_state("family", make_payload(100))
        db.put_state("family", make_payload(200))
        state = db.get_state("family")
        assert state is not None
        assert state["updatedAt"] == 200

        row = db.get_row("family")
        assert row is not None
        assert row.updated_at == 200
        assert row.device_id == "dev-1"

    def test_codes_are_isolated(self, db: Database) -> None:
        """Documents under different codes should not mix."""
        db.put_state("family", make_payload(100))
        db.put_state("school", make_payload(200))
        assert db.get_state("family") == make_payload(100)

    def test_persists_across_reopen(self, tmp_path: Path) -> None:
        """Stored documents should survive a restart."""
        first = Database(tmp_path / "test.db")
        first.put_state("family", make_payload())
        first.close()

        second = Database(tmp_path / "test.db")
        assert second.get_state("family") == make_payload()
        second.close()


class TestWords:
    """Tests for shared-word protection."""

    def test_first_word_is_set(self, db: Database) -> None:
        """The first push with a word should protect the code."""
        db.put_state("family", make_payload(), word="secret")
        row = db.get_row("family")
        assert row is not None
        assert row.word_hash == hash_word("secret")

    def test_wrong_word_rejected(self, db: Database) -> None:
        """A different or missing word should be rejected."""
        db.put_state("family", make_payload(), word="secret")
        with pytest.raises(WordMismatchError):
            db.get_state("family", word="guess")
        with pytest.raises(WordMismatchError):
            db.get_state("family")
        with pytest.raises(WordMismatchError):
            db.put_state("family", make_payload(300), word="guess")

    def test_right_word_accepted(self, db: Database) -> None:
        """The right word should read and write."""
        db.put_state("family", make_payload(), word="secret")
        db.put_state("family", make_payload(300), word="secret")
        state = db.get_state("family", word="secret")
        assert state is not None and state["updatedAt"] == 300

    def test_unprotected_code_accepts_any_word(self, db: Database) -> None:
        """Codes without a word should accept any request."""
        db.put_state("family", make_payload())
        assert db.get_state("family", word="anything") == make_payload()
