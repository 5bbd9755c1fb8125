"""Synchronized document shared by client and server.

This module provides:
- Habit, MoodEntry, MentalState, Document: the unit of synchronization
- Wire codec (camelCase JSON payloads)
- Defaults and the empty-document sentinel
- Logical clock and sync-code helpers

A Document parsed from a remote payload may be partial: a missing or
malformed top-level collection is kept as None so that applying it leaves
the matching local collection untouched.
"""

from __future__ import annotations

import copy
import logging
import re
import secrets
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

DATE_KEY_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$")
_SYNC_CODE_STRIP = re.compile(r"[^a-z0-9_-]", re.IGNORECASE)

MOOD_FIELDS = ("mood", "motivation")

# (id, name, icon, goal)
DEFAULT_HABITS: tuple[tuple[int, str, str, int], ...] = (
    (1, "Wake up ⏰", "Clock", 31),
    (2, "Study \U0001f4d6", "Book", 25),
    (3, "Workout \U0001f3cb️", "Dumbbell", 20),
    (4, "Running", "Coffee", 31),
    (5, ">2L water \U0001f4a7", "Droplet", 31),
    (6, "Bed \U0001f6cc", "Moon", 31),
    (7, "Cooking", "Brain", 31),
    (8, "Work", "Check", 30),
)

DEFAULT_SCHOOL_DATA: dict[str, Any] = {
    "subjects": [],
    "tests": [],
    "maxGrade": 10,
    "theme": "dark",
}


class MalformedDocumentError(ValueError):
    """Payload does not have the shape of a document."""


def now_ms() -> int:
    """Get wall-clock time in milliseconds since epoch."""
    return int(time.time() * 1000)


def next_clock(previous: int) -> int:
    """Compute the logical clock for a new local mutation.

    Args:
        previous: Current clock value.

    Returns:
        A value strictly greater than previous.
    """
    return max(now_ms(), previous + 1)


def normalize_sync_code(code: str) -> str:
    """Normalize a sync code into a backend lookup key.

    Only ASCII letters, digits, hyphens and underscores are kept,
    and the result is lower-cased.

    Args:
        code: Code as typed by the user.

    Returns:
        Normalized code (may be empty).
    """
    return _SYNC_CODE_STRIP.sub("", code).lower()


def generate_device_id() -> str:
    """Generate a random device identifier."""
    return "dev-" + secrets.token_hex(5)


def is_date_key(value: object) -> bool:
    """Check if value looks like a YYYY-MM-DD date key."""
    return isinstance(value, str) and bool(DATE_KEY_PATTERN.match(value))


@dataclass
class Habit:
    """A tracked habit.

    Attributes:
        id: Unique id within the document.
        name: Display name.
        icon: Icon name.
        goal: Monthly completion goal (days).
        completed_dates: Date keys on which the habit was done.
        color: Optional display color.
    """

    id: int
    name: str
    icon: str = "Check"
    goal: int = 30
    completed_dates: set[str] = field(default_factory=set)
    color: str | None = None

    def is_done(self, date_key: str) -> bool:
        """Check whether the habit was completed on a date."""
        return date_key in self.completed_dates

    def to_dict(self) -> dict[str, Any]:
        """Convert to wire format."""
        data: dict[str, Any] = {
            "id": self.id,
            "name": self.name,
            "icon": self.icon,
            "goal": self.goal,
            "completedDates": {key: True for key in sorted(self.completed_dates)},
        }
        if self.color is not None:
            data["color"] = self.color
        return data

    @classmethod
    def from_dict(cls, data: Any) -> Habit:
        """Create from wire format.

        completedDates is accepted either as a map of date key to flag
        (falsy flags are dropped) or as a list of date keys.

        Raises:
            MalformedDocumentError: If required fields are missing.
        """
        if not isinstance(data, dict) or "id" not in data or "name" not in data:
            raise MalformedDocumentError(f"Invalid habit record: {data!r}")
        raw_dates = data.get("completedDates") or {}
        if isinstance(raw_dates, dict):
            dates = {key for key, done in raw_dates.items() if done}
        elif isinstance(raw_dates, list):
            dates = {str(key) for key in raw_dates}
        else:
            raise MalformedDocumentError(f"Invalid completedDates: {raw_dates!r}")
        try:
            goal = int(data.get("goal") or 0)
        except (TypeError, ValueError) as e:
            raise MalformedDocumentError(f"Invalid goal: {data.get('goal')!r}") from e
        return cls(
            id=data["id"],
            name=str(data["name"]),
            icon=str(data.get("icon") or "Check"),
            goal=goal,
            completed_dates=dates,
            color=data.get("color"),
        )


@dataclass
class MoodEntry:
    """Mood and motivation for one day (0 means not logged)."""

    mood: int = 0
    motivation: int = 0

    def to_dict(self) -> dict[str, int]:
        """Convert to wire format."""
        return {"mood": self.mood, "motivation": self.motivation}

    @classmethod
    def from_dict(cls, data: Any) -> MoodEntry:
        """Create from wire format."""
        if not isinstance(data, dict):
            raise MalformedDocumentError(f"Invalid mood entry: {data!r}")
        try:
            return cls(
                mood=int(data.get("mood") or 0),
                motivation=int(data.get("motivation") or 0),
            )
        except (TypeError, ValueError) as e:
            raise MalformedDocumentError(f"Invalid mood entry: {data!r}") from e


@dataclass
class MentalState:
    """Mood log keyed by date."""

    logs: dict[str, MoodEntry] = field(default_factory=dict)

    def get(self, date_key: str) -> MoodEntry:
        """Get the entry for a date (an empty entry if not logged)."""
        return self.logs.get(date_key, MoodEntry())

    def to_dict(self) -> dict[str, Any]:
        """Convert to wire format."""
        return {"logs": {key: entry.to_dict() for key, entry in self.logs.items()}}

    @classmethod
    def from_dict(cls, data: Any) -> MentalState:
        """Create from wire format."""
        if not isinstance(data, dict):
            raise MalformedDocumentError(f"Invalid mental state: {data!r}")
        raw_logs = data.get("logs") or {}
        if not isinstance(raw_logs, dict):
            raise MalformedDocumentError(f"Invalid mood log: {raw_logs!r}")
        return cls(logs={key: MoodEntry.from_dict(v) for key, v in raw_logs.items()})


def default_habits() -> list[Habit]:
    """Build the habits of a fresh installation."""
    return [
        Habit(id=habit_id, name=name, icon=icon, goal=goal)
        for habit_id, name, icon, goal in DEFAULT_HABITS
    ]


def default_school_data() -> dict[str, Any]:
    """Build the school data of a fresh installation."""
    return copy.deepcopy(DEFAULT_SCHOOL_DATA)


def parse_habits(raw: Any) -> list[Habit]:
    """Parse a wire-format habit list.

    Raises:
        MalformedDocumentError: If raw is not a list of habit records.
    """
    if not isinstance(raw, list):
        raise MalformedDocumentError(f"Invalid habit list: {type(raw).__name__}")
    return [Habit.from_dict(item) for item in raw]


def _parse_school_data(raw: Any) -> dict[str, Any]:
    if not isinstance(raw, dict):
        raise MalformedDocumentError(f"Invalid school data: {type(raw).__name__}")
    return copy.deepcopy(raw)


def _parse_optional(
    data: dict[str, Any], key: str, parser: Callable[[Any], T]
) -> T | None:
    """Parse one top-level field, returning None if missing or malformed."""
    if data.get(key) is None:
        return None
    try:
        return parser(data[key])
    except MalformedDocumentError as e:
        logger.warning("Ignoring malformed %s in payload: %s", key, e)
        return None


@dataclass
class Document:
    """The unit of synchronization.

    Attributes:
        habits: Ordered habits (None if absent from a remote payload).
        mental_state: Mood log (None if absent from a remote payload).
        school_data: Opaque school structure (None if absent).
        updated_at: Logical clock, ms since epoch at last local mutation.
        device_id: Device that produced this state.
    """

    habits: list[Habit] | None = field(default_factory=default_habits)
    mental_state: MentalState | None = field(default_factory=MentalState)
    school_data: dict[str, Any] | None = field(default_factory=default_school_data)
    updated_at: int = 0
    device_id: str = ""

    @classmethod
    def empty(cls) -> Document:
        """Build the sentinel returned for a code with no remote state yet."""
        return cls(
            habits=[],
            mental_state=MentalState(),
            school_data={"subjects": []},
            updated_at=0,
        )

    @property
    def is_applicable(self) -> bool:
        """Check the minimum shape required before overwriting local state."""
        return self.habits is not None and self.mental_state is not None

    def copy(self) -> Document:
        """Return a deep copy."""
        return copy.deepcopy(self)

    def to_payload(self) -> dict[str, Any]:
        """Convert to the JSON wire format.

        Absent collections are omitted.
        """
        payload: dict[str, Any] = {}
        if self.habits is not None:
            payload["habits"] = [habit.to_dict() for habit in self.habits]
        if self.mental_state is not None:
            payload["mentalState"] = self.mental_state.to_dict()
        if self.school_data is not None:
            payload["schoolData"] = copy.deepcopy(self.school_data)
        payload["updatedAt"] = self.updated_at
        payload["deviceId"] = self.device_id
        return payload

    @classmethod
    def from_payload(cls, data: Any) -> Document:
        """Create from the JSON wire format.

        Missing or malformed collections become None instead of failing
        the whole payload.

        Raises:
            MalformedDocumentError: If data is not a JSON object.
        """
        if not isinstance(data, dict):
            raise MalformedDocumentError(f"Expected a JSON object, got {type(data).__name__}")
        try:
            updated_at = int(data.get("updatedAt") or 0)
        except (TypeError, ValueError):
            logger.warning("Ignoring non-numeric updatedAt: %r", data.get("updatedAt"))
            updated_at = 0
        return cls(
            habits=_parse_optional(data, "habits", parse_habits),
            mental_state=_parse_optional(data, "mentalState", MentalState.from_dict),
            school_data=_parse_optional(data, "schoolData", _parse_school_data),
            updated_at=updated_at,
            device_id=str(data.get("deviceId") or ""),
        )
