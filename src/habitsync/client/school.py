"""School data mutations.

School data is opaque to the sync engine; these helpers edit it in place
on a draft document and validate their input first, so a rejected call
leaves the draft untouched.

Layout:
    {"subjects": [{"id", "name", "grades": [{"id", "value", "date", "topic"}]}],
     "tests": [{"id", "subjectId", "date", "type", "note", "completed"}],
     "maxGrade": 10, "theme": "dark" | "light"}
"""

from __future__ import annotations

import uuid
from datetime import date as date_cls
from typing import Any

from habitsync.client.sync.types import ValidationError
from habitsync.core.document import is_date_key


def _new_id() -> str:
    return uuid.uuid4().hex


def _find(items: list[dict[str, Any]], item_id: str, what: str) -> dict[str, Any]:
    for item in items:
        if item.get("id") == item_id:
            return item
    raise ValidationError(f"Unknown {what}: {item_id}")


def max_grade(school: dict[str, Any]) -> float:
    """Get the grading scale maximum (defaults to 10)."""
    return float(school.get("maxGrade") or 10)


def add_subject(school: dict[str, Any], name: str) -> dict[str, Any]:
    """Add a subject with no grades.

    Returns:
        The new subject.
    """
    name = name.strip()
    if not name:
        raise ValidationError("Subject name must not be empty")
    subject = {"id": _new_id(), "name": name, "grades": []}
    school.setdefault("subjects", []).append(subject)
    return subject


def delete_subject(school: dict[str, Any], subject_id: str) -> None:
    """Delete a subject together with its grades and planned tests."""
    _find(school.get("subjects", []), subject_id, "subject")
    school["subjects"] = [s for s in school["subjects"] if s.get("id") != subject_id]
    school["tests"] = [t for t in school.get("tests", []) if t.get("subjectId") != subject_id]


def set_max_grade(school: dict[str, Any], value: float) -> None:
    """Change the grading scale maximum."""
    if value <= 0:
        raise ValidationError(f"Maximum grade must be positive, got {value}")
    school["maxGrade"] = value


def add_grade(
    school: dict[str, Any],
    subject_id: str,
    value: float,
    date: str | None = None,
    topic: str = "",
) -> dict[str, Any]:
    """Record a grade for a subject.

    Args:
        school: School data to edit.
        subject_id: Target subject.
        value: Grade between 0 and the maximum grade.
        date: Date key (defaults to today).
        topic: Optional description.

    Returns:
        The new grade.
    """
    if not 0 <= value <= max_grade(school):
        raise ValidationError(f"Grade must be between 0 and {max_grade(school)}, got {value}")
    date = date or date_cls.today().isoformat()
    if not is_date_key(date):
        raise ValidationError(f"Invalid date: {date}")
    subject = _find(school.get("subjects", []), subject_id, "subject")
    grade = {"id": _new_id(), "value": value, "date": date, "topic": topic.strip()}
    subject.setdefault("grades", []).append(grade)
    return grade


def remove_grade(school: dict[str, Any], subject_id: str, grade_id: str) -> None:
    """Remove one grade from a subject."""
    subject = _find(school.get("subjects", []), subject_id, "subject")
    _find(subject.get("grades", []), grade_id, "grade")
    subject["grades"] = [g for g in subject["grades"] if g.get("id") != grade_id]


def add_test(
    school: dict[str, Any],
    subject_id: str,
    date: str,
    kind: str = "Written",
    note: str = "",
) -> dict[str, Any]:
    """Plan a test for a subject.

    Returns:
        The new test.
    """
    if not is_date_key(date):
        raise ValidationError(f"Invalid date: {date}")
    _find(school.get("subjects", []), subject_id, "subject")
    test = {
        "id": _new_id(),
        "subjectId": subject_id,
        "date": date,
        "type": kind,
        "note": note,
        "completed": False,
    }
    school.setdefault("tests", []).append(test)
    return test


def delete_test(school: dict[str, Any], test_id: str) -> None:
    """Delete a planned test."""
    _find(school.get("tests", []), test_id, "test")
    school["tests"] = [t for t in school["tests"] if t.get("id") != test_id]


def complete_test(school: dict[str, Any], test_id: str, grade_value: float) -> dict[str, Any]:
    """Turn a planned test into a grade on its test date.

    Returns:
        The new grade.
    """
    test = _find(school.get("tests", []), test_id, "test")
    grade = add_grade(school, test["subjectId"], grade_value, test["date"])
    school["tests"] = [t for t in school["tests"] if t.get("id") != test_id]
    return grade


def toggle_theme(school: dict[str, Any]) -> None:
    """Switch between light and dark theme."""
    school["theme"] = "dark" if school.get("theme") == "light" else "light"


def subject_average(subject: dict[str, Any]) -> float:
    """Average grade of a subject (0 when it has no grades)."""
    grades = subject.get("grades") or []
    if not grades:
        return 0.0
    return sum(float(g["value"]) for g in grades) / len(grades)
