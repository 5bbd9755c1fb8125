"""Tracker editing commands for HabitSync CLI.

Edits are saved locally and pushed on the next `habitsync sync`, or by a
running `habitsync watch`, which picks them up from the local store on
its next poll tick.

Commands:
- habit list|add|toggle|rename|goal|delete: Manage habits
- mood: Log mood and motivation for a day
"""

from __future__ import annotations

import sys
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from datetime import date
from typing import Any

import click

from habitsync.client.cli.config import get_state_path
from habitsync.client.model import DocumentModel
from habitsync.client.store import LocalStore
from habitsync.client.sync import ValidationError


@contextmanager
def open_model() -> Iterator[DocumentModel]:
    """Open the local document, saving it on exit."""
    store = LocalStore(get_state_path())
    try:
        model = DocumentModel(store)
        yield model
        model.flush()
    finally:
        store.close()


def _run(action: Callable[[DocumentModel], Any]) -> Any:
    with open_model() as model:
        try:
            return action(model)
        except ValidationError as e:
            click.echo(f"Error: {e}", err=True)
            sys.exit(1)


def _today() -> str:
    return date.today().isoformat()


@click.group()
def habit() -> None:
    """Manage habits."""


@habit.command("list")
@click.option("--date", "date_key", default=None, help="Day to show (YYYY-MM-DD, default today).")
def list_habits(date_key: str | None) -> None:
    """List habits with their completion for a day."""
    date_key = date_key or _today()
    month = date_key[:7]
    with open_model() as model:
        habits = model.document.habits or []
        if not habits:
            click.echo("No habits.")
            return
        for h in habits:
            mark = "x" if h.is_done(date_key) else " "
            done = sum(1 for d in h.completed_dates if d.startswith(month))
            click.echo(f"[{mark}] {h.id:>3}  {h.name}  ({done}/{h.goal} this month)")


@habit.command("add")
@click.argument("name")
@click.option("--icon", default="Check", help="Icon name.")
@click.option("--goal", type=int, default=30, help="Monthly goal (0-31).")
def add_habit(name: str, icon: str, goal: int) -> None:
    """Add a habit."""
    created = _run(lambda m: m.add_habit(name, icon=icon, goal=goal))
    click.echo(f"Added habit {created.id}: {created.name}")


@habit.command("toggle")
@click.argument("habit_id", type=int)
@click.option("--date", "date_key", default=None, help="Day (YYYY-MM-DD, default today).")
def toggle_habit(habit_id: int, date_key: str | None) -> None:
    """Mark a habit done (or undone) for a day."""
    date_key = date_key or _today()
    done = _run(lambda m: m.toggle_habit(habit_id, date_key))
    click.echo(f"Habit {habit_id} {'done' if done else 'not done'} on {date_key}")


@habit.command("rename")
@click.argument("habit_id", type=int)
@click.argument("name")
def rename_habit(habit_id: int, name: str) -> None:
    """Rename a habit."""
    _run(lambda m: m.rename_habit(habit_id, name))
    click.echo(f"Renamed habit {habit_id}")


@habit.command("goal")
@click.argument("habit_id", type=int)
@click.argument("goal", type=int)
def set_goal(habit_id: int, goal: int) -> None:
    """Set a habit's monthly goal (0-31)."""
    _run(lambda m: m.set_goal(habit_id, goal))
    click.echo(f"Goal of habit {habit_id} set to {goal}")


@habit.command("delete")
@click.argument("habit_id", type=int)
@click.confirmation_option(prompt="Delete this habit and its history?")
def delete_habit(habit_id: int) -> None:
    """Delete a habit and its history."""
    _run(lambda m: m.delete_habit(habit_id))
    click.echo(f"Deleted habit {habit_id}")


@click.command()
@click.argument("date_key", metavar="DATE", required=False)
@click.option("--mood", type=int, default=None, help="Mood 0-10 (0 clears).")
@click.option("--motivation", type=int, default=None, help="Motivation 0-10 (0 clears).")
def mood(date_key: str | None, mood: int | None, motivation: int | None) -> None:
    """Log or show mood and motivation for DATE (default today)."""
    date_key = date_key or _today()

    def update(model: DocumentModel) -> tuple[int, int]:
        entry = None
        if mood is not None:
            entry = model.update_mood(date_key, "mood", mood)
        if motivation is not None:
            entry = model.update_mood(date_key, "motivation", motivation)
        if entry is None:
            entry = model.mood_entry(date_key)
        return entry.mood, entry.motivation

    mood_value, motivation_value = _run(update)
    click.echo(f"{date_key}: mood {mood_value}, motivation {motivation_value}")
