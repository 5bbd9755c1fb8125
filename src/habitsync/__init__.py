"""HabitSync - offline-first habit, mood and school tracker sync."""

__version__ = "0.1.0"
