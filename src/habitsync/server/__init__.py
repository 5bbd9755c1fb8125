"""HabitSync reference server: stores one document per sync code."""
