"""HabitSync client: local store, document model and sync engine."""
