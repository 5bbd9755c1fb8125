"""Change tracking to prevent sync feedback loops.

This module provides:
- ChangeTracker: Tells apart local mutations from remotely-applied
  updates so the push-on-change watcher never echoes a received state.

Flags:
    local_dirty_since   wall-clock ms of the first unpushed mutation, or None
    remote_applying     True for a short window after a remote apply
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable

from habitsync.core.document import now_ms

logger = logging.getLogger(__name__)


class ChangeTracker:
    """Dirty/applying flags shared by the document model and sync engine."""

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        """Initialize the tracker.

        Args:
            clock: Monotonic clock in seconds (injectable for tests).
        """
        self._clock = clock
        self._local_dirty_since: int | None = None
        self._remote_applying_until = 0.0
        # Bumped on every local mutation; lets a push clear dirty state
        # only if nothing changed during its round-trip.
        self._generation = 0

    @property
    def local_dirty_since(self) -> int | None:
        """Get when local state first diverged from remote (None if clean)."""
        return self._local_dirty_since

    @property
    def is_dirty(self) -> bool:
        """Check if there are local changes not yet pushed."""
        return self._local_dirty_since is not None

    @property
    def remote_applying(self) -> bool:
        """Check if a remote document is being absorbed."""
        return self._clock() < self._remote_applying_until

    @property
    def generation(self) -> int:
        """Get the local mutation counter."""
        return self._generation

    def mark_local_change(self) -> None:
        """Record a local mutation."""
        self._generation += 1
        if self._local_dirty_since is None:
            self._local_dirty_since = now_ms()

    def mark_remote_applied(self, window: float) -> None:
        """Record that a remote document replaced local state.

        Local state now matches remote, so dirty is cleared.

        Args:
            window: Seconds during which pushes are suppressed.
        """
        self._remote_applying_until = self._clock() + window
        self._local_dirty_since = None

    def mark_pushed(self, generation: int) -> bool:
        """Clear dirty state after a successful push.

        Args:
            generation: Value of `generation` when the pushed snapshot was taken.

        Returns:
            True if cleared, False if a newer mutation is still pending.
        """
        if generation != self._generation:
            logger.debug("Local change during push, staying dirty")
            return False
        self._local_dirty_since = None
        return True

    def should_push(self) -> bool:
        """Check the push-on-change guard: dirty and not absorbing a remote."""
        return self.is_dirty and not self.remote_applying

    def should_poll(self) -> bool:
        """Check the poll guard: neither a pending push nor a remote apply."""
        return not self.is_dirty and not self.remote_applying
