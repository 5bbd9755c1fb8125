"""Network connectivity monitoring.

This module provides:
- ConnectivityMonitor: Tracks online/offline state by probing the
  backend periodically, or by being told explicitly (set_online), and
  notifies subscribers on transitions only.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import Awaitable, Callable

logger = logging.getLogger(__name__)

# Default probe configuration
DEFAULT_CHECK_INTERVAL = 5.0  # seconds between probes

# Type alias for transition callback
ConnectivityCallback = Callable[[bool], None]


class ConnectivityMonitor:
    """Online/offline tracker with transition callbacks.

    Usage:
        monitor = ConnectivityMonitor(transport.ping)
        monitor.subscribe(lambda online: print("online" if online else "offline"))
        monitor.start()
        ...
        await monitor.stop()
    """

    def __init__(
        self,
        probe: Callable[[], Awaitable[bool]] | None = None,
        check_interval: float = DEFAULT_CHECK_INTERVAL,
        online: bool = True,
    ) -> None:
        """Initialize the monitor.

        Args:
            probe: Coroutine function returning True when reachable.
                Without a probe the state only changes via set_online.
            check_interval: Seconds between probes.
            online: Initial state.
        """
        self._probe = probe
        self._check_interval = check_interval
        self._online = online
        self._subscribers: list[ConnectivityCallback] = []
        self._task: asyncio.Task[None] | None = None

    @property
    def online(self) -> bool:
        """Check if currently online."""
        return self._online

    def subscribe(self, callback: ConnectivityCallback) -> None:
        """Register a transition callback."""
        self._subscribers.append(callback)

    def unsubscribe(self, callback: ConnectivityCallback) -> None:
        """Unregister a transition callback."""
        if callback in self._subscribers:
            self._subscribers.remove(callback)

    def set_online(self, online: bool) -> None:
        """Record the current state; notifies only on a change."""
        if online == self._online:
            return
        self._online = online
        if online:
            logger.info("Network restored")
        else:
            logger.warning("Network appears down")
        for callback in list(self._subscribers):
            try:
                callback(online)
            except Exception:
                logger.exception("Connectivity callback failed")

    async def check_once(self) -> bool:
        """Probe the backend once and record the result."""
        if self._probe is None:
            return self._online
        try:
            reachable = await self._probe()
        except Exception as e:
            logger.debug("Connectivity probe failed: %s", e)
            reachable = False
        self.set_online(reachable)
        return reachable

    def start(self) -> None:
        """Start periodic probing on the running event loop."""
        if self._probe is None:
            return
        if self._task and not self._task.done():
            logger.warning("ConnectivityMonitor already running")
            return
        self._task = asyncio.get_running_loop().create_task(
            self._run(), name="ConnectivityMonitor"
        )

    async def stop(self) -> None:
        """Stop periodic probing."""
        if self._task is None:
            return
        self._task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await self._task
        self._task = None

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self._check_interval)
            await self.check_once()
