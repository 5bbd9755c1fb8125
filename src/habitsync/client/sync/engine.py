"""Sync engine for the offline-first document.

This module provides:
- SyncSession: One sync code's fetch/push orchestration and its
  background tasks (poll loop, debounce timer, connectivity subscription)
- SyncEngine: Owns the active session; creates it when a sync code is set,
  tears it down when the code changes or is cleared

The engine is the "brain" of sync. Conflicts are resolved last-writer-wins
on the document's logical clock: the whole document with the greater
`updatedAt` wins and the other is discarded, never merged.

Triggers:
    | Trigger            | Guard                            | Action                         |
    |--------------------|----------------------------------|--------------------------------|
    | INIT (code set)    | -                                | fetch; apply if remote newer,  |
    |                    |                                  | push if local newer or remote  |
    |                    |                                  | empty; ties do nothing         |
    | DEBOUNCE (0.8s)    | dirty and not remote-applying    | push full document             |
    | POLL (3s)          | not dirty and not remote-applying| fetch; apply if remote newer   |
    | RECONNECT          | dirty                            | push immediately               |

A poll tick that finds a failed push still pending retries the push
instead of fetching; this is the only retry mechanism (no backoff).

Every push stamps the document with the current clock, so the remote
clock never decreases and "last writer" means the last device to push.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import time
from collections.abc import Coroutine
from typing import TYPE_CHECKING, Any

from habitsync.client.sync.types import (
    NotConfiguredError,
    StatusCallback,
    SyncError,
    SyncStatus,
    SyncTrigger,
)
from habitsync.core.config import SyncSettings
from habitsync.core.document import next_clock, normalize_sync_code
from habitsync.core.types import SyncState

if TYPE_CHECKING:
    from habitsync.client.model import DocumentModel
    from habitsync.client.store import LocalStore
    from habitsync.client.sync.connectivity import ConnectivityMonitor
    from habitsync.client.sync.transport import RemoteTransport

logger = logging.getLogger(__name__)


class SyncSession:
    """Sync orchestration for a single sync code.

    A stopped session never applies or pushes a late response.
    """

    def __init__(
        self,
        model: DocumentModel,
        transport: RemoteTransport,
        code: str,
        word: str | None = None,
        settings: SyncSettings | None = None,
        connectivity: ConnectivityMonitor | None = None,
        on_status: StatusCallback | None = None,
    ) -> None:
        """Initialize the session.

        Args:
            model: Document model to read from and apply into.
            transport: Remote store.
            code: Normalized sync code.
            word: Optional shared word.
            settings: Timing settings.
            connectivity: Monitor to subscribe to for reconnect pushes.
            on_status: Called on every status transition.
        """
        self.code = code
        self.word = word
        self._model = model
        self._tracker = model.tracker
        self._transport = transport
        self._settings = settings or SyncSettings()
        self._connectivity = connectivity
        self._on_status = on_status

        self._status = SyncStatus()
        self._closed = False
        self._started = False
        self._push_lock = asyncio.Lock()

        self._loop: asyncio.AbstractEventLoop | None = None
        self._tasks: set[asyncio.Task[Any]] = set()
        self._debounce_handle: asyncio.TimerHandle | None = None

    @property
    def status(self) -> SyncStatus:
        """Get the current status."""
        return self._status

    @property
    def closed(self) -> bool:
        """Check if the session was stopped."""
        return self._closed

    @property
    def push_pending(self) -> bool:
        """Check if a debounced push is scheduled."""
        return self._debounce_handle is not None

    # === Lifecycle ===

    def start(self) -> None:
        """Start background tasks on the running event loop.

        Initialization runs first, then the poll loop.
        """
        if self._started:
            logger.warning("SyncSession %s already started", self.code)
            return
        self._started = True
        self._loop = asyncio.get_running_loop()
        self._model.add_listener(self._on_local_change)
        if self._connectivity is not None:
            self._connectivity.subscribe(self._on_connectivity_change)
        self._spawn(self._run(), f"SyncSession-{self.code}")
        logger.info("Sync session started for code %s", self.code)

    async def stop(self) -> None:
        """Cancel all background tasks as a group."""
        if self._closed:
            return
        self._closed = True
        self._model.remove_listener(self._on_local_change)
        if self._connectivity is not None:
            self._connectivity.unsubscribe(self._on_connectivity_change)
        self._cancel_debounce()

        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self._tasks.clear()
        logger.info("Sync session stopped for code %s", self.code)

    def _spawn(self, coro: Coroutine[Any, Any, Any], name: str) -> None:
        if self._loop is None:
            raise RuntimeError("SyncSession not started")
        task = self._loop.create_task(coro, name=name)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _run(self) -> None:
        await self.initialize()
        while not self._closed:
            await asyncio.sleep(self._settings.poll_interval)
            await self.poll_once()

    # === Status ===

    def _set_status(self, state: SyncState, error: str = "") -> None:
        last_synced_at = self._status.last_synced_at
        if state == SyncState.SYNCED:
            last_synced_at = time.time()
        changed = state != self._status.state or error != self._status.error
        self._status = SyncStatus(state=state, error=error, last_synced_at=last_synced_at)
        if changed and self._on_status is not None:
            self._on_status(self._status)

    def _set_error(self, error: SyncError) -> None:
        logger.warning("Sync error for code %s: %s", self.code, error)
        self._set_status(SyncState.ERROR, str(error) or "Connection error")

    # === Triggers ===

    async def initialize(self) -> SyncStatus:
        """Run the initialization exchange.

        Fetches remote state and applies it if strictly newer and
        well-formed; otherwise pushes local state if it is newer or the
        remote is empty. Equal clocks are left alone.

        Returns:
            Status after the exchange.
        """
        self._set_status(SyncState.SYNCING)
        try:
            remote = await self._transport.fetch(self.code, self.word)
            if self._closed:
                return self._status
            if remote is None:
                raise NotConfiguredError("Remote backend not configured")

            # Compare against the latest local clock, not the one at request time
            local_clock = self._model.updated_at
            if remote.updated_at > local_clock and remote.is_applicable:
                self._model.apply_remote_document(remote)
            elif remote.updated_at == 0 or local_clock > remote.updated_at:
                await self._push_document(SyncTrigger.INIT)
            else:
                logger.debug(
                    "Nothing to do for code %s (local=%d, remote=%d)",
                    self.code,
                    local_clock,
                    remote.updated_at,
                )
        except SyncError as e:
            self._set_error(e)
            return self._status

        if not self._closed:
            self._set_status(SyncState.SYNCED)
        return self._status

    async def push_if_dirty(self, trigger: SyncTrigger = SyncTrigger.DEBOUNCE) -> bool:
        """Push the full document if local changes are pending.

        Returns:
            True if a push succeeded.
        """
        if self._closed or not self._tracker.is_dirty:
            return False
        if self._tracker.remote_applying:
            # Still absorbing a remote document; try again after the window
            logger.debug("Push deferred: remote update in progress")
            self._schedule_push(self._settings.remote_apply_window)
            return False

        self._set_status(SyncState.SYNCING)
        try:
            await self._push_document(trigger)
        except SyncError as e:
            self._set_error(e)
            return False

        if not self._closed:
            self._set_status(SyncState.SYNCED)
        return True

    async def poll_once(self) -> bool:
        """Run one poll tick.

        Skipped while a push is pending or a remote document is being
        applied. A failed push that is still pending is retried instead.

        Returns:
            True if a newer remote document was applied.
        """
        if self._closed:
            return False
        if not self._tracker.should_poll():
            if (
                self._tracker.is_dirty
                and not self._tracker.remote_applying
                and self._debounce_handle is None
                and not self._push_lock.locked()
            ):
                await self.push_if_dirty(SyncTrigger.POLL)
            return False
        if self._push_lock.locked():
            return False

        self._set_status(SyncState.SYNCING)
        try:
            remote = await self._transport.fetch(self.code, self.word)
        except SyncError as e:
            self._set_error(e)
            return False

        if self._closed:
            return False
        if remote is None:
            self._set_error(NotConfiguredError("Remote backend not configured"))
            return False
        if not self._tracker.should_poll():
            # A local edit landed during the fetch; its push carries the latest state
            return False

        applied = False
        if remote.updated_at > self._model.updated_at and remote.is_applicable:
            applied = self._model.apply_remote_document(remote)
        self._set_status(SyncState.SYNCED)
        return applied

    async def _push_document(self, trigger: SyncTrigger) -> None:
        """Push a snapshot of the full document, stamped with the push time.

        Dirty state is cleared only if no local mutation happened during
        the round-trip.

        Raises:
            SyncError: If the transport fails.
        """
        async with self._push_lock:
            generation = self._tracker.generation
            document = self._model.snapshot()
            # Stamped at push time: the remote clock never decreases
            document.updated_at = next_clock(document.updated_at)
            self._model.stamp(document.updated_at)

            logger.info(
                "Pushing document for code %s (trigger=%s, updatedAt=%d)",
                self.code,
                trigger.value,
                document.updated_at,
            )
            await self._transport.push(self.code, document, self.word)
            self._tracker.mark_pushed(generation)

    # === Callbacks ===

    def _schedule_push(self, delay: float) -> None:
        if self._loop is None or self._closed:
            return
        self._cancel_debounce()
        self._debounce_handle = self._loop.call_later(delay, self._fire_push)

    def _cancel_debounce(self) -> None:
        if self._debounce_handle is not None:
            self._debounce_handle.cancel()
            self._debounce_handle = None

    def _fire_push(self) -> None:
        self._debounce_handle = None
        if not self._closed:
            self._spawn(self.push_if_dirty(SyncTrigger.DEBOUNCE), f"SyncPush-{self.code}")

    def _on_local_change(self) -> None:
        self._schedule_push(self._settings.debounce_delay)

    def _on_connectivity_change(self, online: bool) -> None:
        if not online or self._closed or not self._tracker.is_dirty:
            return
        logger.info("Back online with local changes, pushing now")
        self._cancel_debounce()
        self._spawn(self.push_if_dirty(SyncTrigger.RECONNECT), f"SyncReconnect-{self.code}")


class SyncEngine:
    """Owner of the active sync session.

    Usage:
        engine = SyncEngine(model, transport, store=store)
        engine.add_status_listener(print)
        await engine.set_sync_code("family-tracker")
        ...
        await engine.shutdown()
    """

    def __init__(
        self,
        model: DocumentModel,
        transport: RemoteTransport,
        store: LocalStore | None = None,
        settings: SyncSettings | None = None,
        connectivity: ConnectivityMonitor | None = None,
    ) -> None:
        """Initialize the engine.

        Args:
            model: Document model shared with the UI layer.
            transport: Remote store.
            store: Local store persisting the sync code (optional).
            settings: Timing settings.
            connectivity: Connectivity monitor handed to sessions.
        """
        self._model = model
        self._transport = transport
        self._store = store
        self._settings = settings or SyncSettings()
        self._connectivity = connectivity

        self._session: SyncSession | None = None
        self._status = SyncStatus()
        self._status_listeners: list[StatusCallback] = []

    @property
    def session(self) -> SyncSession | None:
        """Get the active session."""
        return self._session

    @property
    def sync_code(self) -> str | None:
        """Get the active sync code."""
        return self._session.code if self._session else None

    @property
    def status(self) -> SyncStatus:
        """Get the status of the active session (IDLE without one)."""
        return self._status

    def add_status_listener(self, callback: StatusCallback) -> None:
        """Register a callback for status transitions."""
        self._status_listeners.append(callback)

    def _publish(self, status: SyncStatus) -> None:
        self._status = status
        for callback in list(self._status_listeners):
            try:
                callback(status)
            except Exception:
                logger.exception("Status listener failed")

    def _make_session(self, code: str, word: str | None) -> SyncSession:
        session: SyncSession | None = None

        def on_status(status: SyncStatus) -> None:
            # Statuses from a superseded session are dropped
            if session is not None and session is self._session:
                self._publish(status)

        session = SyncSession(
            self._model,
            self._transport,
            code,
            word,
            settings=self._settings,
            connectivity=self._connectivity,
            on_status=on_status,
        )
        return session

    async def set_sync_code(self, code: str, word: str | None = None) -> SyncSession:
        """Activate a sync code, replacing any previous session.

        Args:
            code: Sync code as typed (normalized here).
            word: Optional shared word.

        Returns:
            The new, started session.

        Raises:
            ValueError: If the code is empty after normalization.
        """
        safe_code = normalize_sync_code(code)
        if not safe_code:
            raise ValueError(f"Invalid sync code: {code!r}")

        await self._teardown()
        if self._store is not None:
            self._store.set_sync_code(safe_code, word)

        self._session = self._make_session(safe_code, word)
        self._session.start()
        return self._session

    async def resume(self) -> SyncSession | None:
        """Start a session for the code saved in the local store, if any."""
        if self._store is None:
            return None
        code = self._store.get_sync_code()
        if not code:
            return None
        return await self.set_sync_code(code, self._store.get_sync_word())

    async def clear_sync_code(self) -> None:
        """Stop syncing and forget the code."""
        await self._teardown()
        if self._store is not None:
            self._store.set_sync_code(None)
        self._publish(SyncStatus())

    async def sync_once(self, code: str | None = None, word: str | None = None) -> SyncStatus:
        """Run a single initialization exchange without background tasks.

        Args:
            code: Sync code (defaults to the stored one).
            word: Shared word (defaults to the stored one).

        Returns:
            Status after the exchange.

        Raises:
            ValueError: If no valid code is available.
        """
        if code is None and self._store is not None:
            code = self._store.get_sync_code()
            word = word or self._store.get_sync_word()
        safe_code = normalize_sync_code(code or "")
        if not safe_code:
            raise ValueError("No sync code configured")

        session = SyncSession(
            self._model,
            self._transport,
            safe_code,
            word,
            settings=self._settings,
            on_status=self._publish,
        )
        status = await session.initialize()
        self._model.flush()
        return status

    async def shutdown(self) -> None:
        """Stop the session and flush local state."""
        await self._teardown()
        self._model.flush()

    async def _teardown(self) -> None:
        session, self._session = self._session, None
        if session is not None:
            with contextlib.suppress(asyncio.CancelledError):
                await session.stop()
