"""Sync commands for HabitSync CLI.

Commands:
- link: Set the sync code (and optional shared word)
- unlink: Forget the sync code
- status: Show local document and sync settings
- sync: Run one sync exchange
- watch: Keep syncing until interrupted
"""

from __future__ import annotations

import asyncio
import contextlib
import sys
from datetime import datetime

import click

from habitsync.client.cli.config import configure_logging, get_backend_config, get_state_path
from habitsync.client.model import DocumentModel
from habitsync.client.store import LocalStore
from habitsync.client.sync import (
    ConnectivityMonitor,
    SyncEngine,
    SyncStatus,
    create_transport,
)
from habitsync.core.config import BackendConfig, SyncSettings
from habitsync.core.document import normalize_sync_code
from habitsync.core.types import SyncState


def format_status(status: SyncStatus) -> str:
    """Render a status for one line of terminal output."""
    if status.state == SyncState.ERROR:
        return f"error: {status.error}"
    if status.state == SyncState.SYNCED and status.last_synced_at is not None:
        at = datetime.fromtimestamp(status.last_synced_at).strftime("%H:%M:%S")
        return f"synced at {at}"
    return status.state.value


def _load_backend() -> BackendConfig:
    try:
        backend = get_backend_config()
    except ValueError as e:
        click.echo(f"Error: invalid config: {e}", err=True)
        sys.exit(1)
    if not backend.is_configured:
        click.echo(
            "Error: no backend configured. Run 'habitsync config set api_base URL' first.",
            err=True,
        )
        sys.exit(1)
    return backend


@click.command()
@click.argument("code")
@click.option("--word", "-w", default=None, help="Shared word protecting the code.")
def link(code: str, word: str | None) -> None:
    """Sync this device's tracker under CODE.

    Devices using the same code share one document. Only letters, digits,
    '-' and '_' are kept, lowercased.
    """
    safe_code = normalize_sync_code(code)
    if not safe_code:
        click.echo(f"Error: invalid sync code: {code!r}", err=True)
        sys.exit(1)

    store = LocalStore(get_state_path())
    try:
        store.set_sync_code(safe_code, word)
    finally:
        store.close()
    click.echo(f"Linked to sync code: {safe_code}")
    click.echo("Run 'habitsync sync' to exchange data.")


@click.command()
def unlink() -> None:
    """Stop syncing and forget the sync code."""
    store = LocalStore(get_state_path())
    try:
        store.set_sync_code(None)
    finally:
        store.close()
    click.echo("Sync code removed.")


@click.command()
def status() -> None:
    """Show local document and sync settings."""
    store = LocalStore(get_state_path())
    try:
        document = store.load_document()
        code = store.get_sync_code()
    finally:
        store.close()
    backend = get_backend_config()

    updated = (
        datetime.fromtimestamp(document.updated_at / 1000).isoformat(timespec="seconds")
        if document.updated_at
        else "never"
    )
    mood_days = len(document.mental_state.logs) if document.mental_state else 0
    click.echo(f"Device:      {document.device_id}")
    click.echo(f"Sync code:   {code or '(not linked)'}")
    configured = "configured" if backend.is_configured else "not configured"
    click.echo(f"Backend:     {backend.mode.value} ({configured})")
    click.echo(f"Updated:     {updated} (clock {document.updated_at})")
    click.echo(f"Habits:      {len(document.habits or [])}")
    click.echo(f"Mood days:   {mood_days}")


async def _sync_once(model: DocumentModel, store: LocalStore, backend: BackendConfig) -> SyncStatus:
    transport = create_transport(backend)
    engine = SyncEngine(model, transport, store=store)
    try:
        return await engine.sync_once()
    finally:
        await engine.shutdown()
        await transport.aclose()


@click.command()
@click.option("--verbose", "-v", is_flag=True, help="Show sync decisions.")
def sync(verbose: bool) -> None:
    """Run one sync exchange with the backend.

    The newer of the local and remote documents wins; the other is
    replaced entirely.
    """
    configure_logging(verbose)
    backend = _load_backend()

    store = LocalStore(get_state_path())
    try:
        if not store.get_sync_code():
            click.echo("Error: not linked. Run 'habitsync link CODE' first.", err=True)
            sys.exit(1)
        model = DocumentModel(store)
        result = asyncio.run(_sync_once(model, store, backend))
    finally:
        store.close()

    click.echo(format_status(result))
    if result.state == SyncState.ERROR:
        sys.exit(1)


def _echo_status(status: SyncStatus) -> None:
    # Every poll tick passes through SYNCING; only print outcomes
    if status.state != SyncState.SYNCING:
        click.echo(format_status(status))


async def _reload_loop(model: DocumentModel, interval: float) -> None:
    while True:
        await asyncio.sleep(interval)
        model.reload_from_store()


async def _watch(model: DocumentModel, store: LocalStore, backend: BackendConfig) -> None:
    settings = SyncSettings()
    transport = create_transport(backend)
    monitor = ConnectivityMonitor(transport.ping, check_interval=settings.connectivity_interval)
    engine = SyncEngine(model, transport, store=store, settings=settings, connectivity=monitor)
    engine.add_status_listener(_echo_status)
    monitor.start()
    reloader = asyncio.create_task(_reload_loop(model, settings.poll_interval))
    try:
        await engine.resume()
        await asyncio.Event().wait()
    finally:
        reloader.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await reloader
        # Pick up edits saved by other commands since the last tick
        model.reload_from_store()
        await engine.shutdown()
        await monitor.stop()
        await transport.aclose()


@click.command()
@click.option("--verbose", "-v", is_flag=True, help="Show sync decisions.")
def watch(verbose: bool) -> None:
    """Keep syncing until interrupted (Ctrl+C).

    Polls the backend every few seconds and applies newer remote data.
    """
    configure_logging(verbose)
    backend = _load_backend()

    store = LocalStore(get_state_path())
    try:
        code = store.get_sync_code()
        if not code:
            click.echo("Error: not linked. Run 'habitsync link CODE' first.", err=True)
            sys.exit(1)
        click.echo(f"Watching sync code {code} (Ctrl+C to stop)")
        model = DocumentModel(store)
        try:
            asyncio.run(_watch(model, store, backend))
        except KeyboardInterrupt:
            click.echo("\nStopped.")
    finally:
        store.close()
