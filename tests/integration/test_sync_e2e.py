"""End-to-end tests: sync engine and REST transport against the server."""

from __future__ import annotations

import asyncio
from collections.abc import Callable

import pytest

from habitsync.client.api import AuthenticationError, RestTransport
from habitsync.client.model import DocumentModel
from habitsync.client.sync.engine import SyncSession
from habitsync.core.config import SyncSettings
from habitsync.core.document import Document
from habitsync.core.types import SyncState

DAY = "2025-01-15"

TransportFactory = Callable[[], RestTransport]


def make_session(model: DocumentModel, transport: RestTransport, word: str | None = None) -> SyncSession:
    """Create a session with short delays."""
    settings = SyncSettings(debounce_delay=0.05, poll_interval=60.0, remote_apply_window=0.02)
    return SyncSession(model, transport, "family", word, settings=settings)


class TestTransportRoundTrip:
    """Tests for RestTransport against the server."""

    @pytest.mark.asyncio
    async def test_unused_code_is_empty(self, make_transport: TransportFactory) -> None:
        """An unused code should fetch as the empty document."""
        transport = make_transport()
        document = await transport.fetch("family")
        await transport.aclose()

        assert document == Document.empty()

    @pytest.mark.asyncio
    async def test_push_is_idempotent(self, make_transport: TransportFactory) -> None:
        """Pushing the same document twice should store it once, unchanged."""
        transport = make_transport()
        model = DocumentModel()
        model.toggle_habit(1, DAY)
        document = model.snapshot()

        await transport.push("family", document)
        await transport.push("family", document)
        fetched = await transport.fetch("family")
        await transport.aclose()

        assert fetched.to_payload() == document.to_payload()

    @pytest.mark.asyncio
    async def test_wrong_word(self, make_transport: TransportFactory) -> None:
        """A protected code should reject other words."""
        transport = make_transport()
        await transport.push("family", Document(updated_at=1), word="secret")

        with pytest.raises(AuthenticationError):
            await transport.fetch("family", word="guess")
        await transport.aclose()


class TestEngineEndToEnd:
    """Tests for two devices syncing through the server."""

    @pytest.mark.asyncio
    async def test_bootstrap_and_adopt(self, make_transport: TransportFactory) -> None:
        """A fresh server should receive device A's data and hand it to device B."""
        transport_a, transport_b = make_transport(), make_transport()
        device_a, device_b = DocumentModel(), DocumentModel()

        status = await make_session(device_a, transport_a).initialize()
        assert status.state == SyncState.SYNCED
        stored = await transport_a.fetch("family")
        assert len(stored.habits or []) == 8
        assert stored.updated_at == device_a.updated_at > 0
        await asyncio.sleep(0.002)

        device_b.rename_habit(2, "Never pushed")
        device_b_clock = device_b.updated_at
        await make_session(device_b, transport_b).initialize()

        # B edited after A bootstrapped, so B's state wins, stamped at push time
        assert device_b.updated_at > device_b_clock
        stored = await transport_a.fetch("family")
        assert stored.updated_at == device_b.updated_at
        assert stored.habits is not None and stored.habits[1].name == "Never pushed"

        await transport_a.aclose()
        await transport_b.aclose()

    @pytest.mark.asyncio
    async def test_edit_propagates(self, make_transport: TransportFactory) -> None:
        """An edit on one device should reach the other on its next poll."""
        transport_a, transport_b = make_transport(), make_transport()
        device_a, device_b = DocumentModel(), DocumentModel()
        session_a = make_session(device_a, transport_a)
        session_b = make_session(device_b, transport_b)
        await session_a.initialize()
        await session_b.initialize()

        session_a.start()
        try:
            device_a.update_mood(DAY, "mood", 9)
            await asyncio.sleep(0.2)
        finally:
            await session_a.stop()

        await asyncio.sleep(0.05)
        assert await session_b.poll_once() is True
        assert device_b.document.mental_state is not None
        assert device_b.document.mental_state.get(DAY).mood == 9
        assert device_b.updated_at == device_a.updated_at

        await transport_a.aclose()
        await transport_b.aclose()

    @pytest.mark.asyncio
    async def test_wrong_word_sets_error(self, make_transport: TransportFactory) -> None:
        """A rejected word should surface as an error status."""
        transport = make_transport()
        await transport.push("family", Document(updated_at=1), word="secret")

        status = await make_session(DocumentModel(), transport, word="guess").initialize()
        await transport.aclose()

        assert status.state == SyncState.ERROR
        assert status.error == "Wrong sync word"
