"""Pytest fixtures for integration tests.

This module provides fixtures for end-to-end testing of the client
transports and sync engine against the reference server, served
in-process through httpx's ASGI transport.
"""

from __future__ import annotations

from collections.abc import Callable, Generator
from pathlib import Path

import httpx
import pytest
from fastapi import FastAPI

from habitsync.client.api import RestTransport
from habitsync.core.config import BackendConfig
from habitsync.server.app import create_app
from habitsync.server.database import Database

SERVER_URL = "http://testserver"


@pytest.fixture
def server_db(tmp_path: Path) -> Generator[Database, None, None]:
    """Create the server database."""
    database = Database(tmp_path / "server.db")
    yield database
    database.close()


@pytest.fixture
def app(server_db: Database) -> FastAPI:
    """Create the server application."""
    return create_app(server_db)


@pytest.fixture
def make_transport(app: FastAPI) -> Callable[[], RestTransport]:
    """Build REST transports talking to the in-process server."""

    def factory() -> RestTransport:
        client = httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url=SERVER_URL)
        return RestTransport(BackendConfig(api_base=SERVER_URL), client)

    return factory
