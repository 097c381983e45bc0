"""Pytest configuration and fixtures for the air session tests."""

import asyncio
import json
import sys
from pathlib import Path

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

import pytest

from session_options import SessionOptions
from session_registry import SessionRegistry
from transport import Transport, TransportNotReady


class FakeTransport(Transport):
    """Transport that records every shared state it is handed."""

    def __init__(self, ready: bool = True):
        self.ready_event = asyncio.Event()
        if ready:
            self.ready_event.set()
        self.states: list[str] = []

    def is_ready(self) -> bool:
        return self.ready_event.is_set()

    async def wait_until_ready(self) -> None:
        await self.ready_event.wait()

    async def set_shared_state(self, state: str) -> None:
        if not self.is_ready():
            raise TransportNotReady()
        self.states.append(state)

    def latest(self) -> dict:
        return json.loads(self.states[-1])


@pytest.fixture
def transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture
def make_registry(transport):
    """Build a registry wired to the fake transport, options given as keywords."""
    def _make(**options) -> SessionRegistry:
        options.setdefault("debug", False)
        return SessionRegistry(SessionOptions(**options), transport)
    return _make


@pytest.fixture
def sample_config_dict() -> dict:
    """Sample configuration document for testing."""
    return {
        "server": {
            "name": "Test Session",
            "id": "2f1e7c4a-9b3d-4d8e-a6f0-5c2b1e9d7a43",
            "websocket_port": 0,
            "host": "127.0.0.1",
        },
        "session": {
            "hero_mode": "SEPARATE",
            "join_mode": "AUTO",
            "max_players_mode": "LIMITED",
            "max_players": 2,
            "debug": False,
            "tick_rate": 30,
        },
    }
