import asyncio

import numpy as np
import pytest

from kitten_server.crud import DeckStore, StatsStore
from kitten_server.db import MemoryKeyValueStore
from kitten_server.manager import ConnectionManager
from kitten_server.services.game_session import SessionManager


class FakeObserver:
    """Stands in for a leaderboard WebSocket."""

    def __init__(self, fail: bool = False, delay: float = 0.0):
        self.messages = []
        self.closed = False
        self.fail = fail
        self.delay = delay

    async def send_json(self, data):
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.fail:
            raise ConnectionError("connection lost")
        self.messages.append(data)

    async def close(self):
        self.closed = True


@pytest.fixture()
def store():
    return MemoryKeyValueStore()


@pytest.fixture()
def deck_store(store):
    return DeckStore(store, np.random.default_rng(1234))


@pytest.fixture()
def stats_store(store):
    return StatsStore(store)


@pytest.fixture()
def hub(stats_store):
    return ConnectionManager(stats_store)


@pytest.fixture()
def session_manager(deck_store, stats_store, hub):
    return SessionManager(deck_store, stats_store, hub)


@pytest.fixture()
def observer_factory():
    return FakeObserver
