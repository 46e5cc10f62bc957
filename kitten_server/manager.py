import asyncio
import logging
from typing import Any, List, Protocol, Set

from kitten_server.crud import StatsStore
from kitten_server.exceptions import StorageError

KEEPALIVE_MESSAGE = {"event": "keepalive"}
# Seconds an observer may take to accept one message before it is dropped.
SEND_TIMEOUT = 5.0


class Observer(Protocol):
    """A connected leaderboard client, e.g. a starlette WebSocket."""

    async def send_json(self, data: Any) -> None: ...

    async def close(self) -> None: ...


class ConnectionManager:
    """Keeps track of leaderboard observers and pushes snapshots to them."""

    def __init__(self, stats_store: StatsStore, send_timeout: float = SEND_TIMEOUT):
        self.stats_store = stats_store
        self.send_timeout = send_timeout
        self.active_connections: Set[Observer] = set()
        self._lock = asyncio.Lock()

    async def register(self, observer: Observer) -> bool:
        """Add an observer and send it the current leaderboard

        Args:
            observer (Observer): Accepted connection

        Returns:
            bool: False if the first snapshot could not be delivered
        """
        async with self._lock:
            self.active_connections.add(observer)
        logging.info(f"Observer connected, {len(self.active_connections)} active")
        snapshot = await self.stats_store.snapshot_all()
        return await self._send(observer, self._payload(snapshot))

    async def unregister(self, observer: Observer) -> None:
        async with self._lock:
            if observer in self.active_connections:
                self.active_connections.discard(observer)
                logging.info(f"Observer disconnected, {len(self.active_connections)} active")

    async def publish(self) -> None:
        """Send a fresh leaderboard to every observer."""
        try:
            snapshot = await self.stats_store.snapshot_all()
        except StorageError as e:
            logging.error(f"Error fetching leaderboard data: {e}")
            return
        await self.broadcast(self._payload(snapshot))

    async def keepalive(self) -> None:
        """Send a no-op message so dead connections get noticed and dropped."""
        await self.broadcast(KEEPALIVE_MESSAGE)

    async def broadcast(self, message: Any) -> None:
        async with self._lock:
            observers: List[Observer] = list(self.active_connections)
        if not observers:
            return
        logging.info(f"Broadcasting message to {len(observers)} observers")
        await asyncio.gather(*(self._send(observer, message) for observer in observers))

    async def _send(self, observer: Observer, message: Any) -> bool:
        try:
            await asyncio.wait_for(observer.send_json(message), timeout=self.send_timeout)
            return True
        except Exception as e:
            logging.warning(f"Error sending to an observer, dropping it: {e}")
            await self.unregister(observer)
            await self._close(observer)
            return False

    @staticmethod
    async def _close(observer: Observer) -> None:
        try:
            await observer.close()
        except Exception as e:
            logging.debug(f"Observer was already closed: {e}")

    @staticmethod
    def _payload(snapshot) -> List[dict]:
        return [entry.model_dump() for entry in snapshot]
