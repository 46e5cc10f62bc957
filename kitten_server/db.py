"""Key-value store used by the game.

The game only needs two shapes of data: an ordered list per key (the decks) and a
flat string-to-string mapping per namespace (counters, flags, session markers).
``RedisKeyValueStore`` is what the server runs on; ``MemoryKeyValueStore`` keeps
everything in process and is used for local runs and tests.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from contextlib import contextmanager
from typing import Dict, List, Optional

from redis.asyncio import Redis
from redis.exceptions import RedisError

from kitten_server.exceptions import StorageError
from kitten_server.load_secrets import redis_db, redis_host, redis_port, store_backend

# Tolerant increment: missing or non-integer values count as 0.
# Returns false (nil reply) and leaves the field alone when the result would drop
# below the optional minimum.
INCREMENT_SCRIPT = """
local current = tonumber(redis.call('HGET', KEYS[1], ARGV[1]))
if current == nil or current % 1 ~= 0 then
    current = 0
end
local updated = current + tonumber(ARGV[2])
if ARGV[3] ~= '' and updated < tonumber(ARGV[3]) then
    return false
end
redis.call('HSET', KEYS[1], ARGV[1], updated)
return updated
"""

CREATE_LIST_SCRIPT = """
if redis.call('EXISTS', KEYS[1]) == 1 then
    return 0
end
redis.call('RPUSH', KEYS[1], unpack(ARGV))
return 1
"""


def parse_count(raw: Optional[str]) -> int:
    """Read a stored counter, treating missing or malformed values as 0."""
    if raw is None:
        return 0
    try:
        return int(raw)
    except (TypeError, ValueError):
        logging.warning(f"Malformed counter value {raw!r}, reading it as 0")
        return 0


class KeyValueStore(ABC):
    """Ordered lists per key plus string hashes per namespace."""

    @abstractmethod
    async def list_push(self, key: str, values: List[str]) -> int:
        """Append values to the end of the list, returns the new length."""

    @abstractmethod
    async def list_create(self, key: str, values: List[str]) -> bool:
        """Create the list with values only if the key does not exist, returns True if created."""

    @abstractmethod
    async def list_range(self, key: str) -> List[str]:
        """Return the whole list, empty if the key does not exist."""

    @abstractmethod
    async def list_remove(self, key: str, value: str, count: int = 1) -> int:
        """Remove up to ``count`` occurrences of value, returns how many were removed."""

    @abstractmethod
    async def list_replace(self, key: str, values: List[str]) -> None:
        """Atomically replace the list with values."""

    @abstractmethod
    async def hash_get(self, namespace: str, field: str) -> Optional[str]:
        pass

    @abstractmethod
    async def hash_set(self, namespace: str, field: str, value: str) -> None:
        pass

    @abstractmethod
    async def hash_set_if_absent(self, namespace: str, field: str, value: str) -> bool:
        """Set the field only if it does not exist yet, returns True if it was set."""

    @abstractmethod
    async def hash_get_all(self, namespace: str) -> Dict[str, str]:
        pass

    @abstractmethod
    async def hash_increment(
        self, namespace: str, field: str, amount: int = 1, minimum: Optional[int] = None
    ) -> Optional[int]:
        """Atomically add amount to an integer field.

        Missing or non-integer values are treated as 0. If ``minimum`` is given and
        the result would be lower, nothing is written and None is returned.

        Returns:
            Optional[int]: The new value, or None if the update was refused
        """

    async def close(self) -> None:
        pass


@contextmanager
def translate_errors(action: str):
    """Turn redis client errors into StorageError."""
    try:
        yield
    except RedisError as e:
        logging.error(f"Redis error while trying to {action}: {e}")
        raise StorageError(f"Failed to {action}") from e


class RedisKeyValueStore(KeyValueStore):
    def __init__(self, redis: Redis):
        self.redis = redis
        self._increment = redis.register_script(INCREMENT_SCRIPT)
        self._create_list = redis.register_script(CREATE_LIST_SCRIPT)

    async def list_push(self, key: str, values: List[str]) -> int:
        with translate_errors(f"push to {key}"):
            return await self.redis.rpush(key, *values)

    async def list_create(self, key: str, values: List[str]) -> bool:
        with translate_errors(f"create {key}"):
            return bool(await self._create_list(keys=[key], args=values))

    async def list_range(self, key: str) -> List[str]:
        with translate_errors(f"read {key}"):
            return await self.redis.lrange(key, 0, -1)

    async def list_remove(self, key: str, value: str, count: int = 1) -> int:
        with translate_errors(f"remove {value} from {key}"):
            return await self.redis.lrem(key, count, value)

    async def list_replace(self, key: str, values: List[str]) -> None:
        with translate_errors(f"replace {key}"):
            async with self.redis.pipeline(transaction=True) as pipe:
                pipe.delete(key)
                if values:
                    pipe.rpush(key, *values)
                await pipe.execute()

    async def hash_get(self, namespace: str, field: str) -> Optional[str]:
        with translate_errors(f"read {namespace}[{field}]"):
            return await self.redis.hget(namespace, field)

    async def hash_set(self, namespace: str, field: str, value: str) -> None:
        with translate_errors(f"write {namespace}[{field}]"):
            await self.redis.hset(namespace, field, value)

    async def hash_set_if_absent(self, namespace: str, field: str, value: str) -> bool:
        with translate_errors(f"initialize {namespace}[{field}]"):
            return bool(await self.redis.hsetnx(namespace, field, value))

    async def hash_get_all(self, namespace: str) -> Dict[str, str]:
        with translate_errors(f"read {namespace}"):
            return await self.redis.hgetall(namespace)

    async def hash_increment(
        self, namespace: str, field: str, amount: int = 1, minimum: Optional[int] = None
    ) -> Optional[int]:
        with translate_errors(f"increment {namespace}[{field}]"):
            result = await self._increment(
                keys=[namespace],
                args=[field, amount, "" if minimum is None else minimum],
            )
        return None if result is None else int(result)

    async def close(self) -> None:
        await self.redis.aclose()


class MemoryKeyValueStore(KeyValueStore):
    """In-process store with the same semantics as the Redis one.

    Empty lists are dropped like Redis does. Every operation runs under one lock, so
    read-modify-write operations are atomic with respect to each other.
    """

    def __init__(self):
        self.lists: Dict[str, List[str]] = {}
        self.hashes: Dict[str, Dict[str, str]] = {}
        self._lock = asyncio.Lock()

    async def list_push(self, key: str, values: List[str]) -> int:
        async with self._lock:
            stored = self.lists.setdefault(key, [])
            stored.extend(values)
            return len(stored)

    async def list_create(self, key: str, values: List[str]) -> bool:
        async with self._lock:
            if key in self.lists or not values:
                return False
            self.lists[key] = list(values)
            return True

    async def list_range(self, key: str) -> List[str]:
        async with self._lock:
            return list(self.lists.get(key, []))

    async def list_remove(self, key: str, value: str, count: int = 1) -> int:
        async with self._lock:
            stored = self.lists.get(key, [])
            removed = 0
            while removed < count and value in stored:
                stored.remove(value)
                removed += 1
            if key in self.lists and not stored:
                del self.lists[key]
            return removed

    async def list_replace(self, key: str, values: List[str]) -> None:
        async with self._lock:
            if values:
                self.lists[key] = list(values)
            else:
                self.lists.pop(key, None)

    async def hash_get(self, namespace: str, field: str) -> Optional[str]:
        async with self._lock:
            return self.hashes.get(namespace, {}).get(field)

    async def hash_set(self, namespace: str, field: str, value: str) -> None:
        async with self._lock:
            self.hashes.setdefault(namespace, {})[field] = str(value)

    async def hash_set_if_absent(self, namespace: str, field: str, value: str) -> bool:
        async with self._lock:
            fields = self.hashes.setdefault(namespace, {})
            if field in fields:
                return False
            fields[field] = str(value)
            return True

    async def hash_get_all(self, namespace: str) -> Dict[str, str]:
        async with self._lock:
            return dict(self.hashes.get(namespace, {}))

    async def hash_increment(
        self, namespace: str, field: str, amount: int = 1, minimum: Optional[int] = None
    ) -> Optional[int]:
        async with self._lock:
            fields = self.hashes.setdefault(namespace, {})
            updated = parse_count(fields.get(field)) + amount
            if minimum is not None and updated < minimum:
                return None
            fields[field] = str(updated)
            return updated


def create_store(backend: str = store_backend) -> KeyValueStore:
    """Build the store selected by STORE_BACKEND."""
    if backend == "memory":
        logging.info("Using in-memory key-value store")
        return MemoryKeyValueStore()
    if backend != "redis":
        raise ValueError(f"Unknown store backend: {backend}")
    redis = Redis(
        host=redis_host,
        port=redis_port,
        db=redis_db,
        decode_responses=True,
        health_check_interval=30,
    )
    logging.info(f"Using Redis at {redis_host}:{redis_port}/{redis_db}")
    return RedisKeyValueStore(redis)
