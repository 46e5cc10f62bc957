import asyncio
import os

import pytest
from redis.asyncio import Redis

from kitten_server.db import RedisKeyValueStore

pytestmark = pytest.mark.skipif(
    not os.getenv("REDIS_TEST_HOST"), reason="No Redis server for tests"
)


def _store() -> RedisKeyValueStore:
    redis = Redis(
        host=os.getenv("REDIS_TEST_HOST"),
        port=int(os.getenv("REDIS_TEST_PORT", "6379")),
        db=15,
        decode_responses=True,
    )
    return RedisKeyValueStore(redis)


@pytest.mark.asyncio
async def test_increment_is_tolerant_and_atomic():
    store = _store()
    try:
        await store.redis.flushdb()
        await store.hash_set("lose", "alice", "broken")
        await asyncio.gather(*(store.hash_increment("lose", "alice") for _ in range(30)))
        assert await store.hash_get("lose", "alice") == "30"
    finally:
        await store.redis.flushdb()
        await store.close()


@pytest.mark.asyncio
async def test_increment_respects_minimum():
    store = _store()
    try:
        await store.redis.flushdb()
        assert await store.hash_increment("user:alice", "defuse", -1, minimum=0) is None
        assert await store.hash_increment("user:alice", "defuse", 1) == 1
        assert await store.hash_increment("user:alice", "defuse", -1, minimum=0) == 0
    finally:
        await store.redis.flushdb()
        await store.close()


@pytest.mark.asyncio
async def test_list_create_and_replace():
    store = _store()
    try:
        await store.redis.flushdb()
        assert await store.list_create("deck:alice", ["Cat", "Shuffle"]) is True
        assert await store.list_create("deck:alice", ["Defuse"]) is False
        assert await store.list_range("deck:alice") == ["Cat", "Shuffle"]
        assert await store.list_remove("deck:alice", "Cat") == 1
        await store.list_replace("deck:alice", ["Defuse", "Cat"])
        assert await store.list_range("deck:alice") == ["Defuse", "Cat"]
        assert await store.hash_set_if_absent("session", "alice", "1") is True
        assert await store.hash_set_if_absent("session", "alice", "1") is False
        assert await store.hash_get_all("session") == {"alice": "1"}
    finally:
        await store.redis.flushdb()
        await store.close()
