# SPDX-License-Identifier: Apache-2.0
from __future__ import annotations

"""
Redis-backed `StoreSession` using `redis.asyncio`.

One client is created lazily per (endpoint, db) pair and reused by every call;
each client owns a connection pool, so concurrent calls share connections
safely. The first configured endpoint is the primary: all reads, writes and
transactions go there. Every endpoint is scanned by `keys_by_prefix`.
"""

from typing import Any

import redis.asyncio as aioredis
from redis.asyncio.client import Pipeline

from ..core.log import get_logger
from ..errors import ConfigError

__all__ = [
    "RedisStoreSession",
    "RedisTransaction",
]

log = get_logger("session.redis")


class RedisTransaction:
    """MULTI/EXEC pipeline: queued commands are sent and applied in one EXEC."""

    def __init__(self, pipe: Pipeline) -> None:
        self._pipe = pipe
        self._queued = 0

    def set(self, key: str, payload: str) -> None:
        self._pipe.set(key, payload)
        self._queued += 1

    def sadd(self, name: str, *members: str) -> None:
        if members:
            self._pipe.sadd(name, *members)
            self._queued += 1

    async def execute(self) -> bool:
        if not self._queued:
            return True
        try:
            results = await self._pipe.execute(raise_on_error=False)
        finally:
            await self._pipe.reset()
        failed = [r for r in results if isinstance(r, Exception)]
        if failed:
            log.warning(
                "transaction command failed",
                event="store.tx.failed",
                errors=[str(e) for e in failed],
            )
            return False
        return True


class RedisStoreSession:
    """
    Session over one or more Redis endpoints.

    Usage:
        session = RedisStoreSession(["redis://cache-a:6379", "redis://cache-b:6379"])
        await session.set(0, "Widget:1", "{...}")
        await session.aclose()
    """

    def __init__(self, urls: list[str], **client_kwargs: Any) -> None:
        if not urls:
            raise ConfigError("at least one redis url is required")
        self._urls = list(urls)
        self._client_kwargs = {"decode_responses": True, **client_kwargs}
        self._clients: dict[tuple[str, int], aioredis.Redis] = {}

    def _client(self, db: int, endpoint: str | None = None) -> aioredis.Redis:
        url = endpoint or self._urls[0]
        key = (url, db)
        client = self._clients.get(key)
        if client is None:
            client = aioredis.from_url(url, db=db, **self._client_kwargs)
            self._clients[key] = client
            log.debug("redis client created", event="store.client.created", endpoint=url, db_index=db)
        return client

    # -------- Plain KV --------

    async def get(self, db: int, key: str) -> str | None:
        return await self._client(db).get(key)

    async def mget(self, db: int, keys: list[str]) -> list[str | None]:
        if not keys:
            return []
        return await self._client(db).mget(keys)

    async def set(self, db: int, key: str, payload: str) -> None:
        await self._client(db).set(key, payload)

    async def delete(self, db: int, keys: list[str]) -> int:
        if not keys:
            return 0
        return int(await self._client(db).delete(*keys))

    # -------- Sets --------

    async def sadd(self, db: int, name: str, members: list[str]) -> int:
        if not members:
            return 0
        return int(await self._client(db).sadd(name, *members))

    async def srem(self, db: int, name: str, members: list[str]) -> int:
        if not members:
            return 0
        return int(await self._client(db).srem(name, *members))

    async def smembers(self, db: int, name: str) -> list[str]:
        return list(await self._client(db).smembers(name))

    # -------- Enumeration --------

    def list_endpoints(self) -> list[str]:
        return list(self._urls)

    async def keys_by_prefix(self, endpoint: str, db: int, pattern: str) -> list[str]:
        client = self._client(db, endpoint)
        return [k async for k in client.scan_iter(match=pattern, _type="string")]

    # -------- Transactions / lifecycle --------

    def begin_transaction(self, db: int) -> RedisTransaction:
        return RedisTransaction(self._client(db).pipeline(transaction=True))

    async def aclose(self) -> None:
        clients, self._clients = self._clients, {}
        for client in clients.values():
            await client.aclose()
