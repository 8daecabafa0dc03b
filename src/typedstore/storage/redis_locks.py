# SPDX-License-Identifier: Apache-2.0
from __future__ import annotations

"""
Redis-backed `LockProvider` built on redis-py's `Lock` (SET NX PX + token
checked release). Only the single-endpoint primitive is used; the lock is
taken on the session's primary endpoint.
"""

import redis.asyncio as aioredis
from redis.exceptions import LockError as RedisLockError
from redis.exceptions import LockNotOwnedError

from ..core.log import get_logger
from ..core.time import Clock, SystemClock
from ..errors import LockError
from .locks import LockHandle

__all__ = [
    "RedisLockProvider",
]

log = get_logger("locks.redis")


class RedisLockProvider:
    """
    Non-blocking lock provider.

    Lock keys are `<prefix><name>`; keep the prefix disjoint from value key
    prefixes so wildcard scans never see lock keys.
    """

    def __init__(
        self,
        url: str,
        *,
        db: int = 0,
        prefix: str = "lock:",
        clock: Clock | None = None,
    ) -> None:
        self._client = aioredis.from_url(url, db=db, decode_responses=True)
        self._prefix = prefix
        self.clock = clock or SystemClock()

    async def try_acquire(self, name: str, ttl_ms: int) -> LockHandle | None:
        lock = self._client.lock(
            f"{self._prefix}{name}",
            timeout=ttl_ms / 1000.0,
            blocking=False,
        )
        if not await lock.acquire(blocking=False):
            log.debug("lock busy", event="store.lock.busy", lock=name)
            return None
        token = lock.local.token
        if isinstance(token, bytes):
            token = token.decode("utf-8")
        return LockHandle(
            name=name,
            token=str(token),
            deadline_ms=self.clock.now_ms() + ttl_ms,
            backend=lock,
        )

    async def release(self, handle: LockHandle) -> bool:
        try:
            await handle.backend.release()
        except LockNotOwnedError:
            # expired, possibly re-taken by another owner
            return False
        except RedisLockError as e:
            raise LockError(f"cannot release lock {handle.name!r}: {e}") from e
        return True

    async def aclose(self) -> None:
        await self._client.aclose()
