# SPDX-License-Identifier: Apache-2.0
from __future__ import annotations

"""
Distributed lock capability used to gate optimistic writes and deletes.

Contract: `try_acquire` makes exactly ONE attempt. It never queues, never
waits for the holder to let go and never retries; it returns a handle when
the lock was obtained and None when somebody else holds it. Callers that want
retry semantics build them on top. The TTL bounds how long a crashed holder
can block others; expiry is the backend's business.
"""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any, Mapping, Protocol, runtime_checkable

from ..core.log import get_logger, swallow

__all__ = [
    "LockHandle",
    "LockProvider",
    "scoped_lock",
]

log = get_logger("locks")


@dataclass(frozen=True)
class LockHandle:
    """
    Opaque proof of ownership returned by a successful acquire.

    Attributes:
        name: resource name the lock guards.
        token: owner token; must be presented on release.
        deadline_ms: epoch ms when the lock expires (best-effort).
        backend: backend-private object (e.g. a redis Lock instance).
    """

    name: str
    token: str
    deadline_ms: int
    backend: Any = None
    meta: Mapping[str, Any] | None = None


@runtime_checkable
class LockProvider(Protocol):
    async def try_acquire(self, name: str, ttl_ms: int) -> LockHandle | None:
        """Single non-blocking attempt; None if the resource is held elsewhere."""
        ...

    async def release(self, handle: LockHandle) -> bool:
        """Release if still owned. Return True if the lock was released."""
        ...


@asynccontextmanager
async def scoped_lock(provider: LockProvider, name: str, ttl_ms: int) -> AsyncIterator[LockHandle | None]:
    """
    Acquire `name` for the duration of the block and release on every exit
    path. Yields None when the lock is held elsewhere; the caller decides how
    to fail. Release problems are logged, not raised: the guarded operation
    has already run by then.
    """
    handle = await provider.try_acquire(name, ttl_ms)
    try:
        yield handle
    finally:
        if handle is not None:
            with swallow(
                logger=log,
                level=logging.WARNING,
                code="store.lock.release",
                msg="lock release failed",
                extra={"lock": name},
            ):
                released = await provider.release(handle)
                if not released:
                    log.warning("lock expired before release", event="store.lock.expired", lock=name)
