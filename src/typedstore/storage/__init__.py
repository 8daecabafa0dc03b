# SPDX-License-Identifier: Apache-2.0
from __future__ import annotations

"""
Store session and distributed-lock interfaces plus their Redis adapters.
"""

from .locks import LockHandle, LockProvider, scoped_lock
from .redis_locks import RedisLockProvider
from .redis_session import RedisStoreSession, RedisTransaction
from .session import StoreSession, Transaction

__all__ = [
    # session
    "StoreSession",
    "Transaction",
    "RedisStoreSession",
    "RedisTransaction",
    # locks
    "LockHandle",
    "LockProvider",
    "RedisLockProvider",
    "scoped_lock",
]
