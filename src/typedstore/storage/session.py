# SPDX-License-Identifier: Apache-2.0
from __future__ import annotations

"""
Store session interface (backend-agnostic).

The data provider talks to the key-value store only through this Protocol.
Every call names the logical database it targets, so a single session can
serve several partitions. Implementations own connection management and any
serialization of access to shared connections.
"""

from typing import Protocol, runtime_checkable

__all__ = [
    "StoreSession",
    "Transaction",
]


@runtime_checkable
class Transaction(Protocol):
    """
    A batch of queued writes executed all-or-nothing.

    Queue methods return immediately; nothing reaches the store before
    `execute()`.
    """

    def set(self, key: str, payload: str) -> None: ...
    def sadd(self, name: str, *members: str) -> None: ...

    async def execute(self) -> bool:
        """Run the queued operations atomically. Return True iff they committed."""
        ...


@runtime_checkable
class StoreSession(Protocol):
    """
    Minimal async session over a key-value store with native sets.

    Notes:
        - Keys, set names and payloads are strings.
        - `mget` returns one slot per requested key, None for missing keys.
        - `keys_by_prefix` lists value (string) keys on ONE endpoint; set keys
          such as index sets are never returned. Callers de-duplicate across
          `list_endpoints()`.
    """

    # -------- Plain KV --------

    async def get(self, db: int, key: str) -> str | None: ...
    async def mget(self, db: int, keys: list[str]) -> list[str | None]: ...
    async def set(self, db: int, key: str, payload: str) -> None: ...

    async def delete(self, db: int, keys: list[str]) -> int:
        """Delete keys; return how many existed and were removed."""
        ...

    # -------- Sets --------

    async def sadd(self, db: int, name: str, members: list[str]) -> int: ...
    async def srem(self, db: int, name: str, members: list[str]) -> int: ...
    async def smembers(self, db: int, name: str) -> list[str]: ...

    # -------- Enumeration --------

    def list_endpoints(self) -> list[str]: ...
    async def keys_by_prefix(self, endpoint: str, db: int, pattern: str) -> list[str]: ...

    # -------- Transactions / lifecycle --------

    def begin_transaction(self, db: int) -> Transaction: ...
    async def aclose(self) -> None: ...
