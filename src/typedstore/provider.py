# SPDX-License-Identifier: Apache-2.0
from __future__ import annotations

"""
typedstore.provider
===================

`DataProvider[T]`: typed CRUD over a key-value store.

The provider composes four collaborators:
- a `StoreSession` (connections, transactions, scans),
- a `Codec[T]` (value <-> payload),
- a `TypeIndex` (per-type set of stored keys),
- a `LockProvider` (optional optimistic locking of writes and deletes).

Write path: `SET key payload` and `SADD <index> key` go out in one MULTI/EXEC,
so no reader sees one without the other. With `optimistic_lock=True` the
transaction only runs while a lock on the record is held; if the lock is busy
the call raises `OptimisticLockConflict` at once. There is no retry.

Read path: batch readers drop missing and undecodable entries (partial results
over hard failures). `get_results` reports per-key outcomes instead.

Enumeration: the index set is trusted when non-empty. When empty, keys are
found by a prefix scan across every endpoint and the index is repaired with
whatever the scan found.
"""

import asyncio
from collections.abc import Sequence
from dataclasses import dataclass
from enum import Enum
from typing import Generic, TypeVar

from .codec import Codec, PydanticCodec
from .core.config import StoreConfig
from .core.log import get_logger, log_context
from .core.types import normalize_db_index
from .errors import DecodeFailure, NullArgumentError, OptimisticLockConflict
from .index import TypeDescriptor, TypeIndex
from .storage.locks import LockProvider, scoped_lock
from .storage.redis_locks import RedisLockProvider
from .storage.redis_session import RedisStoreSession
from .storage.session import StoreSession

__all__ = [
    "DataProvider",
    "ReadResult",
    "ReadStatus",
]

T = TypeVar("T")

_SAVE_LOCKED = "Unable to save item because it is locked. Please try again."
_DELETE_LOCKED = "Unable to delete item because it is locked. Please try again."


class ReadStatus(str, Enum):
    OK = "ok"
    MISSING = "missing"
    DECODE_FAILED = "decode_failed"


@dataclass(frozen=True)
class ReadResult(Generic[T]):
    """Outcome of reading one key."""

    key: str
    status: ReadStatus
    value: T | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.status is ReadStatus.OK


class DataProvider(Generic[T]):
    """
    Typed data access for values of one type.

    Usage:
        widgets = DataProvider(Widget, config=StoreConfig(redis_urls=["redis://cache:6379"]))
        await widgets.insert_or_update("Widget:1", Widget(id=1, name="bolt"))
        w = await widgets.get_by_key("Widget:1")
        await widgets.aclose()

    Every operation takes `db_index`. None or 0 selects the configured default
    partition; negative values are treated as 0.
    """

    def __init__(
        self,
        value_type: type[T],
        *,
        config: StoreConfig | None = None,
        session: StoreSession | None = None,
        lock_provider: LockProvider | None = None,
        codec: Codec[T] | None = None,
        descriptor: TypeDescriptor | None = None,
    ) -> None:
        self.value_type = value_type
        self.config = config or StoreConfig()
        self.codec: Codec[T] = codec or PydanticCodec(value_type)
        self.descriptor = descriptor or TypeDescriptor.for_type(value_type)
        self.index = TypeIndex(self.descriptor)
        self.log = get_logger("provider")

        self._session = session
        self._owns_session = session is None
        self._lock_provider = lock_provider
        self._owns_lock_provider = lock_provider is None

    # ───────────────────────── lifecycle ─────────────────────────

    @property
    def session(self) -> StoreSession:
        if self._session is None:
            self._session = RedisStoreSession(self.config.redis_urls)
        return self._session

    @property
    def lock_provider(self) -> LockProvider:
        if self._lock_provider is None:
            self._lock_provider = RedisLockProvider(self.config.primary_url)
        return self._lock_provider

    async def reconfigure(self, config: StoreConfig) -> None:
        """
        Swap the configuration. Connections this provider opened from the old
        config are closed; new ones are opened lazily on next use. Injected
        collaborators are kept.
        """
        self.config = config
        await self._close_owned()

    async def _close_owned(self) -> None:
        if self._owns_session and self._session is not None:
            session, self._session = self._session, None
            await session.aclose()
        if self._owns_lock_provider and self._lock_provider is not None:
            provider, self._lock_provider = self._lock_provider, None
            aclose = getattr(provider, "aclose", None)
            if aclose is not None:
                await aclose()

    async def aclose(self) -> None:
        await self._close_owned()

    async def __aenter__(self) -> DataProvider[T]:
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    # ───────────────────────── internals ─────────────────────────

    def _db(self, db_index: int | None) -> int:
        if db_index is None or db_index == 0:
            return self.config.default_db_index
        return normalize_db_index(db_index)

    def lock_name(self, key: str) -> str:
        if self.config.lock_naming == "type_key":
            return f"{self.descriptor.name}:{key}"
        return key

    @staticmethod
    def _check_keys(keys: Sequence[str] | None, argument: str = "keys") -> list[str]:
        if keys is None:
            raise NullArgumentError(argument)
        if isinstance(keys, str):
            keys = [keys]
        out = list(keys)
        if any(k is None for k in out):
            raise NullArgumentError(argument)
        return out

    def _decode(self, key: str, payload: str | None) -> ReadResult[T]:
        if not payload:
            return ReadResult(key=key, status=ReadStatus.MISSING)
        try:
            return ReadResult(key=key, status=ReadStatus.OK, value=self.codec.decode(payload))
        except DecodeFailure as e:
            self.log.debug("payload dropped", event="store.decode.failed", key=key, reason=str(e))
            return ReadResult(key=key, status=ReadStatus.DECODE_FAILED, error=str(e))

    async def _fetch(self, db: int, keys: list[str]) -> list[ReadResult[T]]:
        if not keys:
            return []
        payloads = await self.session.mget(db, keys)
        return [self._decode(k, p) for k, p in zip(keys, payloads)]

    async def _fetch_each(self, db: int, keys: list[str]) -> dict[str, T]:
        """Per-key GETs with bounded concurrency; merged in key order."""
        sem = asyncio.Semaphore(self.config.fanout_limit)

        async def one(key: str) -> ReadResult[T]:
            async with sem:
                return self._decode(key, await self.session.get(db, key))

        results = await asyncio.gather(*(one(k) for k in keys))
        return {r.key: r.value for r in results if r.ok}

    async def _enumerate(self, db: int) -> tuple[list[str], bool]:
        """Return (keys, from_scan). Trusts a non-empty index; otherwise scans."""
        keys = await self.index.members(self.session, db)
        if keys:
            return keys, False
        return await self.index.scan(self.session, db), True

    async def _write(self, db: int, key: str, payload: str) -> bool:
        tx = self.session.begin_transaction(db)
        tx.set(key, payload)
        self.index.queue_add(tx, key)
        committed = await tx.execute()
        self.log.debug("value written", event="store.set", key=key, committed=committed)
        return committed

    async def _delete(self, db: int, keys: list[str]) -> bool:
        removed = await self.session.delete(db, keys)
        if removed == 0:
            self.log.debug("nothing to delete", event="store.delete", keys=keys, removed=0)
            return False
        await self.index.remove(self.session, db, keys)
        self.log.debug("keys deleted", event="store.delete", keys=keys, removed=removed)
        return True

    # ───────────────────────── read path ─────────────────────────

    async def get_by_key(self, key: str, db_index: int | None = None) -> T | None:
        if key is None:
            raise NullArgumentError("key")
        values = await self.get_by_keys([key], db_index)
        return values[0] if values else None

    async def get_by_keys(self, keys: Sequence[str], db_index: int | None = None) -> list[T]:
        """Batched fetch; missing and undecodable entries are left out."""
        keys = self._check_keys(keys)
        results = await self._fetch(self._db(db_index), keys)
        return [r.value for r in results if r.ok]

    async def get_results(self, keys: Sequence[str], db_index: int | None = None) -> list[ReadResult[T]]:
        """Batched fetch reporting every key as ok, missing or decode_failed."""
        keys = self._check_keys(keys)
        return await self._fetch(self._db(db_index), keys)

    async def get_all_values(self, db_index: int | None = None) -> list[T]:
        db = self._db(db_index)
        with log_context(index=self.index.name, db_index=db, op="get_all_values"):
            keys, from_scan = await self._enumerate(db)
            if not keys:
                return []
            results = await self._fetch(db, keys)
            if from_scan:
                await self.index.repair(self.session, db, keys)
            return [r.value for r in results if r.ok]

    async def get_all_key_value_pairs(self, db_index: int | None = None) -> dict[str, T]:
        db = self._db(db_index)
        with log_context(index=self.index.name, db_index=db, op="get_all_key_value_pairs"):
            keys, from_scan = await self._enumerate(db)
            if not keys:
                return {}
            pairs = await self._fetch_each(db, keys)
            if from_scan:
                await self.index.repair(self.session, db, keys)
            return pairs

    async def get_keys_in_set(self, db_index: int | None = None) -> list[str]:
        return await self.index.members(self.session, self._db(db_index))

    # ───────────────────────── write path ─────────────────────────

    async def insert_or_update(
        self,
        key: str,
        value: T,
        db_index: int | None = None,
        optimistic_lock: bool = False,
    ) -> bool:
        if key is None:
            raise NullArgumentError("key")
        if value is None:
            raise NullArgumentError("value")
        return await self.insert_or_update_payload(key, self.codec.encode(value), db_index, optimistic_lock)

    async def insert_or_update_payload(
        self,
        key: str,
        payload: str,
        db_index: int | None = None,
        optimistic_lock: bool = False,
    ) -> bool:
        """
        Store an already encoded payload under `key` and index it.

        Raises:
            NullArgumentError: key or payload is None.
            OptimisticLockConflict: optimistic_lock=True and the record's lock is held elsewhere.
        """
        if key is None:
            raise NullArgumentError("key")
        if payload is None:
            raise NullArgumentError("payload")
        db = self._db(db_index)

        if not optimistic_lock:
            return await self._write(db, key, payload)

        name = self.lock_name(key)
        async with scoped_lock(self.lock_provider, name, self.config.lock_ttl_ms) as handle:
            if handle is None:
                self.log.info("write rejected, record locked", event="store.lock.conflict", key=key, lock=name)
                raise OptimisticLockConflict.for_key(key, payload, _SAVE_LOCKED)
            return await self._write(db, key, payload)

    set = insert_or_update

    # ───────────────────────── delete path ─────────────────────────

    async def delete(
        self,
        keys: str | Sequence[str],
        db_index: int | None = None,
        optimistic_lock: bool = False,
    ) -> bool:
        """
        Delete one key or a batch of keys and drop them from the index.

        Returns True if at least one key was removed, False if none existed.

        With optimistic_lock=True every key is locked on its own. Keys whose
        lock is busy are skipped and collected; once all keys were tried, the
        skipped ones are reported in a single aggregated
        OptimisticLockConflict whose `deleted_keys` lists what did get deleted.
        """
        keys = self._check_keys(keys)
        db = self._db(db_index)

        if not optimistic_lock:
            return await self._delete(db, keys)

        conflicts: list[OptimisticLockConflict] = []
        deleted: list[str] = []
        for key in keys:
            name = self.lock_name(key)
            async with scoped_lock(self.lock_provider, name, self.config.lock_ttl_ms) as handle:
                if handle is None:
                    conflicts.append(OptimisticLockConflict.for_key(key, None, _DELETE_LOCKED))
                    continue
                if await self._delete(db, [key]):
                    deleted.append(key)

        if conflicts:
            self.log.info(
                "delete rejected for locked records",
                event="store.lock.conflict",
                keys=[k for c in conflicts for k in c.keys],
                deleted=deleted,
            )
            raise OptimisticLockConflict.aggregate(conflicts, deleted_keys=deleted)
        return bool(deleted)
