# SPDX-License-Identifier: Apache-2.0
from __future__ import annotations

"""
Per-type secondary index.

Every value type gets one store-native set whose members are the keys of the
stored values of that type. The set name comes from a `TypeDescriptor` fixed
at construction, so all providers over the same descriptor share one index,
across processes too. Writes add to the set inside the same transaction as
the value; deletes remove from it right after the keys are gone.

When the set is empty the index can be rebuilt from a prefix scan over every
endpoint (`scan` + `repair`).
"""

from dataclasses import dataclass

from .core.log import get_logger, warn_once
from .errors import NullArgumentError
from .storage.session import StoreSession, Transaction

__all__ = [
    "TypeDescriptor",
    "TypeIndex",
]

log = get_logger("index")


@dataclass(frozen=True)
class TypeDescriptor:
    """
    Identity of a stored value type.

    Attributes:
        name: simple type name, used in lock names.
        index_name: name of the index set.
        key_prefix: prefix shared by the keys of this type (wildcard fallback).
            Defaults to `<name>:` so `Widget` never matches `WidgetPart` keys.
    """

    name: str
    index_name: str
    key_prefix: str

    def __post_init__(self) -> None:
        for attr in ("name", "index_name", "key_prefix"):
            if not getattr(self, attr):
                raise ValueError(f"TypeDescriptor.{attr} must be a non-empty string")

    @classmethod
    def for_type(cls, tp: type, *, index_name: str | None = None, key_prefix: str | None = None) -> TypeDescriptor:
        name = tp.__name__
        return cls(name=name, index_name=index_name or name, key_prefix=key_prefix or f"{name}:")


class TypeIndex:
    """Set-backed index of the keys stored for one `TypeDescriptor`."""

    def __init__(self, descriptor: TypeDescriptor) -> None:
        self.descriptor = descriptor

    @property
    def name(self) -> str:
        return self.descriptor.index_name

    @property
    def key_pattern(self) -> str:
        return f"{self.descriptor.key_prefix}*"

    async def members(self, session: StoreSession, db: int) -> list[str]:
        return await session.smembers(db, self.name)

    def queue_add(self, tx: Transaction, key: str) -> None:
        tx.sadd(self.name, key)

    async def remove(self, session: StoreSession, db: int, keys: list[str]) -> int:
        if keys is None:
            raise NullArgumentError("keys")
        return await session.srem(db, self.name, keys)

    async def scan(self, session: StoreSession, db: int) -> list[str]:
        """Keys matching the type prefix on every endpoint, first-seen order, no duplicates."""
        seen: dict[str, None] = {}
        for endpoint in session.list_endpoints():
            for key in await session.keys_by_prefix(endpoint, db, self.key_pattern):
                seen.setdefault(key, None)
        return list(seen)

    async def repair(self, session: StoreSession, db: int, keys: list[str]) -> int:
        if not keys:
            return 0
        added = await session.sadd(db, self.name, keys)
        warn_once(
            log,
            f"store.index.repair:{db}:{self.name}",
            "type index rebuilt from wildcard scan",
            event="store.index.repair",
            index=self.name,
            db_index=db,
            added=added,
            scanned=len(keys),
        )
        return added
