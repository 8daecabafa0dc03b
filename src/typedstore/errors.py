# SPDX-License-Identifier: Apache-2.0
from __future__ import annotations

"""
Error taxonomy for the typed data-access layer.

Argument and lock-conflict errors propagate to the caller unchanged. Decode
failures are raised by codecs and absorbed by the batch readers of
`DataProvider`. Nothing here is retried by the library.
"""

from collections.abc import Iterable, Sequence

__all__ = [
    "ConfigError",
    "DecodeFailure",
    "LockError",
    "NullArgumentError",
    "OptimisticLockConflict",
    "TypedStoreError",
]

_CONFLICT_TEMPLATE = "Item is locked, please try again later. Key : {key} | Value : {payload}"


class TypedStoreError(Exception):
    """Base class for all typedstore errors."""


class ConfigError(TypedStoreError, ValueError):
    """Invalid configuration value."""


class NullArgumentError(TypedStoreError, ValueError):
    """A required argument was None. Raised before any I/O is attempted."""

    def __init__(self, argument: str) -> None:
        super().__init__(f"argument {argument!r} must not be None")
        self.argument = argument


class DecodeFailure(TypedStoreError):
    """A stored payload could not be decoded into the provider's value type."""

    def __init__(self, message: str, *, payload: str | None = None) -> None:
        super().__init__(message)
        self.payload = payload


class LockError(TypedStoreError):
    """The lock backend failed in a way that is not a plain conflict (e.g. expired before release)."""


class OptimisticLockConflict(TypedStoreError):
    """
    A guarded write or delete could not acquire its lock.

    Attributes:
        keys: keys that could not be written/deleted.
        payload: the rejected payload (single-key writes only).
        deleted_keys: keys a batch delete did remove before failing.
        conflicts: per-key errors folded into an aggregated batch error.
    """

    def __init__(
        self,
        message: str,
        *,
        keys: Sequence[str] = (),
        payload: str | None = None,
        deleted_keys: Sequence[str] = (),
        conflicts: Sequence[OptimisticLockConflict] = (),
    ) -> None:
        super().__init__(message)
        self.keys: list[str] = list(keys)
        self.payload = payload
        self.deleted_keys: list[str] = list(deleted_keys)
        self.conflicts: list[OptimisticLockConflict] = list(conflicts)

    @classmethod
    def for_key(cls, key: str, payload: str | None, reason: str | None = None) -> OptimisticLockConflict:
        """Conflict for one key; `payload` is shown as N/A for deletes."""
        if key is None:
            raise NullArgumentError("key")
        message = _CONFLICT_TEMPLATE.format(key=key, payload=payload if payload is not None else "N/A")
        if reason:
            message = f"{message}. {reason}"
        return cls(message, keys=[key], payload=payload)

    @classmethod
    def aggregate(
        cls,
        conflicts: Iterable[OptimisticLockConflict],
        *,
        deleted_keys: Sequence[str] = (),
    ) -> OptimisticLockConflict:
        """Fold per-key conflicts into one error with a numbered message per key."""
        items = list(conflicts)
        lines = [f"{i}. {c}" for i, c in enumerate(items)]
        keys = [k for c in items for k in c.keys]
        return cls("\n".join(lines), keys=keys, deleted_keys=deleted_keys, conflicts=items)
