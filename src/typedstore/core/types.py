from __future__ import annotations

"""
typedstore.core.types
=====================

Shared type aliases and small constants. Keep this module tiny and
dependency-free.
"""

from typing import Final, Literal

# ---- Time --------------------------------------------------------------------

Millis = int
TimestampMs = int  # wall-clock epoch timestamp (ms)

# ---- Locking -------------------------------------------------------------------

LockNaming = Literal["key", "type_key"]

# ---- Constants -----------------------------------------------------------------

DEFAULT_DB_INDEX: Final[int] = 0
DEFAULT_LOCK_TTL_SEC: Final[float] = 30.0
DEFAULT_FANOUT_LIMIT: Final[int] = 16
DEFAULT_REDIS_URL: Final[str] = "redis://localhost:6379"
LOCK_NAMINGS: Final[frozenset[str]] = frozenset({"key", "type_key"})


def normalize_db_index(db_index: int | None) -> int:
    """Clamp a database index to the valid (non-negative) range; None -> 0."""
    if db_index is None or db_index < 0:
        return DEFAULT_DB_INDEX
    return int(db_index)
