# SPDX-License-Identifier: Apache-2.0
from __future__ import annotations

"""
typedstore.core.config
======================

Strongly-typed configuration for the data provider.
- No external deps; optional JSON file loading.
- Derives millisecond fields from seconds to avoid repeated conversions.
- Small env overrides for convenience.

If a config file path is not provided or not found, defaults are used.
"""

import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from ..errors import ConfigError
from .types import (
    DEFAULT_DB_INDEX,
    DEFAULT_FANOUT_LIMIT,
    DEFAULT_LOCK_TTL_SEC,
    DEFAULT_REDIS_URL,
    LOCK_NAMINGS,
    LockNaming,
    normalize_db_index,
)


def _parse_csv_env(name: str) -> list[str]:
    val = os.getenv(name)
    if not val:
        return []
    return [s.strip() for s in val.split(",") if s.strip()]


def _try_load_json(path: Path | None) -> dict[str, Any]:
    if not path or not path.exists():
        return {}
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError):
        # Fail soft; env and overrides still apply
        return {}
    return data if isinstance(data, dict) else {}


@dataclass
class StoreConfig:
    """Connection, partition and locking settings for a `DataProvider`."""

    # ---- Endpoints (first one is the primary for reads/writes)
    redis_urls: list[str] = field(default_factory=lambda: [DEFAULT_REDIS_URL])

    # ---- Partition
    default_db_index: int = DEFAULT_DB_INDEX

    # ---- Optimistic locking
    lock_ttl_sec: float = DEFAULT_LOCK_TTL_SEC
    lock_naming: LockNaming = "key"

    # ---- Batch fan-out
    fanout_limit: int = DEFAULT_FANOUT_LIMIT

    # ---- Derived (ms)
    lock_ttl_ms: int = 0

    def __post_init__(self) -> None:
        if not isinstance(self.redis_urls, list) or not all(isinstance(u, str) and u for u in self.redis_urls):
            raise ConfigError("redis_urls must be a list of non-empty strings")
        if not self.redis_urls:
            raise ConfigError("redis_urls must not be empty")
        if self.lock_naming not in LOCK_NAMINGS:
            raise ConfigError(f"lock_naming must be one of {sorted(LOCK_NAMINGS)}, got {self.lock_naming!r}")
        if self.lock_ttl_sec <= 0:
            raise ConfigError("lock_ttl_sec must be positive")
        if self.fanout_limit < 1:
            raise ConfigError("fanout_limit must be >= 1")
        self.default_db_index = normalize_db_index(self.default_db_index)
        self.lock_ttl_ms = int(self.lock_ttl_sec * 1000)

    @property
    def primary_url(self) -> str:
        return self.redis_urls[0]

    @classmethod
    def load(cls, path: Path | str | None = None, *, overrides: dict[str, Any] | None = None) -> StoreConfig:
        """
        Load config from a JSON file (if provided), then apply env and overrides.

        Env overrides:
          - TYPEDSTORE_REDIS_URLS (comma-separated)
          - TYPEDSTORE_DB_INDEX
          - TYPEDSTORE_LOCK_TTL_SEC
        """
        data: dict[str, Any] = {}
        data.update(_try_load_json(Path(path) if path else None))

        urls = _parse_csv_env("TYPEDSTORE_REDIS_URLS")
        if urls:
            data["redis_urls"] = urls
        try:
            if os.getenv("TYPEDSTORE_DB_INDEX"):
                data["default_db_index"] = int(os.environ["TYPEDSTORE_DB_INDEX"])
            if os.getenv("TYPEDSTORE_LOCK_TTL_SEC"):
                data["lock_ttl_sec"] = float(os.environ["TYPEDSTORE_LOCK_TTL_SEC"])
        except ValueError as e:
            raise ConfigError(f"invalid numeric env override: {e}") from e

        if overrides:
            data.update(overrides)
        data.pop("lock_ttl_ms", None)
        return cls(**data)
