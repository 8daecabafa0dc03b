from __future__ import annotations

"""
typedstore.core.time
====================

Clock abstractions used by lock bookkeeping:
- Clock Protocol for dependency injection.
- SystemClock: production default.
- ManualClock: deterministic time control for tests (lock TTL expiry).
"""

import time
from typing import Protocol

from .types import Millis, TimestampMs


class Clock(Protocol):
    def now_ms(self) -> TimestampMs: ...


class SystemClock:
    """Clock backed by system wall time."""

    def now_ms(self) -> TimestampMs:
        return time.time_ns() // 1_000_000


class ManualClock(SystemClock):
    """
    Controllable clock for tests. Time starts at `start_ms` and only moves
    when `advance_ms` is called.
    """

    def __init__(self, start_ms: Millis = 0) -> None:
        self._wall: Millis = start_ms

    def now_ms(self) -> TimestampMs:
        return self._wall

    def advance_ms(self, ms: Millis) -> None:
        self._wall += max(0, int(ms))
