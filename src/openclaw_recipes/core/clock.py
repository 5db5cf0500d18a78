"""Clocks shared by the security stores and the database models."""

from __future__ import annotations

import time
from collections.abc import Callable
from datetime import UTC, datetime

Clock = Callable[[], int]


def now_ms() -> int:
    """Return the current Unix time in integer milliseconds."""
    return time.time_ns() // 1_000_000


def utcnow() -> datetime:
    """Timezone-aware UTC timestamp used for row defaults."""
    return datetime.now(UTC)
