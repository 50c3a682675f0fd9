"""
InMemoryLockBackend — asyncio.Lock-based lock store for testing and development.

Keeps key → expiry in a dict. The asyncio.Lock makes lock() a single
check-and-set step, so of two coroutines racing on one key exactly one wins.

Zero external dependencies. Safe for multiple concurrent coroutines in a
single event loop. NOT safe across processes or threads.
"""
from __future__ import annotations

import asyncio
import dataclasses
from collections.abc import Callable
from datetime import datetime, timedelta

from circuitry.domain.models import utcnow


@dataclasses.dataclass
class InMemoryLockBackend:
    """
    In-process lock store.

    Parameters
    ----------
    initial_records : optional pre-populated key → expiry (useful for test setup)
    clock           : returns the current aware datetime; injectable for tests
    """

    initial_records: dict[str, datetime] = dataclasses.field(default_factory=dict)
    clock: Callable[[], datetime] = utcnow

    def __post_init__(self) -> None:
        self._records: dict[str, datetime] = dict(self.initial_records)
        self._lock: asyncio.Lock = asyncio.Lock()

    async def lock(self, key: str, ttl: timedelta) -> bool:
        async with self._lock:
            now = self.clock()
            expires_at = self._records.get(key)
            if expires_at is not None and expires_at > now:
                return False
            self._records[key] = now + ttl
            return True

    async def ttl(self, key: str) -> datetime | None:
        async with self._lock:
            return self._records.get(key)

    async def unlock(self, key: str) -> None:
        async with self._lock:
            self._records.pop(key, None)

    async def reap(self) -> int:
        async with self._lock:
            now = self.clock()
            expired = [k for k, v in self._records.items() if v <= now]
            for key in expired:
                del self._records[key]
            return len(expired)

    def keys(self) -> set[str]:
        """Every stored key, expired or not."""
        return set(self._records)
