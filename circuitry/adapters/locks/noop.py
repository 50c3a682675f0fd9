"""
NoopLockBackend — grants every lock and remembers none.

Useful to switch dedup off without changing Subscriber wiring: every
soft_lock() succeeds, so every delivery is handled.
"""
from __future__ import annotations

import dataclasses
from datetime import datetime, timedelta


@dataclasses.dataclass
class NoopLockBackend:
    async def lock(self, key: str, ttl: timedelta) -> bool:
        return True

    async def ttl(self, key: str) -> datetime | None:
        return None

    async def unlock(self, key: str) -> None:
        return None

    async def reap(self) -> int:
        return 0
