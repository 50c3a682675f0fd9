"""
LockManager — named-TTL locks over any LockBackendPort.

Two TTL classes share one key per id:

  soft_lock(id) — held while one delivery is being processed (default 15 min);
                  refuses concurrent or duplicate in-flight deliveries
  hard_lock(id) — taken after success (default 24 h); suppresses reprocessing
                  when the transport redelivers an already-handled event

Usage
-----
    locks = LockManager(InMemoryLockBackend())

    if await locks.soft_lock(message.id):
        await handle(message)
        await locks.unlock(message.id)
        await locks.hard_lock(message.id)

The manager holds no lock state of its own; the backend does. A lock is held
iff the backend's stored expiry is strictly later than `clock()`, so an
expired record that has not been reaped yet reads as free.
"""
from __future__ import annotations

import dataclasses
from collections.abc import Callable
from datetime import datetime

from circuitry.domain.models import LockConfig, utcnow
from circuitry.ports.locks import LockBackendPort

KEY_PREFIX = "circuitry:lock:"


@dataclasses.dataclass
class LockManager:
    """
    Parameters
    ----------
    backend : any LockBackendPort implementation
    config  : soft / hard TTLs
    clock   : returns the current aware datetime; injectable for tests
    """

    backend: LockBackendPort
    config: LockConfig = dataclasses.field(default_factory=LockConfig)
    clock: Callable[[], datetime] = utcnow

    @staticmethod
    def lock_key(id: str) -> str:
        return f"{KEY_PREFIX}{id}"

    async def soft_lock(self, id: str) -> bool:
        """Acquire `id` for the soft TTL. False if anyone holds it already."""
        return await self.backend.lock(self.lock_key(id), self.config.soft_ttl)

    async def hard_lock(self, id: str) -> bool:
        """Acquire `id` for the hard TTL. False if anyone holds it already."""
        return await self.backend.lock(self.lock_key(id), self.config.hard_ttl)

    async def is_locked(self, id: str) -> bool:
        expires_at = await self.backend.ttl(self.lock_key(id))
        return expires_at is not None and expires_at > self.clock()

    async def unlock(self, id: str) -> None:
        """Release `id` whatever its TTL class or expiry."""
        await self.backend.unlock(self.lock_key(id))

    async def reap(self) -> int:
        """Purge expired records from the backend. Returns the number removed."""
        return await self.backend.reap()
