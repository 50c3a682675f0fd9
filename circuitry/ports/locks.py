"""
LockBackendPort — the store behind a LockManager.

Backends are structural: anything with these four async methods works. An
adapter may also subclass LockBackendPort explicitly; any hook it leaves out
then raises UnimplementedError when called.

Atomicity contract
------------------
lock(key, ttl)
  - Single atomic create-or-refuse against the store. A record whose expiry
    has passed counts as absent and may be replaced.
  - When two callers race on the same key, exactly one gets True.

ttl(key)
  - The stored expiry, or None. May return an expiry in the past when the
    record has not been reaped yet; callers compare against their clock.

unlock(key)
  - Removes the record regardless of expiry. No-op when absent.

reap()
  - Removes all and only records whose expiry is at or before now.
  - Safe to run concurrently with every other hook; never removes a record
    whose expiry is still in the future.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Protocol, runtime_checkable

from circuitry.domain.errors import UnimplementedError


@runtime_checkable
class LockBackendPort(Protocol):
    """
    Minimal interface required by LockManager.

    Implementing adapters (built-in):
      - InMemoryLockBackend        — asyncio.Lock-based, for tests
      - LocalFileSystemLockBackend — fcntl.flock-based, POSIX single-machine
      - GCSLockBackend             — one blob per key, generation preconditions
      - NoopLockBackend            — grants everything, holds nothing
    """

    async def lock(self, key: str, ttl: timedelta) -> bool:
        """Create a record for `key` valid for `ttl`. True if acquired."""
        raise UnimplementedError("lock")

    async def ttl(self, key: str) -> datetime | None:
        """Return the stored expiry for `key`, or None if there is no record."""
        raise UnimplementedError("ttl")

    async def unlock(self, key: str) -> None:
        """Remove the record for `key`."""
        raise UnimplementedError("unlock")

    async def reap(self) -> int:
        """Purge expired records. Returns how many were removed."""
        raise UnimplementedError("reap")
