"""
LocalFileSystemLockBackend — fcntl.flock-based lock table for POSIX systems.

Suitable for local development or several worker processes on one machine.
NOT suitable for multi-machine deployments — use GCSLockBackend there.

Storage
-------
All locks live in one JSON LockTable document (see core/codec.py). Expired
entries stay in the file until reap() removes them; they never count as held.

Atomicity
---------
Every mutation (lock, unlock, reap) opens the file, takes an exclusive flock,
re-reads the table, mutates it in memory and rewrites it before releasing the
lock. ttl() reads under a shared flock. Two processes racing on lock() for
the same key are serialized by the exclusive flock, so exactly one wins.

POSIX-only (Linux, macOS). Not compatible with NFS or distributed filesystems.
"""

from __future__ import annotations

import asyncio
import dataclasses
import fcntl
import os
from collections.abc import Callable
from datetime import datetime, timedelta
from pathlib import Path
from typing import Any

from circuitry.core import codec
from circuitry.domain.errors import LockBackendError
from circuitry.domain.models import LockTable, utcnow

TableFn = Callable[[LockTable, datetime], LockTable]


@dataclasses.dataclass
class LocalFileSystemLockBackend:
    """
    Stores every lock in a local JSON file.

    Parameters
    ----------
    path  : path to the lock table file (parent directory created if absent)
    clock : returns the current aware datetime; injectable for tests
    """

    path: Path
    clock: Callable[[], datetime]

    def __init__(self, path: str | Path, clock: Callable[[], datetime] = utcnow) -> None:
        self.path = Path(path)
        self.clock = clock

    async def lock(self, key: str, ttl: timedelta) -> bool:
        acquired = False

        def _fn(table: LockTable, now: datetime) -> LockTable:
            nonlocal acquired
            if table.held(key, now):
                return table
            acquired = True
            return table.with_lock(key, now + ttl)

        await self._run("lock", self._sync_mutate, _fn)
        return acquired

    async def ttl(self, key: str) -> datetime | None:
        table: LockTable = await self._run("ttl", self._sync_read)
        return table.locks.get(key)

    async def unlock(self, key: str) -> None:
        await self._run("unlock", self._sync_mutate, lambda table, _: table.without(key))

    async def reap(self) -> int:
        removed = 0

        def _fn(table: LockTable, now: datetime) -> LockTable:
            nonlocal removed
            live = table.reaped(now)
            removed = len(table.locks) - len(live.locks)
            return live

        await self._run("reap", self._sync_mutate, _fn)
        return removed

    async def _run(self, op: str, fn: Callable[..., Any], *args: Any) -> Any:
        try:
            return await asyncio.to_thread(fn, *args)
        except OSError as exc:
            raise LockBackendError(f"Lock file {op} failed", exc) from exc

    # ------------------------------------------------------------------ #
    # Synchronous implementations (executed in a thread-pool worker)      #
    # ------------------------------------------------------------------ #

    def _sync_read(self) -> LockTable:
        if not self.path.exists():
            return LockTable()
        with open(self.path, "rb") as fh:
            fcntl.flock(fh, fcntl.LOCK_SH)
            try:
                content = fh.read()
            finally:
                fcntl.flock(fh, fcntl.LOCK_UN)
        return codec.decode_locks(content)

    def _sync_mutate(self, fn: TableFn) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd = os.open(str(self.path), os.O_RDWR | os.O_CREAT, 0o644)
        try:
            fcntl.flock(fd, fcntl.LOCK_EX)

            existing = os.read(fd, os.fstat(fd).st_size)
            table = codec.decode_locks(existing)
            updated = fn(table, self.clock())
            if updated is table:
                return

            os.ftruncate(fd, 0)
            os.lseek(fd, 0, os.SEEK_SET)
            os.write(fd, codec.encode_locks(updated))
        finally:
            fcntl.flock(fd, fcntl.LOCK_UN)
            os.close(fd)
