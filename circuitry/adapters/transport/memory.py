"""
InMemoryTransport — asyncio.Lock-based queue with a simulated visibility window.

Behaves like SQS for the parts the Subscriber depends on:

  - receive() hands out up to `max_messages` visible messages and hides each
    one for `visibility_timeout`, issuing a fresh receipt handle per delivery
  - delete() needs the receipt handle of the current delivery; a stale or
    unknown handle raises TransportError
  - a message that is not deleted becomes visible again once its window
    elapses, and is redelivered with the same message id

Zero external dependencies. Safe for multiple concurrent coroutines in a
single event loop. NOT safe across processes or threads.
"""
from __future__ import annotations

import asyncio
import dataclasses
import uuid
from collections.abc import Callable
from datetime import datetime, timedelta

from circuitry.domain.errors import TransportError
from circuitry.domain.models import RawMessage, utcnow


@dataclasses.dataclass
class _Entry:
    id: str
    body: str
    receipt_handle: str | None = None
    visible_at: datetime | None = None
    receive_count: int = 0


@dataclasses.dataclass
class InMemoryTransport:
    """
    In-process queues keyed by queue name.

    Parameters
    ----------
    visibility_timeout : how long a received message stays hidden (default 30 s)
    max_messages       : upper bound on messages per receive() (default 10)
    configured         : value returned by can_subscribe()
    clock              : returns the current aware datetime; injectable for tests
    """

    visibility_timeout: timedelta = timedelta(seconds=30)
    max_messages: int = 10
    configured: bool = True
    clock: Callable[[], datetime] = utcnow

    def __post_init__(self) -> None:
        self._queues: dict[str, list[_Entry]] = {}
        self._lock: asyncio.Lock = asyncio.Lock()

    def can_subscribe(self) -> bool:
        return self.configured

    async def send(self, queue: str, body: str, message_id: str | None = None) -> str:
        """Append a raw body to `queue`. Returns the message id."""
        entry = _Entry(id=message_id or str(uuid.uuid4()), body=body)
        async with self._lock:
            self._queues.setdefault(queue, []).append(entry)
        return entry.id

    async def receive(self, queue: str) -> list[RawMessage]:
        """Deliver visible messages in insertion order and hide them."""
        async with self._lock:
            now = self.clock()
            batch: list[RawMessage] = []
            for entry in self._queues.get(queue, []):
                if len(batch) >= self.max_messages:
                    break
                if entry.visible_at is not None and entry.visible_at > now:
                    continue
                entry.receipt_handle = str(uuid.uuid4())
                entry.visible_at = now + self.visibility_timeout
                entry.receive_count += 1
                batch.append(
                    RawMessage(
                        id=entry.id,
                        receipt_handle=entry.receipt_handle,
                        body=entry.body,
                    )
                )
            return batch

    async def delete(self, queue: str, receipt_handle: str) -> None:
        """Remove the message currently delivered under `receipt_handle`."""
        async with self._lock:
            entries = self._queues.get(queue, [])
            for index, entry in enumerate(entries):
                if entry.receipt_handle == receipt_handle:
                    del entries[index]
                    return
        raise TransportError(f"Unknown receipt handle {receipt_handle!r} for queue {queue!r}")

    async def pending(self, queue: str) -> int:
        """Number of messages not yet deleted, visible or not."""
        async with self._lock:
            return len(self._queues.get(queue, []))
