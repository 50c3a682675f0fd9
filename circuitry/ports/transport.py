"""
QueueTransportPort — the queue a Subscriber polls.

Any object satisfying this structural Protocol can act as the transport.
No base class or registration is required.

Delivery contract
-----------------
receive(queue)
  - Returns zero or more RawMessages, in whatever order the transport chooses.
  - Each returned delivery is hidden from other receivers for the transport's
    visibility window. Deliveries that are not deleted within that window
    become visible again (at-least-once delivery).

delete(queue, receipt_handle)
  - Acknowledges one delivery. Only called after the handler succeeded.

can_subscribe()
  - Cheap, synchronous preflight: is the transport configured well enough
    to be polled at all (credentials, region, ...)?

Transport failures are raised as TransportError and are not masked by the
Subscriber.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from circuitry.domain.models import RawMessage


@runtime_checkable
class QueueTransportPort(Protocol):
    """
    Minimal interface required by the Subscriber.

    Implementing adapters (built-in):
      - InMemoryTransport — asyncio.Lock-based, visibility window simulated
      - SQSTransport      — AWS SQS via aioboto3
    """

    def can_subscribe(self) -> bool:
        """Return False when the transport is not configured to be polled."""
        ...

    async def receive(self, queue: str) -> list[RawMessage]:
        """
        Receive the next batch from `queue`.

        Returns
        -------
        list[RawMessage]
            Possibly empty. Blocks at most for the transport's own poll timeout.

        Raises
        ------
        TransportError   for any I/O failure
        """
        ...

    async def delete(self, queue: str, receipt_handle: str) -> None:
        """
        Acknowledge (delete) one delivery.

        Raises
        ------
        TransportError   for any I/O failure or an unknown receipt handle
        """
        ...
