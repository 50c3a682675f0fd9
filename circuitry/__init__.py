"""
circuitry — queue subscriber with envelope decoding and dual-TTL dedup locks.

A Subscriber polls a queue, unwraps the topic envelope around every message
(the payload is JSON encoded inside a JSON body), hands (payload, topic) to
your handler, and deletes only the messages whose handler succeeded. Failed
messages stay on the queue and come back after the transport's visibility
window: at-least-once delivery.

A LockManager layers two TTL classes over a pluggable lock store so handlers
can be made idempotent: a short soft lock while a delivery is in flight, a
long hard lock once it has been processed.

Quick start
-----------
    import asyncio
    from circuitry import InMemoryLockBackend, Subscriber
    from circuitry.adapters.transport.sqs import SQSTransport

    async def on_event(payload, topic):
        print(f"{topic}: {payload!r}")

    async def main():
        subscriber = Subscriber(
            SQSTransport(region_name="us-east-1"),
            lock_backend=InMemoryLockBackend(),
            error_handler=lambda exc: print("failed:", exc),
        )
        await subscriber.subscribe(
            "https://sqs.us-east-1.amazonaws.com/123456789012/events",
            on_event,
        )

    asyncio.run(main())

Adapters
--------
Built-in (no extra deps):
  - InMemoryTransport          — queues with a simulated visibility window
  - InMemoryLockBackend        — for tests and examples
  - LocalFileSystemLockBackend — POSIX single-machine (fcntl.flock)
  - NoopLockBackend            — dedup switched off

Optional adapters (install extras):
  - SQSTransport     (pip install "circuitry[sqs]")
  - GCSLockBackend   (pip install "circuitry[gcs]")

Architecture
------------
Follows the Ports & Adapters pattern:
  domain/   — pure value types (RawMessage, PublishEnvelope, LockConfig, ...)
  ports/    — Protocol interfaces (QueueTransportPort, LockBackendPort)
  core/     — business logic (Subscriber, LockManager, codec)
  adapters/ — concrete transports and lock backends
"""
from __future__ import annotations

from circuitry.adapters.locks.filesystem import LocalFileSystemLockBackend
from circuitry.adapters.locks.memory import InMemoryLockBackend
from circuitry.adapters.locks.noop import NoopLockBackend
from circuitry.adapters.transport.memory import InMemoryTransport
from circuitry.core.locks import LockManager
from circuitry.core.subscriber import BatchResult, Outcome, Subscriber
from circuitry.domain.errors import (
    CircuitryError,
    DecodeError,
    InvalidArgumentError,
    LockBackendError,
    TransportError,
    UnimplementedError,
)
from circuitry.domain.models import (
    DecodedEvent,
    LockConfig,
    LockRecord,
    PublishEnvelope,
    RawMessage,
)
from circuitry.ports.locks import LockBackendPort
from circuitry.ports.transport import QueueTransportPort

__all__ = [
    # Domain models
    "RawMessage",
    "PublishEnvelope",
    "DecodedEvent",
    "LockConfig",
    "LockRecord",
    # Errors
    "CircuitryError",
    "InvalidArgumentError",
    "UnimplementedError",
    "DecodeError",
    "TransportError",
    "LockBackendError",
    # Ports (for typing custom adapters)
    "QueueTransportPort",
    "LockBackendPort",
    # High-level API
    "Subscriber",
    "BatchResult",
    "Outcome",
    "LockManager",
    # Built-in adapters
    "InMemoryTransport",
    "InMemoryLockBackend",
    "LocalFileSystemLockBackend",
    "NoopLockBackend",
]
