"""
Subscriber — poll a queue, unwrap envelopes, dispatch, acknowledge.

One iteration of the loop:

  1. receive a batch from the transport
  2. for each message, in the order received:
       decode body → (payload, topic short name)
       call handler(payload, topic)
       success → delete the message (acknowledge)
       failure → log "Error handling message <id>: <error>", notify the
                 error handler, leave the message for redelivery
  3. repeat

One message's failure never aborts the batch or the loop. There are no
internal retries: an un-deleted message comes back once the transport's
visibility window elapses (at-least-once delivery).

Usage
-----
    subscriber = Subscriber(SQSTransport(region_name="us-east-1"))

    async def on_event(payload, topic):
        print(topic, payload)

    await subscriber.subscribe(queue_url, on_event)

Dedup
-----
Pass a lock backend to have each delivery soft-locked by message id while
the handler runs and hard-locked after it succeeds. A delivery whose id is
already locked is treated as a duplicate: not handled, but deleted.

Stopping
--------
The loop runs until stop() is called, should_continue() returns False, or
the surrounding task is cancelled. Handlers get no timeout; a hung handler
stalls this Subscriber.
"""
from __future__ import annotations

import asyncio
import dataclasses
import enum
import inspect
import logging
from collections.abc import Callable
from datetime import timedelta
from typing import Any

from circuitry.core import codec
from circuitry.core.locks import LockManager
from circuitry.domain.errors import DecodeError, InvalidArgumentError, LockBackendError
from circuitry.domain.models import (
    DEFAULT_HARD_TTL,
    DEFAULT_SOFT_TTL,
    LockConfig,
    RawMessage,
)
from circuitry.ports.locks import LockBackendPort
from circuitry.ports.transport import QueueTransportPort

Handler = Callable[[Any, str], Any]
ErrorHandler = Callable[[Exception], Any]

NOT_PERMITTED_WARNING = "Circuitry unable to subscribe: queue transport is not configured."


class Outcome(str, enum.Enum):
    """What happened to one delivery."""

    HANDLED = "handled"
    DUPLICATE = "duplicate"
    FAILED = "failed"


@dataclasses.dataclass(frozen=True)
class _Dispatch:
    outcome: Outcome
    error: Exception | None = None

    @property
    def acknowledge(self) -> bool:
        return self.outcome is not Outcome.FAILED


@dataclasses.dataclass
class BatchResult:
    """Message ids from one receive, grouped by outcome."""

    received: int = 0
    handled: list[str] = dataclasses.field(default_factory=list)
    duplicates: list[str] = dataclasses.field(default_factory=list)
    failed: list[str] = dataclasses.field(default_factory=list)


@dataclasses.dataclass
class Subscriber:
    """
    Drives the poll → decode → dispatch → acknowledge cycle for one queue
    transport.

    Parameters
    ----------
    transport     : any QueueTransportPort implementation
    error_handler : called with the exception of every failed message
    lock_backend  : enables dedup through an owned LockManager
    soft_ttl      : soft lock TTL passed to the LockManager
    hard_ttl      : hard lock TTL passed to the LockManager
    idle_interval : pause after an empty receive (default 0, just yields)
    logger        : destination for warning / error / info lines
    """

    transport: QueueTransportPort
    error_handler: ErrorHandler | None = None
    lock_backend: LockBackendPort | None = None
    soft_ttl: timedelta | float = DEFAULT_SOFT_TTL
    hard_ttl: timedelta | float = DEFAULT_HARD_TTL
    idle_interval: timedelta = timedelta(0)
    logger: logging.Logger = dataclasses.field(
        default_factory=lambda: logging.getLogger(__name__), repr=False
    )

    _locks: LockManager | None = dataclasses.field(default=None, init=False, repr=False)
    _stopped: bool = dataclasses.field(default=False, init=False, repr=False)

    def __post_init__(self) -> None:
        if self.lock_backend is not None:
            self._locks = LockManager(
                self.lock_backend,
                LockConfig(soft_ttl=self.soft_ttl, hard_ttl=self.hard_ttl),
            )

    @property
    def locks(self) -> LockManager | None:
        return self._locks

    # ------------------------------------------------------------------ #
    # Public API                                                           #
    # ------------------------------------------------------------------ #

    async def subscribe(
        self,
        queue: str,
        handler: Handler,
        *,
        error_handler: ErrorHandler | None = None,
        should_continue: Callable[[], bool] | None = None,
    ) -> None:
        """
        Poll `queue` and dispatch every message to `handler(payload, topic)`.

        Raises InvalidArgumentError before any I/O when `queue` is empty or
        `handler` is missing. Returns immediately, after one warning, when
        the transport says it cannot be subscribed to. Otherwise returns only
        once stopped; handler failures never propagate, transport failures do.
        """
        self._validate(queue, handler)
        if not self.transport.can_subscribe():
            self.logger.warning(NOT_PERMITTED_WARNING)
            return

        self._stopped = False
        while not self._stopped and (should_continue is None or should_continue()):
            result = await self._poll(queue, handler, error_handler)
            if not result.received:
                await asyncio.sleep(self.idle_interval.total_seconds())

    async def poll_once(
        self,
        queue: str,
        handler: Handler,
        *,
        error_handler: ErrorHandler | None = None,
    ) -> BatchResult:
        """Run a single receive/dispatch/acknowledge iteration."""
        self._validate(queue, handler)
        return await self._poll(queue, handler, error_handler)

    def stop(self) -> None:
        """Leave the subscribe() loop once the current batch is done."""
        self._stopped = True

    # ------------------------------------------------------------------ #
    # Internals                                                            #
    # ------------------------------------------------------------------ #

    @staticmethod
    def _validate(queue: str, handler: Handler | None) -> None:
        if not queue:
            raise InvalidArgumentError("queue is required")
        if handler is None or not callable(handler):
            raise InvalidArgumentError("handler is required")

    async def _poll(
        self,
        queue: str,
        handler: Handler,
        error_handler: ErrorHandler | None,
    ) -> BatchResult:
        messages = await self.transport.receive(queue)
        result = BatchResult(received=len(messages))

        for message in messages:
            dispatch = await self._dispatch(message, handler)
            match dispatch.outcome:
                case Outcome.FAILED:
                    self.logger.error(
                        "Error handling message %s: %s", message.id, dispatch.error
                    )
                    await self._notify(error_handler or self.error_handler, dispatch.error)
                    result.failed.append(message.id)
                case Outcome.DUPLICATE:
                    self.logger.info("Ignoring duplicate message %s", message.id)
                    result.duplicates.append(message.id)
                case Outcome.HANDLED:
                    result.handled.append(message.id)

            if dispatch.acknowledge:
                await self.transport.delete(queue, message.receipt_handle)

        return result

    async def _dispatch(self, message: RawMessage, handler: Handler) -> _Dispatch:
        try:
            event = codec.decode(message)
        except DecodeError as exc:
            return _Dispatch(Outcome.FAILED, exc)

        if self._locks is not None:
            try:
                acquired = await self._locks.soft_lock(message.id)
            except LockBackendError as exc:
                return _Dispatch(Outcome.FAILED, exc)
            if not acquired:
                return _Dispatch(Outcome.DUPLICATE)

        try:
            result = handler(event.payload, event.topic)
            if inspect.isawaitable(result):
                await result
        except Exception as exc:
            await self._release(message.id)
            return _Dispatch(Outcome.FAILED, exc)

        if self._locks is not None:
            await self._release(message.id)
            try:
                await self._locks.hard_lock(message.id)
            except LockBackendError as exc:
                # Handled already; acknowledge anyway and lose only the dedup window.
                self.logger.warning("Could not hard-lock message %s: %s", message.id, exc)
        return _Dispatch(Outcome.HANDLED)

    async def _release(self, message_id: str) -> None:
        if self._locks is None:
            return
        try:
            await self._locks.unlock(message_id)
        except LockBackendError as exc:
            self.logger.warning("Could not release lock for message %s: %s", message_id, exc)

    async def _notify(self, error_handler: ErrorHandler | None, error: Exception | None) -> None:
        if error_handler is None or error is None:
            return
        try:
            result = error_handler(error)
            if inspect.isawaitable(result):
                await result
        except Exception:
            self.logger.exception("Error handler raised while reporting %r", error)
