"""
Exception hierarchy for circuitry.

CircuitryError
├── InvalidArgumentError — subscribe() called without a queue or handler
├── UnimplementedError   — a lock backend hook was not supplied
├── DecodeError          — message body is not a valid publish envelope
├── TransportError       — queue receive/delete failure (wraps original exception)
└── LockBackendError     — lock store I/O failure (wraps original exception)

Errors raised by application handlers are deliberately NOT part of this
hierarchy: the Subscriber absorbs them per message and hands the original
exception object to the configured error handler.
"""

from __future__ import annotations


class CircuitryError(Exception):
    """Base class for all circuitry exceptions."""


class InvalidArgumentError(CircuitryError, ValueError):
    """Raised before any I/O when subscribe() is called with bad arguments."""


class UnimplementedError(CircuitryError, NotImplementedError):
    """
    Raised when a lock backend hook is called but the backend never
    implemented it. A programming error, never expected in production.
    """

    def __init__(self, hook: str) -> None:
        self.hook = hook
        super().__init__(f"Lock backend does not implement {hook}()")


class DecodeError(CircuitryError):
    """Raised when a message body cannot be decoded into a publish envelope."""

    def __init__(self, message_id: str, reason: str) -> None:
        self.message_id = message_id
        super().__init__(f"Malformed envelope in message {message_id!r}: {reason}")


class TransportError(CircuitryError):
    """
    Wraps an underlying failure from a queue transport.

    Attributes
    ----------
    cause : Exception
        The original exception from the transport.
    """

    def __init__(self, message: str, cause: Exception | None = None) -> None:
        self.cause = cause
        super().__init__(message if cause is None else f"{message}: {cause}")


class LockBackendError(CircuitryError):
    """
    Wraps an underlying I/O failure from a lock backend.

    Attributes
    ----------
    cause : Exception
        The original exception from the lock store.
    """

    def __init__(self, message: str, cause: Exception) -> None:
        self.cause = cause
        super().__init__(f"{message}: {cause}")
