"""
Domain models for circuitry — backed by Pydantic v2.

Pydantic handles:
  - validation of raw transport records straight from SQS response dicts
    (via field aliases: MessageId, ReceiptHandle, Body, Message, TopicArn)
  - datetime parsing and serialisation for persisted lock records
  - timedelta coercion for TTL configuration (numbers are seconds)

All models are frozen (immutable). Mutations return new instances via
model_copy(update=...), following a functional-update style.
"""

from datetime import UTC, datetime, timedelta
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

DEFAULT_SOFT_TTL = timedelta(minutes=15)
DEFAULT_HARD_TTL = timedelta(hours=24)


def utcnow() -> datetime:
    """Current time as an aware UTC datetime. Default clock everywhere."""
    return datetime.now(UTC)


class RawMessage(BaseModel):
    """
    A message exactly as the queue transport hands it over.

    id             — transport message id (MessageId)
    receipt_handle — opaque token required to delete this delivery (ReceiptHandle)
    body           — raw body string; a JSON publish envelope (Body)
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    id: str = Field(alias="MessageId")
    receipt_handle: str = Field(alias="ReceiptHandle")
    body: str = Field(alias="Body")


class PublishEnvelope(BaseModel):
    """
    The outer wrapper added by the publishing side.

    message   — the payload, itself JSON-encoded into a string (Message)
    topic_arn — colon-delimited resource name of the topic (TopicArn)
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    message: str = Field(alias="Message")
    topic_arn: str = Field(alias="TopicArn")

    @property
    def topic_name(self) -> str:
        """Last colon-delimited segment of topic_arn."""
        return self.topic_arn.rsplit(":", 1)[-1]


class DecodedEvent(BaseModel):
    """What a handler receives: the decoded payload and the topic short name."""

    model_config = ConfigDict(frozen=True)

    message_id: str
    payload: Any
    topic: str


class LockConfig(BaseModel):
    """
    TTL classes for a LockManager.

    soft_ttl — covers one in-flight processing attempt (default 15 minutes)
    hard_ttl — suppresses reprocessing after success (default 24 hours)
    """

    model_config = ConfigDict(frozen=True)

    soft_ttl: timedelta = DEFAULT_SOFT_TTL
    hard_ttl: timedelta = DEFAULT_HARD_TTL

    @field_validator("soft_ttl", "hard_ttl")
    @classmethod
    def _positive(cls, v: timedelta) -> timedelta:
        if v <= timedelta(0):
            raise ValueError(f"TTL must be a positive duration, got {v}")
        return v


class LockRecord(BaseModel):
    """A single lock as persisted by blob-per-key backends."""

    model_config = ConfigDict(frozen=True)

    key: str
    expires_at: datetime

    def is_live(self, now: datetime) -> bool:
        return self.expires_at > now


class LockTable(BaseModel):
    """
    Every lock held in a single-document store.

    locks — key → expiry. Expired entries stay until reaped but never count
    as held.
    """

    model_config = ConfigDict(frozen=True)

    locks: dict[str, datetime] = Field(default_factory=dict)

    def held(self, key: str, now: datetime) -> bool:
        expires_at = self.locks.get(key)
        return expires_at is not None and expires_at > now

    def with_lock(self, key: str, expires_at: datetime) -> "LockTable":
        """Return a new table with `key` set to expire at `expires_at`."""
        return self.model_copy(update={"locks": {**self.locks, key: expires_at}})

    def without(self, key: str) -> "LockTable":
        """Return a new table with `key` removed (no-op when absent)."""
        return self.model_copy(
            update={"locks": {k: v for k, v in self.locks.items() if k != key}}
        )

    def reaped(self, now: datetime) -> "LockTable":
        """Return a new table holding only the live entries."""
        return self.model_copy(
            update={"locks": {k: v for k, v in self.locks.items() if v > now}}
        )
