"""
SQSTransport — AWS SQS adapter using aioboto3.

Install extras: pip install "circuitry[sqs]"

Delivery semantics
------------------
  receive() → ReceiveMessage with long polling (WaitTimeSeconds). Each entry
              of the response's "Messages" list validates straight into a
              RawMessage (MessageId, ReceiptHandle, Body).
  delete()  → DeleteMessage(QueueUrl, ReceiptHandle).

Any botocore / network failure is wrapped in TransportError. SQS itself
redelivers messages that were not deleted within their visibility timeout.

Queue identifiers are queue URLs, e.g.
  https://sqs.us-east-1.amazonaws.com/123456789012/my-queue

Compatible with SQS-compatible endpoints (ElasticMQ, LocalStack) through
endpoint_url.
"""
from __future__ import annotations

import dataclasses
import logging
import os
from typing import TYPE_CHECKING, Any

from pydantic import ValidationError

from circuitry.domain.errors import TransportError
from circuitry.domain.models import RawMessage

logger = logging.getLogger(__name__)

if TYPE_CHECKING:
    from aioboto3 import Session as AioBoto3Session

_CREDENTIAL_ENV_VARS: tuple[str, ...] = (
    "AWS_ACCESS_KEY_ID",
    "AWS_PROFILE",
    "AWS_CONTAINER_CREDENTIALS_RELATIVE_URI",
    "AWS_CONTAINER_CREDENTIALS_FULL_URI",
    "AWS_WEB_IDENTITY_TOKEN_FILE",
)


@dataclasses.dataclass
class SQSTransport:
    """
    AWS SQS transport.

    Parameters
    ----------
    session            : aioboto3.Session — created lazily from env vars if omitted
    region_name        : AWS region passed to the SQS client
    endpoint_url       : custom endpoint for SQS-compatible backends
    wait_time_seconds  : long-poll duration per receive (0-20, default 20)
    max_messages       : messages per receive (1-10, default 10)
    visibility_timeout : per-receive override in seconds; queue default if None
    """

    session: AioBoto3Session | None = None
    region_name: str | None = None
    endpoint_url: str | None = None
    wait_time_seconds: int = 20
    max_messages: int = 10
    visibility_timeout: int | None = None

    def can_subscribe(self) -> bool:
        """True when a session was injected or AWS credentials are in the environment."""
        if self.session is not None:
            return True
        return any(os.environ.get(name) for name in _CREDENTIAL_ENV_VARS)

    def _get_session(self) -> AioBoto3Session:
        if self.session is not None:
            return self.session
        try:
            import aioboto3  # type: ignore[import-untyped]
        except ImportError as exc:
            raise ImportError(
                "SQSTransport requires aioboto3. Install with: pip install 'circuitry[sqs]'"
            ) from exc
        return aioboto3.Session()  # type: ignore[return-value]

    def _client_kwargs(self) -> dict[str, str]:
        """Build kwargs forwarded to the SQS client constructor."""
        kwargs: dict[str, str] = {}
        if self.region_name:
            kwargs["region_name"] = self.region_name
        if self.endpoint_url:
            kwargs["endpoint_url"] = self.endpoint_url
        return kwargs

    def _receive_kwargs(self, queue: str) -> dict[str, Any]:
        kwargs: dict[str, Any] = {
            "QueueUrl": queue,
            "MaxNumberOfMessages": self.max_messages,
            "WaitTimeSeconds": self.wait_time_seconds,
        }
        if self.visibility_timeout is not None:
            kwargs["VisibilityTimeout"] = self.visibility_timeout
        return kwargs

    async def receive(self, queue: str) -> list[RawMessage]:
        """Long-poll `queue` once. Returns [] when nothing arrived in time."""
        session = self._get_session()
        try:
            async with session.client("sqs", **self._client_kwargs()) as sqs:  # type: ignore[attr-defined]
                response = await sqs.receive_message(**self._receive_kwargs(queue))
        except Exception as exc:
            raise TransportError("SQS receive failed", exc) from exc
        batch: list[RawMessage] = []
        for entry in response.get("Messages", []):
            try:
                batch.append(RawMessage.model_validate(entry))
            except ValidationError as exc:
                # Left un-deleted; SQS redelivers it and eventually dead-letters it.
                logger.warning(
                    "Skipping malformed SQS entry %s: %s", entry.get("MessageId"), exc
                )
        return batch

    async def delete(self, queue: str, receipt_handle: str) -> None:
        """Acknowledge one delivery."""
        session = self._get_session()
        try:
            async with session.client("sqs", **self._client_kwargs()) as sqs:  # type: ignore[attr-defined]
                await sqs.delete_message(QueueUrl=queue, ReceiptHandle=receipt_handle)
        except Exception as exc:
            raise TransportError("SQS delete failed", exc) from exc
