"""
Codec — decode publish envelopes and (de)serialize lock tables.

Envelope wire format
--------------------
The publishing side serializes the payload into a string field, then the
topic wraps it again, so a message body is JSON nested inside JSON:

  RawMessage.body = '{"Message": "\\"Foo\\"",
                      "TopicArn": "arn:aws:sns:us-east-1:123456789012:test-event"}'

decode() therefore parses twice: body → PublishEnvelope, then
envelope.message → payload. The payload may be any JSON value.

Lock table format (produced by model_dump_json)
-----------------------------------------------
{
  "locks": {
    "circuitry:lock:abc": "2024-01-01T00:15:00Z"
  }
}
"""
from __future__ import annotations

import json

from pydantic import ValidationError

from circuitry.domain.errors import DecodeError
from circuitry.domain.models import DecodedEvent, LockTable, PublishEnvelope, RawMessage


def decode(message: RawMessage) -> DecodedEvent:
    """Unwrap both envelope layers. Raises DecodeError on malformed input."""
    try:
        envelope = PublishEnvelope.model_validate_json(message.body)
    except ValidationError as exc:
        raise DecodeError(message.id, f"invalid envelope ({exc.error_count()} errors)") from exc
    try:
        payload = json.loads(envelope.message)
    except json.JSONDecodeError as exc:
        raise DecodeError(message.id, f"Message is not JSON ({exc.msg})") from exc
    return DecodedEvent(message_id=message.id, payload=payload, topic=envelope.topic_name)


def encode_locks(table: LockTable) -> bytes:
    """Serialize LockTable to UTF-8 JSON bytes."""
    return table.model_dump_json(indent=2).encode("utf-8")


def decode_locks(data: bytes) -> LockTable:
    """Deserialize UTF-8 JSON bytes to LockTable. Empty bytes → empty table."""
    if not data:
        return LockTable()
    return LockTable.model_validate_json(data)
