from datetime import UTC, datetime, timedelta

import pytest
from pydantic import ValidationError

from circuitry.domain.models import (
    LockConfig,
    LockRecord,
    LockTable,
    PublishEnvelope,
    RawMessage,
)

NOW = datetime(2024, 1, 1, tzinfo=UTC)

# ---------------------------------------------------------------------------
# RawMessage
# ---------------------------------------------------------------------------


def test_raw_message_from_sqs_entry():
    message = RawMessage.model_validate(
        {
            "MessageId": "one",
            "ReceiptHandle": "delete-one",
            "MD5OfBody": "abc",
            "Body": "{}",
        }
    )
    assert message.id == "one"
    assert message.receipt_handle == "delete-one"
    assert message.body == "{}"


def test_raw_message_by_field_name():
    message = RawMessage(id="one", receipt_handle="r", body="{}")
    assert message.id == "one"


def test_raw_message_is_frozen():
    message = RawMessage(id="one", receipt_handle="r", body="{}")
    with pytest.raises(ValidationError):
        message.body = "other"


def test_raw_message_requires_receipt_handle():
    with pytest.raises(ValidationError):
        RawMessage.model_validate({"MessageId": "one", "Body": "{}"})


# ---------------------------------------------------------------------------
# PublishEnvelope
# ---------------------------------------------------------------------------


def test_envelope_topic_name_is_last_segment():
    envelope = PublishEnvelope(
        message='"Foo"', topic_arn="arn:aws:sns:us-east-1:123456789012:test-event-comment"
    )
    assert envelope.topic_name == "test-event-comment"


# ---------------------------------------------------------------------------
# LockConfig
# ---------------------------------------------------------------------------


def test_lock_config_defaults():
    config = LockConfig()
    assert config.soft_ttl == timedelta(minutes=15)
    assert config.hard_ttl == timedelta(hours=24)


def test_lock_config_accepts_seconds():
    config = LockConfig(soft_ttl=900, hard_ttl=86400)
    assert config.soft_ttl == timedelta(seconds=900)
    assert config.hard_ttl == timedelta(days=1)


@pytest.mark.parametrize("field", ["soft_ttl", "hard_ttl"])
@pytest.mark.parametrize("value", [0, -1, timedelta(seconds=-5)])
def test_lock_config_rejects_non_positive(field, value):
    with pytest.raises(ValidationError):
        LockConfig(**{field: value})


def test_lock_config_is_frozen():
    config = LockConfig()
    with pytest.raises(ValidationError):
        config.soft_ttl = timedelta(seconds=1)


# ---------------------------------------------------------------------------
# LockRecord / LockTable
# ---------------------------------------------------------------------------


def test_lock_record_live_only_strictly_before_expiry():
    record = LockRecord(key="k", expires_at=NOW)
    assert record.is_live(NOW - timedelta(seconds=1))
    assert not record.is_live(NOW)


def test_lock_table_held():
    table = LockTable().with_lock("k", NOW + timedelta(minutes=1))
    assert table.held("k", NOW)
    assert not table.held("k", NOW + timedelta(minutes=1))
    assert not table.held("other", NOW)


def test_lock_table_with_lock_returns_new_instance():
    original = LockTable()
    updated = original.with_lock("k", NOW)
    assert original.locks == {}
    assert updated.locks == {"k": NOW}


def test_lock_table_without_missing_key_is_noop():
    table = LockTable().with_lock("k", NOW)
    assert table.without("absent").locks == table.locks
    assert table.without("k").locks == {}


def test_lock_table_reaped_keeps_only_live():
    table = LockTable(
        locks={
            "expired": NOW - timedelta(seconds=1),
            "boundary": NOW,
            "live": NOW + timedelta(seconds=1),
        }
    )
    assert set(table.reaped(NOW).locks) == {"live"}
