import asyncio
from datetime import timedelta

import pytest

from circuitry.adapters.transport.memory import InMemoryTransport
from circuitry.domain.errors import TransportError
from circuitry.ports.transport import QueueTransportPort

QUEUE = "events"

# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def transport(clock) -> InMemoryTransport:
    return InMemoryTransport(visibility_timeout=timedelta(seconds=30), clock=clock)


# ---------------------------------------------------------------------------
# receive
# ---------------------------------------------------------------------------


def test_satisfies_port():
    assert isinstance(InMemoryTransport(), QueueTransportPort)


def test_can_subscribe_reflects_configuration():
    assert InMemoryTransport().can_subscribe()
    assert not InMemoryTransport(configured=False).can_subscribe()


async def test_receive_empty_queue(transport: InMemoryTransport) -> None:
    assert await transport.receive(QUEUE) == []


async def test_receive_in_send_order(transport: InMemoryTransport) -> None:
    await transport.send(QUEUE, "a", message_id="one")
    await transport.send(QUEUE, "b", message_id="two")
    batch = await transport.receive(QUEUE)
    assert [(m.id, m.body) for m in batch] == [("one", "a"), ("two", "b")]


async def test_send_assigns_id(transport: InMemoryTransport) -> None:
    message_id = await transport.send(QUEUE, "a")
    [message] = await transport.receive(QUEUE)
    assert message.id == message_id


async def test_receive_respects_max_messages(clock) -> None:
    transport = InMemoryTransport(max_messages=2, clock=clock)
    for i in range(3):
        await transport.send(QUEUE, str(i))
    assert len(await transport.receive(QUEUE)) == 2
    assert len(await transport.receive(QUEUE)) == 1


async def test_queues_are_independent(transport: InMemoryTransport) -> None:
    await transport.send("a", "body")
    assert await transport.receive("b") == []


# ---------------------------------------------------------------------------
# visibility window
# ---------------------------------------------------------------------------


async def test_received_message_hidden_until_window_elapses(
    transport: InMemoryTransport, clock
) -> None:
    await transport.send(QUEUE, "a", message_id="one")
    first = await transport.receive(QUEUE)

    clock.advance(timedelta(seconds=29))
    assert await transport.receive(QUEUE) == []

    clock.advance(timedelta(seconds=1))
    [again] = await transport.receive(QUEUE)
    assert again.id == "one"
    assert again.receipt_handle != first[0].receipt_handle


async def test_stale_receipt_handle_cannot_delete(transport: InMemoryTransport, clock) -> None:
    await transport.send(QUEUE, "a")
    [first] = await transport.receive(QUEUE)
    clock.advance(timedelta(seconds=30))
    await transport.receive(QUEUE)

    with pytest.raises(TransportError):
        await transport.delete(QUEUE, first.receipt_handle)


# ---------------------------------------------------------------------------
# delete
# ---------------------------------------------------------------------------


async def test_delete_removes_message(transport: InMemoryTransport, clock) -> None:
    await transport.send(QUEUE, "a")
    [message] = await transport.receive(QUEUE)

    await transport.delete(QUEUE, message.receipt_handle)

    assert await transport.pending(QUEUE) == 0
    clock.advance(timedelta(minutes=5))
    assert await transport.receive(QUEUE) == []


async def test_delete_unknown_handle_raises(transport: InMemoryTransport) -> None:
    with pytest.raises(TransportError):
        await transport.delete(QUEUE, "nope")


async def test_concurrent_receivers_never_share_a_message(transport: InMemoryTransport) -> None:
    for i in range(5):
        await transport.send(QUEUE, str(i))
    batches = await asyncio.gather(transport.receive(QUEUE), transport.receive(QUEUE))
    ids = [m.id for batch in batches for m in batch]
    assert len(ids) == len(set(ids)) == 5
