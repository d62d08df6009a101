import asyncio
import json
from unittest.mock import AsyncMock, MagicMock
from uuid import uuid4

from app.services.board_event_relay import BoardEventRelay


class FakeIncomingMessage:
    def __init__(self, body: bytes):
        self.body = body
        self.acked = False

    async def ack(self) -> None:
        self.acked = True


def envelope(board_id, exclude=None) -> bytes:
    return json.dumps(
        {
            "board_id": str(board_id),
            "exclude_connection_id": exclude,
            "message": {"type": "item_moved", "board_id": str(board_id), "data": {}},
        }
    ).encode("utf-8")


async def test_relayed_event_is_delivered_locally_and_acked():
    board_id = uuid4()
    deliver = MagicMock(return_value=2)
    relay = BoardEventRelay(url="amqp://test", exchange_name="test.events")
    relay._deliver = deliver
    message = FakeIncomingMessage(envelope(board_id, exclude="conn-1"))

    await relay._process_message(message)

    deliver.assert_called_once_with(
        board_id, {"type": "item_moved", "board_id": str(board_id), "data": {}}, "conn-1"
    )
    assert message.acked


async def test_malformed_event_is_dropped_and_acked():
    deliver = MagicMock()
    relay = BoardEventRelay(url="amqp://test")
    relay._deliver = deliver
    message = FakeIncomingMessage(b"{not json")

    await relay._process_message(message)

    deliver.assert_not_called()
    assert message.acked


async def test_delivery_failure_still_acks():
    relay = BoardEventRelay(url="amqp://test")
    relay._deliver = MagicMock(side_effect=RuntimeError("room gone"))
    message = FakeIncomingMessage(envelope(uuid4()))

    await relay._process_message(message)

    assert message.acked


async def test_published_events_keep_their_order():
    relay = BoardEventRelay(url="amqp://test")
    relay._exchange = AsyncMock()
    publisher = asyncio.create_task(relay._publish_loop())
    board_id = uuid4()

    try:
        for seq in range(3):
            relay.publish_nowait(board_id, {"type": "item_moved", "data": {"seq": seq}}, None)
        await relay._outbox.join()
    finally:
        publisher.cancel()

    bodies = [
        json.loads(call.args[0].body.decode("utf-8"))
        for call in relay._exchange.publish.await_args_list
    ]
    assert [body["message"]["data"]["seq"] for body in bodies] == [0, 1, 2]
    assert all(body["board_id"] == str(board_id) for body in bodies)
    assert all(call.kwargs["routing_key"] == "" for call in relay._exchange.publish.await_args_list)


async def test_not_connected_until_connect():
    relay = BoardEventRelay(url="amqp://test")

    assert relay.is_connected is False
