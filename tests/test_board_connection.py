import asyncio
from uuid import uuid4

import pytest

from app.services.board_connection import (
    BoardConnection,
    ConnectionState,
    InvalidConnectionStateError,
)


class RecordingTransport:
    def __init__(self):
        self.sent: list[dict] = []
        self.closed = False
        self.close_calls = 0

    async def send(self, message: dict) -> None:
        self.sent.append(message)

    async def close(self) -> None:
        self.close_calls += 1
        self.closed = True


async def test_lifecycle_transitions():
    connection = BoardConnection(RecordingTransport().send)
    board_id = uuid4()
    assert connection.state == ConnectionState.CONNECTING

    connection.authenticate(uuid4())
    assert connection.state == ConnectionState.AUTHENTICATED

    connection.mark_joined(board_id)
    assert connection.state == ConnectionState.JOINED
    assert connection.boards == {board_id}

    connection.mark_left(board_id)
    assert connection.state == ConnectionState.AUTHENTICATED

    connection.mark_disconnected()
    assert connection.state == ConnectionState.DISCONNECTED
    connection.mark_disconnected()
    assert connection.state == ConnectionState.DISCONNECTED


async def test_join_before_authentication_is_rejected():
    connection = BoardConnection(RecordingTransport().send)

    with pytest.raises(InvalidConnectionStateError):
        connection.mark_joined(uuid4())


async def test_disconnected_is_terminal():
    connection = BoardConnection(RecordingTransport().send)
    connection.mark_disconnected()

    with pytest.raises(InvalidConnectionStateError):
        connection.authenticate(uuid4())
    assert connection.enqueue({"type": "pong"}) is False


async def test_stays_joined_while_any_room_remains():
    connection = BoardConnection(RecordingTransport().send)
    first, second = uuid4(), uuid4()
    connection.authenticate(uuid4())
    connection.mark_joined(first)
    connection.mark_joined(second)

    connection.mark_left(first)

    assert connection.state == ConnectionState.JOINED
    assert connection.boards == {second}


async def test_messages_delivered_in_enqueue_order():
    transport = RecordingTransport()
    connection = BoardConnection(transport.send)
    connection.start()

    for idx in range(20):
        assert connection.enqueue({"seq": idx})
    await connection.flush()
    await connection.close()

    assert [message["seq"] for message in transport.sent] == list(range(20))


async def test_full_outbox_refuses_messages():
    connection = BoardConnection(RecordingTransport().send, outbox_size=2)

    assert connection.enqueue({"seq": 1})
    assert connection.enqueue({"seq": 2})
    assert connection.enqueue({"seq": 3}) is False


async def test_send_failure_does_not_stop_writer():
    delivered = []

    async def flaky_send(message):
        if message["seq"] == 1:
            raise ConnectionError("socket closed")
        delivered.append(message["seq"])

    connection = BoardConnection(flaky_send)
    connection.start()
    for idx in range(3):
        connection.enqueue({"seq": idx})
    await connection.flush()
    await connection.close()

    assert delivered == [0, 2]


async def test_abort_disconnects_and_closes_transport():
    transport = RecordingTransport()
    connection = BoardConnection(transport.send, close=transport.close)
    connection.authenticate(uuid4())

    connection.abort()
    await asyncio.sleep(0)

    assert connection.state == ConnectionState.DISCONNECTED
    assert transport.closed


async def test_abort_keeps_close_task_and_closes_once():
    transport = RecordingTransport()
    connection = BoardConnection(transport.send, close=transport.close)
    connection.authenticate(uuid4())

    connection.abort()
    connection.abort()
    closer = connection._closer

    assert closer is not None
    await closer
    assert transport.close_calls == 1
