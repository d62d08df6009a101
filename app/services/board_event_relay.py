"""RabbitMQ relay that shares board events between API instances."""

import asyncio
import json
import logging
from typing import Any, Callable
from uuid import UUID

import aio_pika
from aio_pika import ExchangeType, IncomingMessage
from aio_pika.abc import (
    AbstractExchange,
    AbstractQueue,
    AbstractRobustChannel,
    AbstractRobustConnection,
)

from app.config import settings

logger = logging.getLogger(__name__)

DeliverFunc = Callable[[UUID, dict[str, Any], str | None], int]


class BoardEventRelay:
    """Fanout relay with robust connection handling.

    Every instance binds an exclusive queue to one fanout exchange, so each
    published event reaches every instance exactly once and each instance
    delivers it to the members of the room it holds locally. Outgoing events
    are published by a single task in the order they were handed over.
    """

    def __init__(self, url: str | None = None, exchange_name: str | None = None):
        self.url = url or settings.rabbitmq_url
        self.exchange_name = exchange_name or settings.broadcast_exchange
        self._connection: AbstractRobustConnection | None = None
        self._channel: AbstractRobustChannel | None = None
        self._exchange: AbstractExchange | None = None
        self._queue: AbstractQueue | None = None
        self._outbox: asyncio.Queue[bytes] = asyncio.Queue()
        self._tasks: list[asyncio.Task] = []
        self._deliver: DeliverFunc | None = None

    async def connect(self, deliver: DeliverFunc) -> None:
        """Connect, bind this instance's queue and start relaying."""
        logger.info(f"Connecting board relay to RabbitMQ exchange {self.exchange_name}...")

        self._deliver = deliver
        self._connection = await aio_pika.connect_robust(self.url)
        self._channel = await self._connection.channel()
        await self._channel.set_qos(prefetch_count=100)

        self._exchange = await self._channel.declare_exchange(
            self.exchange_name, ExchangeType.FANOUT, durable=True
        )
        self._queue = await self._channel.declare_queue(exclusive=True, auto_delete=True)
        await self._queue.bind(self._exchange)

        self._tasks = [
            asyncio.create_task(self._publish_loop()),
            asyncio.create_task(self._consume_loop()),
        ]

        logger.info("Board relay connected")

    async def disconnect(self) -> None:
        """Gracefully stop relaying and close the RabbitMQ connection."""
        for task in self._tasks:
            task.cancel()
        for task in self._tasks:
            try:
                await task
            except asyncio.CancelledError:
                pass
        self._tasks = []

        if self._channel:
            await self._channel.close()
            self._channel = None

        if self._connection:
            await self._connection.close()
            self._connection = None

        self._exchange = None
        self._queue = None
        logger.info("Board relay disconnected")

    def publish_nowait(
        self,
        board_id: UUID,
        message: dict[str, Any],
        exclude_connection_id: str | None = None,
    ) -> None:
        """Hand an event to the publisher task."""
        envelope = {
            "board_id": str(board_id),
            "exclude_connection_id": exclude_connection_id,
            "message": message,
        }
        self._outbox.put_nowait(json.dumps(envelope).encode("utf-8"))

    async def _publish_loop(self) -> None:
        while True:
            body = await self._outbox.get()
            try:
                await self._exchange.publish(
                    aio_pika.Message(body=body, content_type="application/json"),
                    routing_key="",
                )
            except Exception as e:
                logger.error(f"Failed to publish board event: {e}", exc_info=True)
            finally:
                self._outbox.task_done()

    async def _consume_loop(self) -> None:
        async with self._queue.iterator() as queue_iter:
            async for message in queue_iter:
                await self._process_message(message)

    async def _process_message(self, message: IncomingMessage) -> None:
        """Deliver one relayed event to the local room."""
        try:
            envelope = json.loads(message.body.decode("utf-8"))
            board_id = UUID(envelope["board_id"])
            recipients = self._deliver(
                board_id, envelope["message"], envelope.get("exclude_connection_id")
            )
            logger.debug(f"Relayed event for board {board_id} to {recipients} local connections")

        except (json.JSONDecodeError, KeyError, ValueError) as e:
            logger.error(f"Dropping malformed board event: {e}")

        except Exception as e:
            logger.error(f"Error delivering relayed board event: {e}", exc_info=True)

        finally:
            # At-most-once delivery, never requeued
            await message.ack()

    @property
    def is_connected(self) -> bool:
        """Check if the relay is connected to RabbitMQ."""
        return (
            self._connection is not None
            and not self._connection.is_closed
            and self._channel is not None
            and not self._channel.is_closed
        )
