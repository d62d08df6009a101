"""A single realtime session and its lifecycle state machine."""

import asyncio
import logging
from enum import Enum
from typing import Any, Awaitable, Callable
from uuid import UUID, uuid4

from app.config import settings

logger = logging.getLogger(__name__)

SendFunc = Callable[[dict[str, Any]], Awaitable[None]]
CloseFunc = Callable[[], Awaitable[None]]


class ConnectionState(str, Enum):
    """Lifecycle states of a board connection."""

    CONNECTING = "connecting"
    AUTHENTICATED = "authenticated"
    JOINED = "joined"
    DISCONNECTED = "disconnected"


TRANSITIONS: dict[ConnectionState, set[ConnectionState]] = {
    ConnectionState.CONNECTING: {ConnectionState.AUTHENTICATED, ConnectionState.DISCONNECTED},
    ConnectionState.AUTHENTICATED: {ConnectionState.JOINED, ConnectionState.DISCONNECTED},
    ConnectionState.JOINED: {
        ConnectionState.JOINED,
        ConnectionState.AUTHENTICATED,
        ConnectionState.DISCONNECTED,
    },
    ConnectionState.DISCONNECTED: set(),
}


class InvalidConnectionStateError(Exception):
    """Operation not allowed in the connection's current state."""

    def __init__(self, current: ConnectionState, target: ConnectionState):
        self.current = current
        self.target = target
        super().__init__(f"Cannot move connection from {current.value} to {target.value}")


class BoardConnection:
    """Transport-agnostic session handle.

    Outgoing messages go through a bounded queue drained by one writer task,
    so messages reach the transport in the order they were enqueued and
    enqueueing never waits on the network.
    """

    def __init__(
        self,
        send: SendFunc,
        connection_id: str | None = None,
        close: CloseFunc | None = None,
        outbox_size: int | None = None,
    ):
        self.connection_id = connection_id or uuid4().hex
        self.user_id: UUID | None = None
        self.state = ConnectionState.CONNECTING
        self.boards: set[UUID] = set()
        self._send = send
        self._close = close
        self._outbox: asyncio.Queue[dict[str, Any]] = asyncio.Queue(
            maxsize=outbox_size or settings.ws_outbox_size
        )
        self._writer: asyncio.Task | None = None
        self._closer: asyncio.Task | None = None

    def _transition(self, target: ConnectionState) -> None:
        if target not in TRANSITIONS[self.state]:
            raise InvalidConnectionStateError(self.state, target)
        self.state = target

    @property
    def is_open(self) -> bool:
        return self.state != ConnectionState.DISCONNECTED

    def authenticate(self, user_id: UUID) -> None:
        """Bind the verified user to this connection."""
        self._transition(ConnectionState.AUTHENTICATED)
        self.user_id = user_id

    def mark_joined(self, board_id: UUID) -> None:
        self._transition(ConnectionState.JOINED)
        self.boards.add(board_id)

    def mark_left(self, board_id: UUID) -> None:
        self.boards.discard(board_id)
        if self.state == ConnectionState.JOINED and not self.boards:
            self._transition(ConnectionState.AUTHENTICATED)

    def mark_disconnected(self) -> None:
        """Enter the terminal state. Safe to call more than once."""
        if self.state == ConnectionState.DISCONNECTED:
            return
        self._transition(ConnectionState.DISCONNECTED)
        self.boards.clear()

    def start(self) -> None:
        """Start the writer task."""
        if self._writer is None:
            self._writer = asyncio.create_task(self._write_loop())

    def enqueue(self, message: dict[str, Any]) -> bool:
        """Queue a message for delivery. False if closed or the outbox is full."""
        if not self.is_open:
            return False
        try:
            self._outbox.put_nowait(message)
        except asyncio.QueueFull:
            return False
        return True

    async def flush(self) -> None:
        """Wait until every queued message has been handed to the transport."""
        await self._outbox.join()

    def abort(self) -> None:
        """Disconnect and ask the transport to close."""
        self.mark_disconnected()
        if self._close is not None and self._closer is None:
            self._closer = asyncio.create_task(self._close())

    async def close(self) -> None:
        """Stop the writer task."""
        self.mark_disconnected()
        if self._writer is not None:
            self._writer.cancel()
            try:
                await self._writer
            except asyncio.CancelledError:
                pass
            self._writer = None

    async def _write_loop(self) -> None:
        while True:
            message = await self._outbox.get()
            try:
                await self._send(message)
            except Exception as e:
                logger.warning(f"Send to connection {self.connection_id} failed: {e}")
            finally:
                self._outbox.task_done()
