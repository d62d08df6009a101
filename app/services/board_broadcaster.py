"""Board rooms: presence bookkeeping and fan-out of committed moves."""

import logging
from typing import TYPE_CHECKING, Any
from uuid import UUID

from app.schemas.board_event import BoardEvent, BoardEventType, RoomMember
from app.schemas.reorder import ReorderResult
from app.services.board_connection import BoardConnection, ConnectionState

if TYPE_CHECKING:
    from app.services.board_event_relay import BoardEventRelay

logger = logging.getLogger(__name__)


class BoardBroadcaster:
    """In-memory registry of board rooms.

    A room exists while at least one connection has joined it. Rooms are not
    persisted; clients rebuild them by rejoining after a restart. When a relay
    is attached, moves and presence events travel through it so every
    instance serving the board delivers them to its local members.
    """

    def __init__(self, relay: "BoardEventRelay | None" = None):
        self._rooms: dict[UUID, dict[str, BoardConnection]] = {}
        self.relay = relay

    def room_members(self, board_id: UUID) -> list[RoomMember]:
        """List the connections in this instance's part of a room.

        Members connected to other instances are not listed; they are only
        announced through relayed ``member_joined`` and ``member_left`` events.
        """
        room = self._rooms.get(board_id, {})
        return [
            RoomMember(connection_id=conn.connection_id, user_id=conn.user_id)
            for conn in room.values()
        ]

    def room_count(self) -> int:
        return len(self._rooms)

    def has_room(self, board_id: UUID) -> bool:
        return board_id in self._rooms

    def join(self, board_id: UUID, connection: BoardConnection) -> list[RoomMember]:
        """Add a connection to a board room.

        Existing members receive ``member_joined``; the new member receives
        the full ``room_members`` list. Joining twice is a no-op apart from
        resending the member list.

        Raises:
            InvalidConnectionStateError: connection is not authenticated.
        """
        connection.mark_joined(board_id)

        room = self._rooms.setdefault(board_id, {})
        is_new = connection.connection_id not in room
        room[connection.connection_id] = connection

        if is_new:
            joined = self._event(
                BoardEventType.MEMBER_JOINED,
                board_id,
                RoomMember(connection_id=connection.connection_id, user_id=connection.user_id).model_dump(mode="json"),
            )
            self._broadcast(board_id, joined, exclude_connection_id=connection.connection_id)
            logger.info(
                f"Connection {connection.connection_id} (user {connection.user_id}) joined board {board_id}, "
                f"room size={len(room)}"
            )

        members = self.room_members(board_id)
        self._deliver(
            connection,
            self._event(
                BoardEventType.ROOM_MEMBERS,
                board_id,
                {"members": [member.model_dump(mode="json") for member in members]},
            ),
        )
        return members

    def leave(self, board_id: UUID, connection: BoardConnection) -> bool:
        """Remove a connection from a room, discarding the room when empty."""
        room = self._rooms.get(board_id)
        if not room or connection.connection_id not in room:
            return False

        del room[connection.connection_id]
        connection.mark_left(board_id)

        if not room:
            del self._rooms[board_id]
            logger.info(f"Board room {board_id} closed")

        left = self._event(
            BoardEventType.MEMBER_LEFT,
            board_id,
            RoomMember(connection_id=connection.connection_id, user_id=connection.user_id).model_dump(mode="json"),
        )
        self._broadcast(board_id, left)

        logger.info(f"Connection {connection.connection_id} left board {board_id}")
        return True

    def disconnect(self, connection: BoardConnection) -> None:
        """Leave every joined room and enter the terminal state."""
        for board_id in list(connection.boards):
            self.leave(board_id, connection)
        connection.mark_disconnected()

    def publish(
        self,
        board_id: UUID,
        result: ReorderResult,
        exclude_connection_id: str | None = None,
    ) -> None:
        """Fan a committed move out to the board's room without waiting."""
        message = self._event(
            BoardEventType.ITEM_MOVED, board_id, result.model_dump(mode="json")
        )

        self._broadcast(board_id, message, exclude_connection_id)

    def _broadcast(
        self,
        board_id: UUID,
        message: dict[str, Any],
        exclude_connection_id: str | None = None,
    ) -> None:
        if self.relay is not None and self.relay.is_connected:
            self.relay.publish_nowait(board_id, message, exclude_connection_id)
            return

        self.deliver_local(board_id, message, exclude_connection_id)

    def deliver_local(
        self,
        board_id: UUID,
        message: dict[str, Any],
        exclude_connection_id: str | None = None,
    ) -> int:
        """Enqueue a message for every local member of a room."""
        recipients = 0
        for connection in list(self._rooms.get(board_id, {}).values()):
            if connection.connection_id == exclude_connection_id:
                continue
            if self._deliver(connection, message):
                recipients += 1

        logger.debug(f"Delivered {message.get('type')} on board {board_id} to {recipients} connections")
        return recipients

    def _deliver(self, connection: BoardConnection, message: dict[str, Any]) -> bool:
        if connection.enqueue(message):
            return True
        if connection.state != ConnectionState.DISCONNECTED:
            logger.warning(
                f"Outbox full for connection {connection.connection_id}, dropping slow consumer"
            )
            self.disconnect(connection)
            connection.abort()
        return False

    @staticmethod
    def _event(event_type: BoardEventType, board_id: UUID, data: dict[str, Any]) -> dict[str, Any]:
        return BoardEvent(type=event_type, board_id=board_id, data=data).model_dump(mode="json")


board_broadcaster = BoardBroadcaster()
