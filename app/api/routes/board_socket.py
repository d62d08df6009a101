"""WebSocket endpoint for board rooms."""

import logging
from uuid import UUID

from fastapi import APIRouter, WebSocket, WebSocketDisconnect
from pydantic import ValidationError
from sqlalchemy import select

from app.api.deps import Broadcaster, SessionMaker
from app.models import User
from app.schemas.board_event import BoardCommand, BoardEvent, BoardEventType, CommandType
from app.services.auth import auth_service
from app.services.board_broadcaster import BoardBroadcaster
from app.services.board_connection import BoardConnection
from app.services.ordered_item_repository import OrderedItemRepository

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/ws", tags=["realtime"])

UNAUTHORIZED_CLOSE_CODE = 4401
TRY_AGAIN_LATER_CLOSE_CODE = 1013


def _error(message: str, board_id: UUID | None = None) -> dict:
    return BoardEvent(
        type=BoardEventType.ERROR, board_id=board_id, data={"detail": message}
    ).model_dump(mode="json")


async def _authenticate(websocket: WebSocket, session_maker) -> UUID | None:
    """Resolve the active user behind the socket's token."""
    token = websocket.cookies.get("access_token") or websocket.query_params.get("token")
    user_id = auth_service.user_id_from_token(token)
    if user_id is None:
        return None

    async with session_maker() as session:
        result = await session.execute(
            select(User.id).where(User.id == user_id, User.is_active.is_(True))
        )
        return result.scalar_one_or_none()


async def _handle_command(
    command: BoardCommand,
    connection: BoardConnection,
    broadcaster: BoardBroadcaster,
    session_maker,
) -> None:
    if command.command == CommandType.PING:
        connection.enqueue(BoardEvent(type=BoardEventType.PONG).model_dump(mode="json"))
        return

    if command.board_id is None:
        connection.enqueue(_error(f"{command.command.value} requires a board_id"))
        return

    if command.command == CommandType.LEAVE:
        broadcaster.leave(command.board_id, connection)
        return

    async with session_maker() as session:
        is_member = await OrderedItemRepository(session).is_board_member(
            connection.user_id, command.board_id
        )
    if not is_member:
        logger.warning(
            f"Rejected join of board {command.board_id} by user {connection.user_id}: not a member"
        )
        connection.enqueue(_error("Not a member of this board", command.board_id))
        return

    broadcaster.join(command.board_id, connection)


@router.websocket("/boards")
async def board_socket(
    websocket: WebSocket,
    broadcaster: Broadcaster,
    session_maker: SessionMaker,
) -> None:
    """Realtime channel: join/leave board rooms and receive committed moves."""
    await websocket.accept()

    user_id = await _authenticate(websocket, session_maker)
    if user_id is None:
        await websocket.close(code=UNAUTHORIZED_CLOSE_CODE)
        return

    async def close_slow_consumer() -> None:
        await websocket.close(code=TRY_AGAIN_LATER_CLOSE_CODE)

    connection = BoardConnection(send=websocket.send_json, close=close_slow_consumer)
    connection.authenticate(user_id)
    connection.start()
    connection.enqueue(
        BoardEvent(
            type=BoardEventType.CONNECTED,
            data={"connection_id": connection.connection_id, "user_id": str(user_id)},
        ).model_dump(mode="json")
    )
    logger.info(f"Connection {connection.connection_id} opened for user {user_id}")

    try:
        while connection.is_open:
            raw = await websocket.receive_text()
            try:
                command = BoardCommand.model_validate_json(raw)
            except ValidationError as e:
                connection.enqueue(_error(f"Invalid command: {e.errors()[0]['msg']}"))
                continue
            await _handle_command(command, connection, broadcaster, session_maker)
    except WebSocketDisconnect:
        pass
    finally:
        broadcaster.disconnect(connection)
        await connection.close()
        logger.info(f"Connection {connection.connection_id} closed")
