"""Realtime wire messages exchanged over the board socket."""

from enum import Enum
from typing import Any
from uuid import UUID

from pydantic import BaseModel


class BoardEventType(str, Enum):
    """Types of events pushed to board subscribers."""

    CONNECTED = "connected"
    ROOM_MEMBERS = "room_members"
    MEMBER_JOINED = "member_joined"
    MEMBER_LEFT = "member_left"
    ITEM_MOVED = "item_moved"
    ERROR = "error"
    PONG = "pong"


class BoardEvent(BaseModel):
    """Server to client message."""

    type: BoardEventType
    board_id: UUID | None = None
    data: dict[str, Any] = {}


class CommandType(str, Enum):
    """Commands a client may send."""

    JOIN = "join"
    LEAVE = "leave"
    PING = "ping"


class BoardCommand(BaseModel):
    """Client to server message."""

    command: CommandType
    board_id: UUID | None = None


class RoomMember(BaseModel):
    """A connection present in a board room."""

    connection_id: str
    user_id: UUID | None
