from app.schemas.auth import UserResponse
from app.schemas.board import (
    BoardCreate,
    BoardMemberAdd,
    BoardMemberResponse,
    BoardListCreate,
    CardCreate,
    CardResponse,
    BoardListResponse,
    BoardListWithCards,
    BoardResponse,
    BoardDetailResponse,
)
from app.schemas.reorder import MoveItemRequest, SiblingPosition, ReorderResult
from app.schemas.board_event import (
    BoardEventType,
    BoardEvent,
    CommandType,
    BoardCommand,
    RoomMember,
)

__all__ = [
    "UserResponse",
    # Boards
    "BoardCreate",
    "BoardMemberAdd",
    "BoardMemberResponse",
    "BoardListCreate",
    "CardCreate",
    "CardResponse",
    "BoardListResponse",
    "BoardListWithCards",
    "BoardResponse",
    "BoardDetailResponse",
    # Reorder
    "MoveItemRequest",
    "SiblingPosition",
    "ReorderResult",
    # Realtime
    "BoardEventType",
    "BoardEvent",
    "CommandType",
    "BoardCommand",
    "RoomMember",
]
