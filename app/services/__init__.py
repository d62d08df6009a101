from app.services.auth import AuthService, auth_service
from app.services.board_broadcaster import BoardBroadcaster, board_broadcaster
from app.services.board_connection import BoardConnection, ConnectionState
from app.services.board_service import BoardService
from app.services.ordered_item_repository import OrderedItemRepository
from app.services.reorder_service import ReorderService

__all__ = [
    "AuthService",
    "auth_service",
    "BoardBroadcaster",
    "board_broadcaster",
    "BoardConnection",
    "ConnectionState",
    "BoardService",
    "OrderedItemRepository",
    "ReorderService",
]
