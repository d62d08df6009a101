from app.api.routes.boards import router as boards_router
from app.api.routes.moves import router as moves_router
from app.api.routes.board_socket import router as board_socket_router
from app.api.routes.users import router as users_router

__all__ = [
    "boards_router",
    "moves_router",
    "board_socket_router",
    "users_router",
]
