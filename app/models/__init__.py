from app.models.base import Base
from app.models.user import User
from app.models.board import Board
from app.models.board_member import BoardMember
from app.models.board_list import BoardList
from app.models.card import Card
from app.models.ordered_item import ItemType, ORDERED_MODELS

__all__ = [
    "Base",
    "User",
    "Board",
    "BoardMember",
    # Ordered collections
    "BoardList",
    "Card",
    "ItemType",
    "ORDERED_MODELS",
]
