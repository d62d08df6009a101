"""Item type enum shared by the ordered collections (lists and cards)."""

import enum

from app.models.board_list import BoardList
from app.models.card import Card


class ItemType(str, enum.Enum):
    """Kind of ordered item a reorder request targets."""

    LIST = "list"
    CARD = "card"


ORDERED_MODELS: dict[ItemType, type[BoardList] | type[Card]] = {
    ItemType.LIST: BoardList,
    ItemType.CARD: Card,
}
