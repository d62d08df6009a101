"""Errors raised by the reorder coordinator."""

from uuid import UUID


class ReorderError(Exception):
    """Base class for move failures surfaced to callers."""


class NotBoardMemberError(ReorderError):
    """Actor is not a member of a board touched by the move."""

    def __init__(self, board_id: UUID):
        self.board_id = board_id
        super().__init__(f"Not a member of board {board_id}")


class ItemNotFoundError(ReorderError):
    """A referenced item no longer exists."""

    def __init__(self, item_id: UUID, role: str = "Item"):
        self.item_id = item_id
        super().__init__(f"{role} {item_id} not found")


class InvalidTargetError(ReorderError):
    """Destination or neighbors cannot hold the item."""


class ReorderConflictError(ReorderError):
    """The move lost a race or was based on stale neighbors."""


class StaleVersionError(Exception):
    """Guarded position update matched no row (version moved on)."""

    def __init__(self, item_id: UUID, expected_version: int):
        self.item_id = item_id
        self.expected_version = expected_version
        super().__init__(f"Item {item_id} is no longer at version {expected_version}")
