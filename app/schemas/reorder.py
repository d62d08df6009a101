"""Pydantic schemas for the move (reorder) operation."""

from uuid import UUID

from pydantic import BaseModel, Field, model_validator

from app.models.ordered_item import ItemType


class MoveItemRequest(BaseModel):
    """Desired relative placement of an item.

    ``before_id`` names the item that should end up directly before the moved
    item and ``after_id`` the one directly after it. Omitting both appends the
    item to the tail of the destination (or places it in an empty one).
    """

    item_type: ItemType
    item_id: UUID
    destination_parent_id: UUID
    before_id: UUID | None = None
    after_id: UUID | None = None
    expected_version: int | None = Field(None, ge=1)

    @model_validator(mode="after")
    def validate_neighbors(self) -> "MoveItemRequest":
        """Neighbors must be distinct from each other."""
        if self.before_id is not None and self.before_id == self.after_id:
            raise ValueError("before_id and after_id must differ")
        return self


class SiblingPosition(BaseModel):
    """New key of a sibling rewritten by renumbering."""

    item_id: UUID
    position: float
    version: int


class ReorderResult(BaseModel):
    """Authoritative outcome of a committed move.

    ``renumbered`` is only populated when the move exhausted key precision
    and every other item under ``parent_id`` received a fresh key.
    """

    item_type: ItemType
    item_id: UUID
    board_id: UUID
    parent_id: UUID
    position: float
    version: int
    renumbered: list[SiblingPosition] = []
