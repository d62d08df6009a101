"""Pydantic schemas for boards, lists and cards."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field


class BoardCreate(BaseModel):
    """Schema for creating a board."""

    name: str = Field(..., min_length=1, max_length=255)


class BoardMemberAdd(BaseModel):
    """Schema for adding a member to a board."""

    user_id: UUID


class BoardMemberResponse(BaseModel):
    """Schema for board member response."""

    board_id: UUID
    user_id: UUID
    created_at: datetime

    model_config = {"from_attributes": True}


class BoardListCreate(BaseModel):
    """Schema for creating a list at the tail of a board."""

    title: str = Field(..., min_length=1, max_length=255)


class CardCreate(BaseModel):
    """Schema for creating a card at the tail of a list."""

    title: str = Field(..., min_length=1, max_length=255)
    description: str | None = None


class CardResponse(BaseModel):
    """Schema for card response."""

    id: UUID
    list_id: UUID
    title: str
    description: str | None
    position: float
    version: int

    model_config = {"from_attributes": True}


class BoardListResponse(BaseModel):
    """Schema for list response without its cards."""

    id: UUID
    board_id: UUID
    title: str
    position: float
    version: int

    model_config = {"from_attributes": True}


class BoardListWithCards(BoardListResponse):
    """Schema for a list with its cards in display order."""

    cards: list[CardResponse] = []


class BoardResponse(BaseModel):
    """Schema for board response."""

    id: UUID
    owner_id: UUID
    name: str
    created_at: datetime

    model_config = {"from_attributes": True}


class BoardDetailResponse(BoardResponse):
    """Schema for a board with lists and cards in display order."""

    lists: list[BoardListWithCards] = []
