"""Board, list and card management routes."""

from uuid import UUID

from fastapi import APIRouter, status

from app.api.deps import CurrentUser, DBSession
from app.api.errors import http_error
from app.models import Board, BoardList, BoardMember, Card, ItemType
from app.schemas.board import (
    BoardCreate,
    BoardDetailResponse,
    BoardListCreate,
    BoardListResponse,
    BoardMemberAdd,
    BoardMemberResponse,
    BoardResponse,
    CardCreate,
    CardResponse,
)
from app.services.board_service import BoardService
from app.services.reorder_errors import ReorderError

router = APIRouter(tags=["boards"])


@router.post("/boards", response_model=BoardResponse, status_code=status.HTTP_201_CREATED)
async def create_board(
    data: BoardCreate,
    current_user: CurrentUser,
    db: DBSession,
) -> Board:
    """Create a new board owned by the current user."""
    service = BoardService(db)
    return await service.create_board(data, current_user.id)


@router.get("/boards/{board_id}", response_model=BoardDetailResponse)
async def get_board(
    board_id: UUID,
    current_user: CurrentUser,
    db: DBSession,
) -> Board:
    """Get a board with its lists and cards in display order."""
    service = BoardService(db)

    try:
        return await service.get_board_detail(board_id, current_user.id)
    except ReorderError as e:
        raise http_error(e)


@router.post(
    "/boards/{board_id}/members",
    response_model=BoardMemberResponse,
    status_code=status.HTTP_201_CREATED,
)
async def add_board_member(
    board_id: UUID,
    data: BoardMemberAdd,
    current_user: CurrentUser,
    db: DBSession,
) -> BoardMember:
    """Add a user to a board."""
    service = BoardService(db)

    try:
        return await service.add_member(board_id, data.user_id, current_user.id)
    except ReorderError as e:
        raise http_error(e)


@router.post(
    "/boards/{board_id}/lists",
    response_model=BoardListResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_list(
    board_id: UUID,
    data: BoardListCreate,
    current_user: CurrentUser,
    db: DBSession,
) -> BoardList:
    """Create a list at the end of a board."""
    service = BoardService(db)

    try:
        return await service.create_list(board_id, data, current_user.id)
    except ReorderError as e:
        raise http_error(e)


@router.post(
    "/lists/{list_id}/cards",
    response_model=CardResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_card(
    list_id: UUID,
    data: CardCreate,
    current_user: CurrentUser,
    db: DBSession,
) -> Card:
    """Create a card at the end of a list."""
    service = BoardService(db)

    try:
        return await service.create_card(list_id, data, current_user.id)
    except ReorderError as e:
        raise http_error(e)


@router.delete("/lists/{list_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_list(
    list_id: UUID,
    current_user: CurrentUser,
    db: DBSession,
) -> None:
    """Delete a list and its cards."""
    service = BoardService(db)

    try:
        await service.delete_item(ItemType.LIST, list_id, current_user.id)
    except ReorderError as e:
        raise http_error(e)


@router.delete("/cards/{card_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_card(
    card_id: UUID,
    current_user: CurrentUser,
    db: DBSession,
) -> None:
    """Delete a card."""
    service = BoardService(db)

    try:
        await service.delete_item(ItemType.CARD, card_id, current_user.id)
    except ReorderError as e:
        raise http_error(e)
