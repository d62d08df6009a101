"""Service for board, list and card management."""

import logging
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.models import Board, BoardList, BoardMember, Card, ItemType, User
from app.schemas.board import BoardCreate, BoardListCreate, CardCreate
from app.services.ordered_item_repository import OrderedItemRepository
from app.services.position_allocator import PrecisionExhaustedError, allocate_position
from app.services.reorder_errors import ItemNotFoundError, NotBoardMemberError

logger = logging.getLogger(__name__)


class BoardService:
    """Service for board CRUD operations.

    New lists and cards are appended at the tail of their parent while
    holding the same parent lock that moves take.
    """

    def __init__(self, db: AsyncSession):
        self.db = db
        self.repo = OrderedItemRepository(db)

    async def _require_member(self, user_id: UUID, board_id: UUID) -> None:
        if not await self.repo.is_board_member(user_id, board_id):
            raise NotBoardMemberError(board_id)

    async def _get_board(self, board_id: UUID) -> Board:
        result = await self.db.execute(select(Board).where(Board.id == board_id))
        board = result.scalar_one_or_none()
        if board is None:
            raise ItemNotFoundError(board_id, "Board")
        return board

    async def _tail_insert_position(self, item_type: ItemType, parent_id: UUID) -> float:
        """Allocate a key after the last sibling. Caller holds the parent lock."""
        tail = await self.repo.tail_position(item_type, parent_id)
        try:
            return allocate_position(tail, None)
        except PrecisionExhaustedError:
            await self.repo.renumber_siblings(item_type, parent_id)
            tail = await self.repo.tail_position(item_type, parent_id)
            return allocate_position(tail, None)

    async def create_board(self, data: BoardCreate, user_id: UUID) -> Board:
        """Create a board. The creator becomes its first member."""
        board = Board(owner_id=user_id, name=data.name)
        self.db.add(board)
        await self.db.flush()

        self.db.add(BoardMember(board_id=board.id, user_id=user_id))
        await self.db.flush()
        await self.db.refresh(board)

        logger.info(f"Board {board.id} created by {user_id}")
        return board

    async def get_board_detail(self, board_id: UUID, user_id: UUID) -> Board:
        """Get a board with its lists and cards in display order."""
        await self._get_board(board_id)
        await self._require_member(user_id, board_id)

        result = await self.db.execute(
            select(Board)
            .where(Board.id == board_id)
            .options(selectinload(Board.lists).selectinload(BoardList.cards))
            .execution_options(populate_existing=True)
        )
        return result.scalar_one()

    async def add_member(self, board_id: UUID, member_user_id: UUID, user_id: UUID) -> BoardMember:
        """Add a user to a board. Adding an existing member returns the membership."""
        await self._get_board(board_id)
        await self._require_member(user_id, board_id)

        user = await self.db.get(User, member_user_id)
        if user is None:
            raise ItemNotFoundError(member_user_id, "User")

        result = await self.db.execute(
            select(BoardMember).where(
                BoardMember.board_id == board_id,
                BoardMember.user_id == member_user_id,
            )
        )
        membership = result.scalar_one_or_none()
        if membership is not None:
            return membership

        membership = BoardMember(board_id=board_id, user_id=member_user_id)
        self.db.add(membership)
        await self.db.flush()
        await self.db.refresh(membership)

        logger.info(f"User {member_user_id} added to board {board_id} by {user_id}")
        return membership

    async def create_list(self, board_id: UUID, data: BoardListCreate, user_id: UUID) -> BoardList:
        """Create a list at the tail of a board."""
        await self._get_board(board_id)
        await self._require_member(user_id, board_id)

        if board_id not in await self.repo.lock_parents(ItemType.LIST, [board_id]):
            raise ItemNotFoundError(board_id, "Board")
        position = await self._tail_insert_position(ItemType.LIST, board_id)

        board_list = BoardList(board_id=board_id, title=data.title, position=position, version=1)
        self.db.add(board_list)
        await self.db.flush()
        await self.db.refresh(board_list)
        return board_list

    async def create_card(self, list_id: UUID, data: CardCreate, user_id: UUID) -> Card:
        """Create a card at the tail of a list."""
        board_id = await self.repo.get_parent_board_id(ItemType.CARD, list_id)
        if board_id is None:
            raise ItemNotFoundError(list_id, "List")
        await self._require_member(user_id, board_id)

        if list_id not in await self.repo.lock_parents(ItemType.CARD, [list_id]):
            raise ItemNotFoundError(list_id, "List")
        position = await self._tail_insert_position(ItemType.CARD, list_id)

        card = Card(
            list_id=list_id,
            title=data.title,
            description=data.description,
            position=position,
            version=1,
        )
        self.db.add(card)
        await self.db.flush()
        await self.db.refresh(card)
        return card

    async def delete_item(self, item_type: ItemType, item_id: UUID, user_id: UUID) -> None:
        """Delete a list (with its cards) or a card."""
        item = await self.repo.get_item(item_type, item_id)
        if item is None:
            raise ItemNotFoundError(item_id, item_type.value.capitalize())

        board_id = await self.repo.get_parent_board_id(item_type, item.parent_id)
        await self._require_member(user_id, board_id)

        await self.repo.lock_parents(item_type, [item.parent_id])
        await self.db.delete(item)
        await self.db.flush()

        logger.info(f"Deleted {item_type.value} {item_id} by {user_id}")
