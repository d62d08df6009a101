"""Repository for position reads and writes on ordered items."""

import logging
from uuid import UUID

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.models import Board, BoardList, BoardMember, Card, ItemType, ORDERED_MODELS
from app.services.position_allocator import spaced_positions
from app.services.reorder_errors import StaleVersionError

logger = logging.getLogger(__name__)

# Model that owns each item type's parent_id
PARENT_MODELS = {
    ItemType.LIST: Board,
    ItemType.CARD: BoardList,
}

PARENT_ATTRS = {
    ItemType.LIST: "board_id",
    ItemType.CARD: "list_id",
}


class OrderedItemRepository:
    """Range-scoped reads, guarded updates and locks for lists and cards."""

    def __init__(self, db: AsyncSession):
        self.db = db

    @staticmethod
    def _parent_column(item_type: ItemType):
        return getattr(ORDERED_MODELS[item_type], PARENT_ATTRS[item_type])

    async def is_board_member(self, user_id: UUID, board_id: UUID) -> bool:
        """Check whether a user belongs to a board."""
        result = await self.db.execute(
            select(BoardMember.id).where(
                BoardMember.board_id == board_id,
                BoardMember.user_id == user_id,
            )
        )
        return result.scalar_one_or_none() is not None

    async def get_item(
        self, item_type: ItemType, item_id: UUID, for_update: bool = False
    ) -> BoardList | Card | None:
        """Get a list or card by ID, optionally locking its row."""
        model = ORDERED_MODELS[item_type]
        stmt = select(model).where(model.id == item_id)
        if for_update:
            stmt = stmt.with_for_update().execution_options(populate_existing=True)
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def get_parent_board_id(self, item_type: ItemType, parent_id: UUID) -> UUID | None:
        """Resolve the board owning a parent collection, None if it is gone."""
        if item_type == ItemType.LIST:
            stmt = select(Board.id).where(Board.id == parent_id)
        else:
            stmt = select(BoardList.board_id).where(BoardList.id == parent_id)
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def lock_parents(self, item_type: ItemType, parent_ids: list[UUID]) -> set[UUID]:
        """Take the per-parent lock on every parent, in ascending id order.

        Returns the ids that were locked; a parent deleted since it was last
        read is missing from the result.
        """
        parent_model = PARENT_MODELS[item_type]
        locked = set()
        for parent_id in sorted(set(parent_ids)):
            result = await self.db.execute(
                select(parent_model.id)
                .where(parent_model.id == parent_id)
                .with_for_update()
            )
            if result.scalar_one_or_none() is not None:
                locked.add(parent_id)
        return locked

    async def list_siblings(
        self, item_type: ItemType, parent_id: UUID
    ) -> list[BoardList] | list[Card]:
        """List items under a parent sorted by position."""
        model = ORDERED_MODELS[item_type]
        result = await self.db.execute(
            select(model)
            .where(self._parent_column(item_type) == parent_id)
            .order_by(model.position)
        )
        return list(result.scalars().all())

    async def tail_position(
        self, item_type: ItemType, parent_id: UUID, exclude_id: UUID | None = None
    ) -> float | None:
        """Get the largest position under a parent."""
        model = ORDERED_MODELS[item_type]
        stmt = select(func.max(model.position)).where(
            self._parent_column(item_type) == parent_id
        )
        if exclude_id is not None:
            stmt = stmt.where(model.id != exclude_id)
        result = await self.db.execute(stmt)
        return result.scalar()

    async def adjacent_position(
        self,
        item_type: ItemType,
        parent_id: UUID,
        position: float,
        above: bool,
        exclude_id: UUID | None = None,
    ) -> float | None:
        """Get the nearest sibling key above (or below) ``position``."""
        model = ORDERED_MODELS[item_type]
        if above:
            stmt = select(func.min(model.position)).where(model.position > position)
        else:
            stmt = select(func.max(model.position)).where(model.position < position)
        stmt = stmt.where(self._parent_column(item_type) == parent_id)
        if exclude_id is not None:
            stmt = stmt.where(model.id != exclude_id)
        result = await self.db.execute(stmt)
        return result.scalar()

    async def update_position(
        self,
        item_type: ItemType,
        item_id: UUID,
        parent_id: UUID,
        position: float,
        expected_version: int,
    ) -> int:
        """Write a new parent and position if the version is unchanged.

        Returns the new version.

        Raises:
            StaleVersionError: the row is no longer at ``expected_version``.
        """
        model = ORDERED_MODELS[item_type]
        result = await self.db.execute(
            update(model)
            .where(model.id == item_id, model.version == expected_version)
            .values(
                {
                    PARENT_ATTRS[item_type]: parent_id,
                    "position": position,
                    "version": model.version + 1,
                }
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            raise StaleVersionError(item_id, expected_version)
        return expected_version + 1

    async def renumber_siblings(
        self, item_type: ItemType, parent_id: UUID, exclude_id: UUID | None = None
    ) -> list[BoardList] | list[Card]:
        """Reassign evenly spaced positions to every item under a parent.

        Must run while holding the parent lock. Returns the renumbered items.
        """
        siblings = [
            sibling
            for sibling in await self.list_siblings(item_type, parent_id)
            if sibling.id != exclude_id
        ]

        for sibling, position in zip(siblings, spaced_positions(len(siblings))):
            sibling.position = position
            sibling.version += 1

        await self.db.flush()

        logger.info(
            f"Renumbered {len(siblings)} {item_type.value}s under parent {parent_id}"
        )
        return siblings
