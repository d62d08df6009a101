"""Transactional move of a list or card to a new place."""

import asyncio
import logging
import random
from uuid import UUID

from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.config import settings
from app.models import BoardList, Card, ItemType
from app.schemas.reorder import MoveItemRequest, ReorderResult, SiblingPosition
from app.services.board_broadcaster import BoardBroadcaster
from app.services.ordered_item_repository import OrderedItemRepository
from app.services.position_allocator import PrecisionExhaustedError, allocate_position
from app.services.reorder_errors import (
    InvalidTargetError,
    ItemNotFoundError,
    NotBoardMemberError,
    ReorderConflictError,
    StaleVersionError,
)

logger = logging.getLogger(__name__)


class ReorderService:
    """Validates, allocates and commits a move, then hands it to the broadcaster.

    Each attempt runs in its own transaction. Lost races (a guarded update
    that matched no row, or a lock/serialization failure reported by the
    database) are retried with jittered exponential backoff; anything else
    is surfaced to the caller immediately.
    """

    def __init__(
        self,
        session_maker: async_sessionmaker[AsyncSession],
        broadcaster: BoardBroadcaster | None = None,
        max_attempts: int | None = None,
        backoff_base_ms: int | None = None,
    ):
        self.session_maker = session_maker
        self.broadcaster = broadcaster
        self.max_attempts = (
            settings.reorder_max_attempts if max_attempts is None else max_attempts
        )
        self.backoff_base_ms = (
            settings.reorder_backoff_base_ms if backoff_base_ms is None else backoff_base_ms
        )

    def _backoff_delay(self, attempt: int) -> float:
        """Seconds to wait before the next attempt."""
        base = self.backoff_base_ms / 1000 * (2 ** (attempt - 1))
        return base * random.uniform(0.5, 1.5)

    async def reorder(
        self,
        request: MoveItemRequest,
        actor_id: UUID,
        origin_connection_id: str | None = None,
    ) -> ReorderResult:
        """Move an item and return the committed result.

        Raises:
            NotBoardMemberError: actor is not a member of a touched board.
            ItemNotFoundError: the item or a named neighbor was deleted.
            InvalidTargetError: destination cannot hold the item.
            ReorderConflictError: neighbors are stale or retries ran out.
        """
        attempt = 0
        while True:
            attempt += 1
            try:
                async with self.session_maker() as session:
                    async with session.begin():
                        repo = OrderedItemRepository(session)
                        result = await self._reorder_once(repo, request, actor_id)
                break
            except (StaleVersionError, OperationalError) as e:
                if attempt >= self.max_attempts:
                    logger.warning(
                        f"Giving up on move of {request.item_type.value} {request.item_id} "
                        f"after {attempt} attempts: {e}"
                    )
                    raise ReorderConflictError(
                        f"Concurrent update on {request.item_type.value} {request.item_id}, retry with fresh state"
                    ) from e

                delay = self._backoff_delay(attempt)
                logger.warning(
                    f"Move of {request.item_type.value} {request.item_id} lost a race "
                    f"(attempt {attempt}), retrying in {delay * 1000:.1f}ms"
                )
                await asyncio.sleep(delay)

        logger.info(
            f"Moved {result.item_type.value} {result.item_id} to parent {result.parent_id} "
            f"at {result.position} (v{result.version}) by {actor_id}"
        )

        if self.broadcaster is not None:
            self.broadcaster.publish(
                result.board_id, result, exclude_connection_id=origin_connection_id
            )

        return result

    async def _reorder_once(
        self,
        repo: OrderedItemRepository,
        request: MoveItemRequest,
        actor_id: UUID,
    ) -> ReorderResult:
        item_type = request.item_type
        destination_id = request.destination_parent_id

        item = await repo.get_item(item_type, request.item_id)
        if item is None:
            raise ItemNotFoundError(request.item_id, item_type.value.capitalize())
        source_id = item.parent_id

        destination_board_id = await repo.get_parent_board_id(item_type, destination_id)
        if destination_board_id is None:
            raise InvalidTargetError(f"Destination {destination_id} does not exist")
        source_board_id = await repo.get_parent_board_id(item_type, source_id)

        await self._check_membership(repo, actor_id, destination_board_id)
        if source_board_id is not None and source_board_id != destination_board_id:
            await self._check_membership(repo, actor_id, source_board_id)

        if request.item_id in (request.before_id, request.after_id):
            raise InvalidTargetError("An item cannot be placed next to itself")
        if item_type == ItemType.LIST and destination_id != source_id:
            raise InvalidTargetError("Lists cannot move between boards")

        locked = await repo.lock_parents(item_type, [source_id, destination_id])
        if destination_id not in locked:
            raise InvalidTargetError(f"Destination {destination_id} does not exist")
        if source_id not in locked:
            # Deleting a parent deletes its items
            raise ItemNotFoundError(request.item_id, item_type.value.capitalize())

        item = await repo.get_item(item_type, request.item_id, for_update=True)
        if item is None:
            raise ItemNotFoundError(request.item_id, item_type.value.capitalize())
        if item.parent_id != source_id:
            # Moved by someone else between the first read and the lock
            raise StaleVersionError(item.id, item.version)
        current_version = item.version

        if request.expected_version is not None and request.expected_version != current_version:
            raise ReorderConflictError(
                f"{item_type.value.capitalize()} {item.id} is at version {current_version}, "
                f"not {request.expected_version}"
            )

        before = await self._resolve_neighbor(repo, item_type, request.before_id, destination_id, "Previous neighbor")
        after = await self._resolve_neighbor(repo, item_type, request.after_id, destination_id, "Next neighbor")
        if before is not None and after is not None and before.position >= after.position:
            raise ReorderConflictError(
                f"Neighbors {before.id} and {after.id} are no longer in that order"
            )

        renumbered: list[BoardList] | list[Card] = []
        lower, upper = await self._bounds(repo, item_type, destination_id, item.id, before, after)
        try:
            position = allocate_position(lower, upper)
        except PrecisionExhaustedError:
            logger.info(
                f"Key precision exhausted between {lower} and {upper} under {destination_id}, renumbering"
            )
            renumbered = await repo.renumber_siblings(item_type, destination_id, exclude_id=item.id)
            lower, upper = await self._bounds(repo, item_type, destination_id, item.id, before, after)
            position = allocate_position(lower, upper)

        new_version = await repo.update_position(
            item_type, item.id, destination_id, position, current_version
        )

        return ReorderResult(
            item_type=item_type,
            item_id=item.id,
            board_id=destination_board_id,
            parent_id=destination_id,
            position=position,
            version=new_version,
            renumbered=[
                SiblingPosition(item_id=sibling.id, position=sibling.position, version=sibling.version)
                for sibling in renumbered
            ],
        )

    async def _check_membership(
        self, repo: OrderedItemRepository, actor_id: UUID, board_id: UUID
    ) -> None:
        if not await repo.is_board_member(actor_id, board_id):
            logger.warning(f"Rejected move by {actor_id}: not a member of board {board_id}")
            raise NotBoardMemberError(board_id)

    async def _resolve_neighbor(
        self,
        repo: OrderedItemRepository,
        item_type: ItemType,
        neighbor_id: UUID | None,
        destination_id: UUID,
        role: str,
    ) -> BoardList | Card | None:
        if neighbor_id is None:
            return None
        neighbor = await repo.get_item(item_type, neighbor_id)
        if neighbor is None:
            raise ItemNotFoundError(neighbor_id, role)
        if neighbor.parent_id != destination_id:
            raise ReorderConflictError(f"{role} {neighbor_id} is no longer in {destination_id}")
        return neighbor

    async def _bounds(
        self,
        repo: OrderedItemRepository,
        item_type: ItemType,
        destination_id: UUID,
        item_id: UUID,
        before: BoardList | Card | None,
        after: BoardList | Card | None,
    ) -> tuple[float | None, float | None]:
        """Open interval the new key must fall in.

        The interval is tightened to the nearest actual sibling so a key
        never lands on an item inserted next to a neighbor since the client
        last looked.
        """
        if before is not None:
            upper = await repo.adjacent_position(
                item_type, destination_id, before.position, above=True, exclude_id=item_id
            )
            return before.position, upper
        if after is not None:
            lower = await repo.adjacent_position(
                item_type, destination_id, after.position, above=False, exclude_id=item_id
            )
            return lower, after.position
        return await repo.tail_position(item_type, destination_id, exclude_id=item_id), None
