"""Client-side board state: authoritative items plus speculative moves."""

from dataclasses import dataclass, field
from uuid import UUID, uuid4

from app.models.ordered_item import ItemType
from app.schemas.board import BoardDetailResponse
from app.schemas.reorder import MoveItemRequest, ReorderResult


@dataclass
class ClientItem:
    """Last authoritative state of a list or card known to the client."""

    item_type: ItemType
    item_id: UUID
    parent_id: UUID
    position: float
    version: int


@dataclass
class PendingMove:
    """A local move shown before the service has confirmed it."""

    item_type: ItemType
    item_id: UUID
    destination_parent_id: UUID
    before_id: UUID | None = None
    after_id: UUID | None = None
    move_id: str = field(default_factory=lambda: uuid4().hex)
    sent: bool = False

    def to_request(self) -> MoveItemRequest:
        return MoveItemRequest(
            item_type=self.item_type,
            item_id=self.item_id,
            destination_parent_id=self.destination_parent_id,
            before_id=self.before_id,
            after_id=self.after_id,
        )


def items_from_board(board: BoardDetailResponse) -> list[ClientItem]:
    """Flatten a board snapshot into client items."""
    items = []
    for board_list in board.lists:
        items.append(
            ClientItem(ItemType.LIST, board_list.id, board.id, board_list.position, board_list.version)
        )
        for card in board_list.cards:
            items.append(ClientItem(ItemType.CARD, card.id, board_list.id, card.position, card.version))
    return items


class BoardView:
    """Visible board order derived from authoritative state and overlays.

    The authoritative base only changes through service results, and the
    visible order is recomputed from it with every pending move applied in
    the order the moves began. Dropping an overlay therefore restores the
    last known-good order without keeping snapshots around. Results for an
    item with a pending move are held back until that move resolves.
    """

    def __init__(self):
        self._items: dict[UUID, ClientItem] = {}
        self._overlay: list[PendingMove] = []
        self._deferred: dict[UUID, list[ReorderResult]] = {}

    @property
    def pending(self) -> list[PendingMove]:
        return list(self._overlay)

    def get(self, item_id: UUID) -> ClientItem | None:
        return self._items.get(item_id)

    def is_pending(self, item_id: UUID) -> bool:
        return any(move.item_id == item_id for move in self._overlay)

    def replace_all(self, items: list[ClientItem]) -> None:
        """Load a fresh authoritative snapshot. Pending moves stay applied.

        Items missing from the snapshot were deleted and are dropped. For the
        rest, a value already held at a newer version than the snapshot's
        (a result that arrived while the snapshot was in flight) is kept.
        """
        merged = {}
        for item in items:
            current = self._items.get(item.item_id)
            if current is not None and current.version > item.version:
                merged[item.item_id] = current
            else:
                merged[item.item_id] = item
        self._items = merged

    def _authoritative_groups(self) -> dict[UUID, list[UUID]]:
        groups: dict[UUID, list[ClientItem]] = {}
        for item in self._items.values():
            groups.setdefault(item.parent_id, []).append(item)
        return {
            parent_id: [item.item_id for item in sorted(members, key=lambda i: (i.position, str(i.item_id)))]
            for parent_id, members in groups.items()
        }

    def _visible_groups(self) -> dict[UUID, list[UUID]]:
        groups = self._authoritative_groups()
        for move in self._overlay:
            for members in groups.values():
                if move.item_id in members:
                    members.remove(move.item_id)
                    break

            destination = groups.setdefault(move.destination_parent_id, [])
            if move.before_id in destination:
                destination.insert(destination.index(move.before_id) + 1, move.item_id)
            elif move.after_id in destination:
                destination.insert(destination.index(move.after_id), move.item_id)
            else:
                destination.append(move.item_id)
        return groups

    def ordered_ids(self, parent_id: UUID) -> list[UUID]:
        """Visible order of the items under a parent."""
        return self._visible_groups().get(parent_id, [])

    def neighbors(self, item_id: UUID) -> tuple[UUID | None, UUID | None]:
        """Items currently shown directly before and after ``item_id``."""
        for members in self._visible_groups().values():
            if item_id in members:
                index = members.index(item_id)
                before = members[index - 1] if index > 0 else None
                after = members[index + 1] if index + 1 < len(members) else None
                return before, after
        return None, None

    def begin_local_move(
        self,
        item_id: UUID,
        destination_parent_id: UUID,
        before_id: UUID | None = None,
        after_id: UUID | None = None,
    ) -> PendingMove:
        """Show a move immediately and return its handle."""
        item = self._items.get(item_id)
        if item is None:
            raise ValueError(f"Unknown item {item_id}")

        move = PendingMove(
            item_type=item.item_type,
            item_id=item_id,
            destination_parent_id=destination_parent_id,
            before_id=before_id,
            after_id=after_id,
        )
        self._overlay.append(move)
        return move

    def refresh_neighbors(self, move: PendingMove) -> None:
        """Point a pending move at the neighbors it is shown between now."""
        move.before_id, move.after_id = self.neighbors(move.item_id)

    def confirm(self, move: PendingMove, result: ReorderResult) -> None:
        """Replace a pending move with the service's result."""
        self._drop(move)
        self._upsert(result)
        self._release_deferred(move.item_id)

    def rollback(self, move: PendingMove) -> None:
        """Discard a pending move, restoring the last authoritative placement."""
        self._drop(move)
        self._release_deferred(move.item_id)

    def apply_remote(self, result: ReorderResult) -> bool:
        """Apply a result broadcast by the service.

        Returns True if the authoritative state changed. Results for items
        with a pending move are deferred and False is returned.
        """
        if self.is_pending(result.item_id):
            self._deferred.setdefault(result.item_id, []).append(result)
            return False
        return self._upsert(result)

    def _drop(self, move: PendingMove) -> None:
        if move in self._overlay:
            self._overlay.remove(move)

    def _release_deferred(self, item_id: UUID) -> None:
        if self.is_pending(item_id):
            return
        for result in self._deferred.pop(item_id, []):
            self._upsert(result)

    def _upsert(self, result: ReorderResult) -> bool:
        changed = False
        current = self._items.get(result.item_id)
        if current is None or result.version > current.version:
            self._items[result.item_id] = ClientItem(
                item_type=result.item_type,
                item_id=result.item_id,
                parent_id=result.parent_id,
                position=result.position,
                version=result.version,
            )
            changed = True

        for sibling in result.renumbered:
            known = self._items.get(sibling.item_id)
            if known is not None and sibling.version > known.version:
                known.position = sibling.position
                known.version = sibling.version
                changed = True
        return changed
