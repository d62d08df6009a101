"""Serialized client store reconciling optimistic moves with the service."""

import asyncio
import logging
from typing import Any, Callable, TypeVar
from uuid import UUID

from pydantic import ValidationError

from app.client.board_api_client import BoardApiClient, ClientConflictError
from app.client.board_view import BoardView, PendingMove, items_from_board
from app.schemas.board_event import BoardEvent, BoardEventType
from app.schemas.reorder import ReorderResult

logger = logging.getLogger(__name__)

T = TypeVar("T")

FailureCallback = Callable[[PendingMove, Exception], None]


class ReconciliationStore:
    """Owns a BoardView and applies every change to it through one queue.

    Local moves, service responses and broadcast events are all turned into
    commands processed one at a time by a single worker task, so they never
    interleave. Network calls happen outside the queue.

    On a conflict (or a timeout, whose outcome is unknown) the board is
    refetched and the move retried once against the neighbors it is shown
    between; any other failure rolls the move back straight away.
    """

    def __init__(
        self,
        api: BoardApiClient,
        board_id: UUID,
        on_failure: FailureCallback | None = None,
    ):
        self.api = api
        self.board_id = board_id
        self.on_failure = on_failure
        self.view = BoardView()
        self.connection_id: str | None = None
        self._commands: asyncio.Queue[tuple[Callable[[], Any], asyncio.Future]] = asyncio.Queue()
        self._worker: asyncio.Task | None = None

    async def start(self) -> None:
        if self._worker is None:
            self._worker = asyncio.create_task(self._run())

    async def stop(self) -> None:
        if self._worker is not None:
            self._worker.cancel()
            try:
                await self._worker
            except asyncio.CancelledError:
                pass
            self._worker = None

    async def __aenter__(self) -> "ReconciliationStore":
        await self.start()
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.stop()

    async def _run(self) -> None:
        while True:
            command, future = await self._commands.get()
            try:
                result = command()
            except Exception as e:
                if not future.cancelled():
                    future.set_exception(e)
            else:
                if not future.cancelled():
                    future.set_result(result)
            finally:
                self._commands.task_done()

    async def _submit(self, command: Callable[[], T]) -> T:
        if self._worker is None:
            raise RuntimeError("Store is not started")
        future = asyncio.get_running_loop().create_future()
        await self._commands.put((command, future))
        return await future

    def ordered_ids(self, parent_id: UUID) -> list[UUID]:
        return self.view.ordered_ids(parent_id)

    async def load(self) -> None:
        """Replace the authoritative state with a fresh snapshot."""
        board = await self.api.fetch_board(self.board_id)
        items = items_from_board(board)
        await self._submit(lambda: self.view.replace_all(items))
        logger.debug(f"Loaded {len(items)} items for board {self.board_id}")

    async def begin_local_move(
        self,
        item_id: UUID,
        destination_parent_id: UUID,
        before_id: UUID | None = None,
        after_id: UUID | None = None,
    ) -> PendingMove:
        return await self._submit(
            lambda: self.view.begin_local_move(item_id, destination_parent_id, before_id, after_id)
        )

    async def abandon(self, move: PendingMove) -> bool:
        """Drop a move that was never sent. Returns False once it is in flight."""

        def command() -> bool:
            if move.sent:
                return False
            self.view.rollback(move)
            return True

        return await self._submit(command)

    async def send(self, move: PendingMove) -> ReorderResult:
        """Send a pending move and reconcile the view with the outcome.

        Any failure rolls the move back and is re-raised after the
        ``on_failure`` callback has seen it.

        Raises:
            ClientError: the service rejected the move or could not be reached.
        """

        def mark_sent() -> None:
            move.sent = True

        await self._submit(mark_sent)

        try:
            try:
                result = await self.api.move_item(move.to_request(), self.connection_id)
            except ClientConflictError as e:
                logger.info(f"Move of {move.item_id} conflicted ({e}), refetching and retrying once")
                await self.load()
                await self._submit(lambda: self.view.refresh_neighbors(move))
                result = await self.api.move_item(move.to_request(), self.connection_id)
        except Exception as e:
            await self._fail(move, e)
            raise

        await self._submit(lambda: self.view.confirm(move, result))
        return result

    async def move(
        self,
        item_id: UUID,
        destination_parent_id: UUID,
        before_id: UUID | None = None,
        after_id: UUID | None = None,
    ) -> ReorderResult:
        """Apply a move locally, then send it."""
        pending = await self.begin_local_move(item_id, destination_parent_id, before_id, after_id)
        return await self.send(pending)

    async def _fail(self, move: PendingMove, error: Exception) -> None:
        await self._submit(lambda: self.view.rollback(move))
        logger.warning(f"Move of {move.item_id} rolled back: {error}")
        if self.on_failure is not None:
            self.on_failure(move, error)

    async def apply_remote(self, result: ReorderResult) -> bool:
        return await self._submit(lambda: self.view.apply_remote(result))

    async def handle_event(self, message: dict[str, Any]) -> bool:
        """Apply a realtime event received over the board socket."""
        try:
            event = BoardEvent.model_validate(message)
        except ValidationError as e:
            logger.warning(f"Ignoring malformed board event: {e}")
            return False

        if event.type == BoardEventType.CONNECTED:
            self.connection_id = event.data.get("connection_id")
            return False

        if event.type != BoardEventType.ITEM_MOVED or event.board_id != self.board_id:
            return False

        try:
            result = ReorderResult.model_validate(event.data)
        except ValidationError as e:
            logger.warning(f"Ignoring malformed item_moved event: {e}")
            return False
        return await self.apply_remote(result)
