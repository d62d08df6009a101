from uuid import uuid4

import httpx
import pytest
import pytest_asyncio

from app.client.board_api_client import (
    ClientConflictError,
    ClientNotFoundError,
    ClientUnavailableError,
)
from app.client.reconciliation_store import ReconciliationStore
from app.models import ItemType
from app.schemas.board import BoardDetailResponse
from app.schemas.reorder import ReorderResult


class FakeBoardApi:
    """Stands in for BoardApiClient with scripted move outcomes."""

    def __init__(self, board_id, list_id, cards: dict[str, tuple]):
        self.board_id = board_id
        self.list_id = list_id
        self.cards = cards
        self.outcomes: list = []
        self.requests: list = []
        self.connection_ids: list = []
        self.fetches = 0
        self.fetch_errors: list = []

    async def fetch_board(self, board_id):
        self.fetches += 1
        if self.fetch_errors:
            raise self.fetch_errors.pop(0)
        return BoardDetailResponse.model_validate(
            {
                "id": self.board_id,
                "owner_id": uuid4(),
                "name": "Roadmap",
                "created_at": "2026-10-18T12:00:00Z",
                "lists": [
                    {
                        "id": self.list_id,
                        "board_id": self.board_id,
                        "title": "Todo",
                        "position": 1000.0,
                        "version": 1,
                        "cards": [
                            {
                                "id": card_id,
                                "list_id": self.list_id,
                                "title": title,
                                "description": None,
                                "position": position,
                                "version": version,
                            }
                            for title, (card_id, position, version) in self.cards.items()
                        ],
                    }
                ],
            }
        )

    async def move_item(self, request, connection_id=None):
        self.requests.append(request)
        self.connection_ids.append(connection_id)
        outcome = self.outcomes.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


@pytest.fixture
def board_id():
    return uuid4()


@pytest.fixture
def list_id():
    return uuid4()


@pytest.fixture
def ids():
    return {title: uuid4() for title in "ABC"}


@pytest.fixture
def api(board_id, list_id, ids):
    return FakeBoardApi(
        board_id,
        list_id,
        {
            "A": (ids["A"], 1.0, 1),
            "B": (ids["B"], 2.0, 1),
            "C": (ids["C"], 3.0, 1),
        },
    )


@pytest.fixture
def failures():
    return []


@pytest_asyncio.fixture
async def store(api, board_id, failures):
    store = ReconciliationStore(api, board_id, on_failure=lambda move, error: failures.append(error))
    async with store:
        await store.load()
        yield store


def titles(store, list_id, ids) -> list[str]:
    names = {item_id: title for title, item_id in ids.items()}
    return [names[item_id] for item_id in store.ordered_ids(list_id)]


def moved(board_id, item_id, parent_id, position, version) -> ReorderResult:
    return ReorderResult(
        item_type=ItemType.CARD,
        item_id=item_id,
        board_id=board_id,
        parent_id=parent_id,
        position=position,
        version=version,
    )


async def test_successful_move_is_confirmed(store, api, board_id, list_id, ids, failures):
    api.outcomes.append(moved(board_id, ids["C"], list_id, 1.5, 2))

    result = await store.move(ids["C"], list_id, before_id=ids["A"], after_id=ids["B"])

    assert result.position == 1.5
    assert titles(store, list_id, ids) == ["A", "C", "B"]
    assert store.view.pending == []
    assert failures == []


async def test_local_move_visible_before_send(store, list_id, ids):
    pending = await store.begin_local_move(ids["C"], list_id, before_id=ids["A"], after_id=ids["B"])

    assert titles(store, list_id, ids) == ["A", "C", "B"]
    assert pending.sent is False


async def test_rejected_move_rolls_back(store, api, list_id, ids, failures):
    api.outcomes.append(ClientNotFoundError("Next neighbor not found", status_code=404))

    with pytest.raises(ClientNotFoundError):
        await store.move(ids["C"], list_id, before_id=ids["A"], after_id=ids["B"])

    assert titles(store, list_id, ids) == ["A", "B", "C"]
    assert len(failures) == 1
    assert api.fetches == 1


async def test_conflict_refetches_and_retries_once(store, api, board_id, list_id, ids, failures):
    api.outcomes.append(ClientConflictError("stale", status_code=409))
    api.outcomes.append(moved(board_id, ids["C"], list_id, 1.5, 2))

    result = await store.move(ids["C"], list_id, before_id=ids["A"], after_id=ids["B"])

    assert result.version == 2
    assert api.fetches == 2
    assert len(api.requests) == 2
    assert (api.requests[1].before_id, api.requests[1].after_id) == (ids["A"], ids["B"])
    assert titles(store, list_id, ids) == ["A", "C", "B"]
    assert failures == []


async def test_retry_uses_fresh_neighbors(store, api, board_id, list_id, ids):
    # B was moved to the head by someone else before our request landed
    api.cards["B"] = (ids["B"], 0.5, 2)
    api.outcomes.append(ClientConflictError("stale", status_code=409))
    api.outcomes.append(moved(board_id, ids["C"], list_id, 0.75, 2))

    await store.move(ids["C"], list_id, before_id=ids["A"], after_id=ids["B"])

    retried = api.requests[1]
    assert (retried.before_id, retried.after_id) == (ids["A"], None)


async def test_second_conflict_rolls_back(store, api, list_id, ids, failures):
    api.outcomes.append(ClientConflictError("stale", status_code=409))
    api.outcomes.append(ClientConflictError("still stale", status_code=409))

    with pytest.raises(ClientConflictError):
        await store.move(ids["C"], list_id, before_id=ids["A"], after_id=ids["B"])

    assert titles(store, list_id, ids) == ["A", "B", "C"]
    assert len(failures) == 1


async def test_abandon_only_before_send(store, api, board_id, list_id, ids):
    pending = await store.begin_local_move(ids["C"], list_id, before_id=ids["A"], after_id=ids["B"])
    assert await store.abandon(pending) is True
    assert titles(store, list_id, ids) == ["A", "B", "C"]

    api.outcomes.append(moved(board_id, ids["A"], list_id, 4.0, 2))
    sent = await store.begin_local_move(ids["A"], list_id)
    await store.send(sent)
    assert await store.abandon(sent) is False


async def test_item_moved_event_is_applied_once(store, board_id, list_id, ids):
    event = {
        "type": "item_moved",
        "board_id": str(board_id),
        "data": moved(board_id, ids["A"], list_id, 2.5, 2).model_dump(mode="json"),
    }

    assert await store.handle_event(event) is True
    assert await store.handle_event(event) is False
    assert titles(store, list_id, ids) == ["B", "A", "C"]


async def test_events_for_other_boards_are_ignored(store, list_id, ids):
    other_board = uuid4()
    event = {
        "type": "item_moved",
        "board_id": str(other_board),
        "data": moved(other_board, ids["A"], list_id, 2.5, 2).model_dump(mode="json"),
    }

    assert await store.handle_event(event) is False
    assert titles(store, list_id, ids) == ["A", "B", "C"]


async def test_connected_event_sets_origin_connection(store, api, board_id, list_id, ids):
    await store.handle_event({"type": "connected", "data": {"connection_id": "conn-9"}})
    api.outcomes.append(moved(board_id, ids["A"], list_id, 4.0, 2))

    await store.move(ids["A"], list_id)

    assert api.connection_ids == ["conn-9"]


async def test_malformed_event_is_ignored(store):
    assert await store.handle_event({"type": "bogus"}) is False


async def test_unreachable_service_rolls_back(store, api, list_id, ids, failures):
    api.outcomes.append(httpx.ConnectError("connection refused"))

    with pytest.raises(httpx.ConnectError):
        await store.move(ids["C"], list_id, before_id=ids["A"], after_id=ids["B"])

    assert titles(store, list_id, ids) == ["A", "B", "C"]
    assert store.view.pending == []
    assert len(failures) == 1


async def test_failed_refetch_after_conflict_rolls_back(store, api, list_id, ids, failures):
    api.outcomes.append(ClientConflictError("stale", status_code=409))
    api.fetch_errors.append(ClientUnavailableError("GET timed out"))

    with pytest.raises(ClientUnavailableError):
        await store.move(ids["C"], list_id, before_id=ids["A"], after_id=ids["B"])

    assert titles(store, list_id, ids) == ["A", "B", "C"]
    assert store.view.pending == []
    assert isinstance(failures[0], ClientUnavailableError)
    assert len(api.requests) == 1


async def test_remote_results_flow_again_after_failed_move(store, api, board_id, list_id, ids):
    api.outcomes.append(httpx.RemoteProtocolError("server disconnected"))
    pending = await store.begin_local_move(ids["C"], list_id, before_id=ids["A"], after_id=ids["B"])
    with pytest.raises(httpx.RemoteProtocolError):
        await store.send(pending)

    applied = await store.apply_remote(moved(board_id, ids["C"], list_id, 0.5, 2))

    assert applied is True
    assert titles(store, list_id, ids) == ["C", "A", "B"]


async def test_reload_keeps_newer_broadcast(store, board_id, list_id, ids):
    await store.apply_remote(moved(board_id, ids["C"], list_id, 0.5, 2))

    # The snapshot was built before the move above committed
    await store.load()

    assert store.view.get(ids["C"]).version == 2
    assert titles(store, list_id, ids) == ["C", "A", "B"]
