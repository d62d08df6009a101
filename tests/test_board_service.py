import pytest
from sqlalchemy import select

from app.models import BoardList, Card
from app.schemas.board import BoardCreate, CardCreate
from app.services.board_service import BoardService
from app.services.ordered_item_repository import OrderedItemRepository
from app.services.reorder_errors import ItemNotFoundError


async def test_create_board_adds_owner_membership(session_maker, alice):
    async with session_maker() as session:
        service = BoardService(session)
        board = await service.create_board(BoardCreate(name="Launch"), alice)
        await session.commit()

        assert await service.repo.is_board_member(alice, board.id)


async def test_card_after_huge_key_renumbers_the_list(
    session_maker, board_id, alice, make_list, make_cards
):
    list_id = await make_list(board_id, "Todo", 1000.0)
    cards = await make_cards(list_id, A=1.0, B=1e20)

    async with session_maker() as session:
        card = await BoardService(session).create_card(list_id, CardCreate(title="C"), alice)
        await session.commit()

    async with session_maker() as session:
        rows = (
            await session.execute(
                select(Card.id, Card.position).where(Card.list_id == list_id).order_by(Card.position)
            )
        ).all()

    assert [row.id for row in rows] == [cards["A"], cards["B"], card.id]
    assert [row.position for row in rows] == [1000.0, 2000.0, 3000.0]


async def test_card_for_list_deleted_before_lock_is_not_found(
    session_maker, monkeypatch, board_id, alice, make_list
):
    list_id = await make_list(board_id, "Todo", 1000.0)
    async with session_maker() as session:
        await session.delete(await session.get(BoardList, list_id))
        await session.commit()

    async def stale_parent_lookup(self, item_type, parent_id):
        return board_id

    monkeypatch.setattr(OrderedItemRepository, "get_parent_board_id", stale_parent_lookup)

    async with session_maker() as session:
        with pytest.raises(ItemNotFoundError):
            await BoardService(session).create_card(list_id, CardCreate(title="C"), alice)

        rows = (await session.execute(select(Card.id).where(Card.list_id == list_id))).all()
    assert rows == []
