"""Shared fixtures: a temporary SQLite database seeded with users and a board."""

from collections.abc import AsyncIterator
from pathlib import Path
from uuid import UUID

import httpx
import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from app.api.deps import get_broadcaster, get_session_maker
from app.db import get_db
from app.main import app
from app.models import Base, Board, BoardList, BoardMember, Card, User
from app.services.auth import auth_service
from app.services.board_broadcaster import BoardBroadcaster


def make_engine(db_path: Path) -> AsyncEngine:
    """File-backed SQLite engine; every session gets its own connection."""
    return create_async_engine(f"sqlite+aiosqlite:///{db_path}", poolclass=NullPool)


@pytest_asyncio.fixture
async def engine(tmp_path: Path) -> AsyncIterator[AsyncEngine]:
    engine = make_engine(tmp_path / "boards.db")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_maker(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
def make_user(session_maker):
    async def _make_user(email: str, is_active: bool = True) -> UUID:
        async with session_maker() as session:
            user = User(email=email, display_name=email.split("@")[0], is_active=is_active)
            session.add(user)
            await session.commit()
            return user.id

    return _make_user


@pytest.fixture
def make_board(session_maker):
    async def _make_board(owner_id: UUID, *member_ids: UUID, name: str = "Roadmap") -> UUID:
        async with session_maker() as session:
            board = Board(owner_id=owner_id, name=name)
            session.add(board)
            await session.flush()
            for user_id in {owner_id, *member_ids}:
                session.add(BoardMember(board_id=board.id, user_id=user_id))
            await session.commit()
            return board.id

    return _make_board


@pytest.fixture
def make_list(session_maker):
    async def _make_list(board_id: UUID, title: str, position: float) -> UUID:
        async with session_maker() as session:
            board_list = BoardList(board_id=board_id, title=title, position=position, version=1)
            session.add(board_list)
            await session.commit()
            return board_list.id

    return _make_list


@pytest.fixture
def make_cards(session_maker):
    async def _make_cards(list_id: UUID, **positions: float) -> dict[str, UUID]:
        """Create cards titled by keyword, e.g. ``make_cards(list_id, A=1.0, B=2.0)``."""
        async with session_maker() as session:
            cards = {
                title: Card(list_id=list_id, title=title, position=position, version=1)
                for title, position in positions.items()
            }
            session.add_all(cards.values())
            await session.commit()
            return {title: card.id for title, card in cards.items()}

    return _make_cards


@pytest_asyncio.fixture
async def alice(make_user) -> UUID:
    return await make_user("alice@example.com")


@pytest_asyncio.fixture
async def bob(make_user) -> UUID:
    return await make_user("bob@example.com")


@pytest_asyncio.fixture
async def outsider(make_user) -> UUID:
    return await make_user("mallory@example.com")


@pytest_asyncio.fixture
async def board_id(make_board, alice, bob) -> UUID:
    return await make_board(alice, bob)


@pytest.fixture
def token_for():
    def _token_for(user_id: UUID) -> str:
        return auth_service.create_access_token(user_id, f"{user_id}@example.com")

    return _token_for


@pytest.fixture
def broadcaster() -> BoardBroadcaster:
    return BoardBroadcaster()


@pytest.fixture
def override_dependencies(session_maker, broadcaster):
    """Point the app at the test database and a private broadcaster."""

    async def override_get_db() -> AsyncIterator[AsyncSession]:
        async with session_maker() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_session_maker] = lambda: session_maker
    app.dependency_overrides[get_broadcaster] = lambda: broadcaster
    yield app
    app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def api_client(override_dependencies) -> AsyncIterator[httpx.AsyncClient]:
    transport = httpx.ASGITransport(app=override_dependencies)
    async with httpx.AsyncClient(transport=transport, base_url="http://test/api/v1") as client:
        yield client


@pytest.fixture
def auth_headers(token_for):
    def _auth_headers(user_id: UUID) -> dict[str, str]:
        return {"Authorization": f"Bearer {token_for(user_id)}"}

    return _auth_headers
