"""API dependencies including authentication."""

from typing import Annotated

from fastapi import Depends, HTTPException, Request, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.db import async_session_maker, get_db
from app.models import User
from app.services.auth import auth_service
from app.services.board_broadcaster import BoardBroadcaster, board_broadcaster
from app.services.reorder_service import ReorderService


def get_request_token(request: Request) -> str | None:
    """Read the bearer token from the cookie or the Authorization header."""
    token = request.cookies.get("access_token")
    if token:
        return token

    authorization = request.headers.get("Authorization", "")
    scheme, _, credentials = authorization.partition(" ")
    if scheme.lower() == "bearer" and credentials:
        return credentials
    return None


async def get_current_user(
    request: Request,
    db: Annotated[AsyncSession, Depends(get_db)],
) -> User:
    """Dependency to get the current authenticated user."""
    token = get_request_token(request)

    if not token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
        )

    user_uuid = auth_service.user_id_from_token(token)
    if user_uuid is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
        )

    result = await db.execute(select(User).where(User.id == user_uuid))
    user = result.scalar_one_or_none()

    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found",
        )

    if not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="User account is inactive",
        )

    return user


def get_session_maker() -> async_sessionmaker[AsyncSession]:
    """Dependency returning the session factory for self-managed transactions."""
    return async_session_maker


def get_broadcaster() -> BoardBroadcaster:
    """Dependency returning the process-wide board broadcaster."""
    return board_broadcaster


def get_reorder_service(
    session_maker: Annotated[async_sessionmaker[AsyncSession], Depends(get_session_maker)],
    broadcaster: Annotated[BoardBroadcaster, Depends(get_broadcaster)],
) -> ReorderService:
    """Dependency building a reorder service with its own transactions."""
    return ReorderService(session_maker, broadcaster)


CurrentUser = Annotated[User, Depends(get_current_user)]
DBSession = Annotated[AsyncSession, Depends(get_db)]
SessionMaker = Annotated[async_sessionmaker[AsyncSession], Depends(get_session_maker)]
Broadcaster = Annotated[BoardBroadcaster, Depends(get_broadcaster)]
ReorderServiceDep = Annotated[ReorderService, Depends(get_reorder_service)]
