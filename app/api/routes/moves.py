"""Move (reorder) route."""

from typing import Annotated

from fastapi import APIRouter, Header

from app.api.deps import CurrentUser, ReorderServiceDep
from app.api.errors import http_error
from app.schemas.reorder import MoveItemRequest, ReorderResult
from app.services.reorder_errors import ReorderError

router = APIRouter(prefix="/boards", tags=["moves"])


@router.post("/moves", response_model=ReorderResult)
async def move_item(
    data: MoveItemRequest,
    current_user: CurrentUser,
    service: ReorderServiceDep,
    x_connection_id: Annotated[str | None, Header()] = None,
) -> ReorderResult:
    """Move a list or card next to the given neighbors.

    The committed result is broadcast to the board's room, except to the
    connection named by ``X-Connection-Id``.
    """
    try:
        return await service.reorder(data, current_user.id, origin_connection_id=x_connection_id)
    except ReorderError as e:
        raise http_error(e)
