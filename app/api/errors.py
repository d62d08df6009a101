"""Translation of service errors into HTTP errors."""

from fastapi import HTTPException, status

from app.services.reorder_errors import (
    InvalidTargetError,
    ItemNotFoundError,
    NotBoardMemberError,
    ReorderConflictError,
    ReorderError,
)

ERROR_STATUS_CODES: dict[type[ReorderError], int] = {
    NotBoardMemberError: status.HTTP_403_FORBIDDEN,
    ItemNotFoundError: status.HTTP_404_NOT_FOUND,
    InvalidTargetError: status.HTTP_400_BAD_REQUEST,
    ReorderConflictError: status.HTTP_409_CONFLICT,
}


def http_error(error: ReorderError) -> HTTPException:
    """Build the HTTPException matching a service error."""
    status_code = ERROR_STATUS_CODES.get(type(error), status.HTTP_400_BAD_REQUEST)
    return HTTPException(status_code=status_code, detail=str(error))
