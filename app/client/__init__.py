from app.client.board_api_client import (
    BoardApiClient,
    ClientConflictError,
    ClientError,
    ClientInvalidTargetError,
    ClientNotFoundError,
    ClientUnauthorizedError,
    ClientUnavailableError,
    ClientValidationError,
)
from app.client.board_view import BoardView, ClientItem, PendingMove, items_from_board
from app.client.reconciliation_store import ReconciliationStore

__all__ = [
    "BoardApiClient",
    "ClientError",
    "ClientConflictError",
    "ClientInvalidTargetError",
    "ClientNotFoundError",
    "ClientUnauthorizedError",
    "ClientUnavailableError",
    "ClientValidationError",
    "BoardView",
    "ClientItem",
    "PendingMove",
    "items_from_board",
    "ReconciliationStore",
]
