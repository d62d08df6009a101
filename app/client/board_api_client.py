"""HTTP client for the board service."""

from typing import Any
from uuid import UUID

import httpx

from app.config import settings
from app.schemas.board import BoardDetailResponse
from app.schemas.reorder import MoveItemRequest, ReorderResult


class ClientError(Exception):
    """Request rejected by the board service."""

    def __init__(self, message: str, status_code: int | None = None):
        self.status_code = status_code
        super().__init__(message)


class ClientUnauthorizedError(ClientError):
    """The user may not act on the board."""


class ClientNotFoundError(ClientError):
    """The item, a neighbor or the board was deleted."""


class ClientInvalidTargetError(ClientError):
    """The destination cannot hold the item."""


class ClientConflictError(ClientError):
    """The request was based on stale state, or its outcome is unknown."""


class ClientUnavailableError(ClientConflictError):
    """The service could not be reached or did not answer in time."""


class ClientValidationError(ClientError):
    """The request payload was malformed."""


STATUS_ERRORS: dict[int, type[ClientError]] = {
    400: ClientInvalidTargetError,
    401: ClientUnauthorizedError,
    403: ClientUnauthorizedError,
    404: ClientNotFoundError,
    409: ClientConflictError,
    422: ClientValidationError,
}


class BoardApiClient:
    """Client for the board service REST API.

    Transport failures (timeouts, refused connections, dropped responses)
    are reported as ``ClientUnavailableError``, a conflict: the request may
    or may not have been applied, so the caller must refetch before
    trusting its state.
    """

    def __init__(
        self,
        base_url: str | None = None,
        token: str | None = None,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = base_url or f"http://localhost:{settings.app_port}/api/v1"
        self.token = token
        self.timeout = timeout
        self.transport = transport

    def _client(self) -> httpx.AsyncClient:
        headers = {}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return httpx.AsyncClient(
            base_url=self.base_url,
            headers=headers,
            timeout=self.timeout,
            transport=self.transport,
        )

    async def _request(self, method: str, url: str, **kwargs) -> httpx.Response:
        try:
            async with self._client() as client:
                response = await client.request(method, url, **kwargs)
        except httpx.TimeoutException as e:
            raise ClientUnavailableError(f"{method} {url} timed out: {e}") from e
        except httpx.TransportError as e:
            raise ClientUnavailableError(f"{method} {url} failed: {e}") from e

        self._raise_for_status(response)
        return response

    @staticmethod
    def _detail(response: httpx.Response) -> str:
        try:
            body: Any = response.json()
        except ValueError:
            return response.text or response.reason_phrase
        if isinstance(body, dict) and "detail" in body:
            return str(body["detail"])
        return str(body)

    def _raise_for_status(self, response: httpx.Response) -> None:
        if response.is_success:
            return
        error_class = STATUS_ERRORS.get(response.status_code, ClientError)
        raise error_class(self._detail(response), status_code=response.status_code)

    async def move_item(
        self, request: MoveItemRequest, connection_id: str | None = None
    ) -> ReorderResult:
        """Ask the service to move an item and return the committed result."""
        headers = {"X-Connection-Id": connection_id} if connection_id else {}
        response = await self._request(
            "POST",
            "/boards/moves",
            json=request.model_dump(mode="json"),
            headers=headers,
        )
        return ReorderResult.model_validate(response.json())

    async def fetch_board(self, board_id: UUID) -> BoardDetailResponse:
        """Fetch a fresh authoritative snapshot of a board."""
        response = await self._request("GET", f"/boards/{board_id}")
        return BoardDetailResponse.model_validate(response.json())
