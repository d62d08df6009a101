"""Bearer token verification for tokens issued by the identity provider."""

from datetime import datetime, timedelta, timezone
from typing import Any
from uuid import UUID

from jose import JWTError, jwt

from app.config import settings


class AuthService:
    """Service for access token operations."""

    def __init__(self):
        self.secret_key = settings.jwt_secret_key
        self.algorithm = settings.jwt_algorithm
        self.access_token_expire_minutes = settings.jwt_access_token_expire_minutes

    def create_access_token(self, user_id: UUID, email: str) -> str:
        """Create a JWT access token."""
        expire = datetime.now(timezone.utc) + timedelta(minutes=self.access_token_expire_minutes)
        to_encode: dict[str, Any] = {
            "sub": str(user_id),
            "email": email,
            "type": "access",
            "exp": expire,
        }
        return jwt.encode(to_encode, self.secret_key, algorithm=self.algorithm)

    def decode_token(self, token: str) -> dict[str, Any] | None:
        """Decode and validate a JWT token."""
        try:
            return jwt.decode(token, self.secret_key, algorithms=[self.algorithm])
        except JWTError:
            return None

    def verify_access_token(self, token: str) -> dict[str, Any] | None:
        """Verify an access token and return the payload."""
        payload = self.decode_token(token)
        if payload and payload.get("type") == "access":
            return payload
        return None

    def user_id_from_token(self, token: str | None) -> UUID | None:
        """Extract the user ID from a valid access token."""
        if not token:
            return None
        payload = self.verify_access_token(token)
        if payload is None or payload.get("sub") is None:
            return None
        try:
            return UUID(payload["sub"])
        except ValueError:
            return None


auth_service = AuthService()
