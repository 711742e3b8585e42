"""Authentication service for validating session tokens.

Tokens are issued by the sign-in service; this backend only verifies them.
"""

from typing import Any

from jose import JWTError, jwt
from pydantic import BaseModel

from backend.config import BackendSettings
from takeout_wrapped.core.exceptions import AuthenticationError, AuthorizationError


class AuthenticatedUser(BaseModel):
    """The caller identified by a valid session token."""

    id: str
    email: str | None = None


class AuthService:
    """Service for token validation and caller checks."""

    def __init__(self, settings: BackendSettings):
        self.settings = settings

    def validate_jwt(self, token: str) -> dict[str, Any]:
        """Validate a JWT token and return its claims.

        Args:
            token: JWT token to validate

        Returns:
            Token claims (sub, email, iat, exp)

        Raises:
            AuthenticationError: If token is invalid or expired
        """
        if not self.settings.jwt_secret:
            raise AuthenticationError("JWT_SECRET is not configured")

        try:
            payload = jwt.decode(
                token,
                self.settings.jwt_secret,
                algorithms=[self.settings.jwt_algorithm],
            )
            return dict(payload)
        except JWTError as e:
            raise AuthenticationError(f"Invalid token: {e}")

    def get_user_from_token(self, token: str) -> AuthenticatedUser:
        """Validate a token and return the user it identifies.

        Raises:
            AuthenticationError: If the token is invalid or has no subject
        """
        claims = self.validate_jwt(token)
        user_id = claims.get("sub")
        if not user_id:
            raise AuthenticationError("Token has no subject")
        return AuthenticatedUser(id=str(user_id), email=claims.get("email"))

    def is_allowed_origin(self, origin: str | None) -> bool:
        """Check a request Origin header against the allowed origins.

        Requests without an Origin header (server-to-server) are allowed.
        """
        if origin is None:
            return True
        allowed = {self.settings.frontend_url.rstrip("/"), *(o.rstrip("/") for o in self.settings.allowed_origins)}
        return origin.rstrip("/") in allowed

    def require_allowed_origin(self, origin: str | None) -> None:
        """Raise if a browser request comes from an origin we do not serve.

        Raises:
            AuthorizationError: If the origin is not allowed
        """
        if not self.is_allowed_origin(origin):
            raise AuthorizationError(f"Origin not allowed: {origin}")


def get_auth_service(settings: BackendSettings) -> AuthService:
    """Get an auth service instance."""
    return AuthService(settings)
