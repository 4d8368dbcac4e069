"""
Authentication middleware.

This module provides the identity dependency for protected routes:
- Bearer token extraction from the Authorization header
- Access token validation through the token codec
- A typed, request-scoped Identity for downstream handlers
"""
from typing import Optional

from fastapi import Request
from pydantic import BaseModel, ConfigDict

from wakeup.base_microservice import BaseMicroservice
from wakeup.auth.errors import InvalidOrExpiredToken, MalformedHeader, MissingHeader, TokenError
from wakeup.auth.jwt import TokenCodec, TokenKind

AUTHORIZATION_HEADER = "Authorization"
BEARER_PREFIX = "Bearer"


class Identity(BaseModel):
    """Authenticated caller derived from an access token."""
    model_config = ConfigDict(frozen=True)

    user_id: int
    email: str


def extract_bearer_token(auth_header: Optional[str]) -> str:
    """
    Extract the token from an ``Authorization: Bearer <token>`` header value.

    Raises:
        MissingHeader: Header absent or blank
        MalformedHeader: Not exactly ``Bearer <token>``
    """
    if auth_header is None or not auth_header.strip():
        raise MissingHeader("authorization header missing")

    parts = auth_header.split(" ")
    if len(parts) != 2 or parts[0] != BEARER_PREFIX or not parts[1]:
        raise MalformedHeader("authorization header is not 'Bearer <token>'")
    return parts[1]


class IdentityMiddleware:
    """
    Validates the bearer access token of a request.

    Used as a FastAPI dependency. On any failure the request is rejected
    before the protected handler runs. The stored refresh token is not
    consulted, so an access token stays usable until it expires even after
    logout.
    """

    def __init__(self, codec: TokenCodec):
        self.codec = codec
        self.service = BaseMicroservice("middleware")

    def authenticate(self, auth_header: Optional[str]) -> Identity:
        token = extract_bearer_token(auth_header)
        try:
            claims = self.codec.validate(token, kind=TokenKind.ACCESS)
        except TokenError as e:
            raise InvalidOrExpiredToken(f"{e.__class__.__name__}: {e.reason}") from e
        return Identity(user_id=claims.user_id, email=claims.email)

    async def __call__(self, request: Request) -> Identity:
        try:
            identity = self.authenticate(request.headers.get(AUTHORIZATION_HEADER))
        except (MissingHeader, MalformedHeader, InvalidOrExpiredToken) as e:
            self.service.log_warning("auth.rejected", {
                "path": request.url.path,
                "reason": e.reason,
            })
            raise
        request.state.identity = identity
        return identity


async def require_identity(request: Request) -> Identity:
    """Dependency resolving the app's IdentityMiddleware for the request."""
    middleware: IdentityMiddleware = request.app.state.identity_middleware
    return await middleware(request)
