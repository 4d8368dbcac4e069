"""
Error taxonomy for the auth service.

Every error carries the HTTP status it maps to and the message that is safe
to show to the caller. The reason a check failed is kept in ``reason`` for
server-side logs only.
"""
from typing import Optional

CREDENTIALS_MESSAGE = "Invalid email or password"
TOKEN_MESSAGE = "Invalid or expired token"


class AuthServiceError(Exception):
    """Base class for auth errors mapped to HTTP responses."""

    status_code: int = 400
    message: str = "Invalid request"

    def __init__(self, reason: Optional[str] = None, *, message: Optional[str] = None) -> None:
        if message is not None:
            self.message = message
        self.reason = reason or self.message
        super().__init__(self.reason)


# --- 400 ---

class ValidationError(AuthServiceError):
    """Malformed input (400)."""
    status_code = 400
    message = "Invalid request data"


class WeakCredential(ValidationError):
    """Email is malformed or the password fails the length policy."""


# --- 409 ---

class ConflictError(AuthServiceError):
    """Duplicate registration (409)."""
    status_code = 409
    message = "Conflict"


class AlreadyExists(ConflictError):
    message = "User with this email already exists"


# --- 401 ---

class AuthenticationError(AuthServiceError):
    """Bad credentials or an invalid, expired or revoked token (401)."""
    status_code = 401
    message = TOKEN_MESSAGE


class InvalidCredentials(AuthenticationError):
    message = CREDENTIALS_MESSAGE


class PasswordMismatch(AuthenticationError):
    message = CREDENTIALS_MESSAGE


class InvalidOrExpiredToken(AuthenticationError):
    pass


class TokenRevoked(AuthenticationError):
    pass


class MissingHeader(AuthenticationError):
    message = "Authorization header missing"


class MalformedHeader(AuthenticationError):
    message = "Invalid Authorization header format"


class InvalidProviderToken(AuthenticationError):
    message = "Invalid Google access token"


class TokenError(AuthenticationError):
    """Raised by the token codec when a token does not validate."""


class MalformedToken(TokenError):
    pass


class BadSignature(TokenError):
    pass


class TokenExpired(TokenError):
    pass


class TokenNotYetValid(TokenError):
    pass


class WrongTokenKind(TokenError):
    pass


# --- referenced user missing, reported as 401 ---

class NotFoundError(AuthServiceError):
    status_code = 401
    message = TOKEN_MESSAGE


class UserNotFound(NotFoundError):
    pass


# --- store / provider failures ---

class DependencyError(AuthServiceError):
    status_code = 500
    message = "Service temporarily unavailable"


class StoreUnavailable(DependencyError):
    status_code = 500


class ProviderUnreachable(DependencyError):
    status_code = 502
    message = "Identity provider unreachable"
