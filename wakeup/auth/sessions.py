"""
Session management service.

This module provides:
- Request/response models for the password auth endpoints
- SessionManager: signup, login, refresh-token rotation and logout

Each user has at most one valid refresh token, stored on the user row.
Login and refresh overwrite it, logout clears it, and refresh only accepts
the token that is currently stored.
"""
import hmac
import re
from typing import Optional

from fastapi.concurrency import run_in_threadpool
from pydantic import BaseModel, ConfigDict, Field

from wakeup.base_microservice import BaseMicroservice
from wakeup.auth.errors import (
    AlreadyExists,
    InvalidCredentials,
    InvalidOrExpiredToken,
    PasswordMismatch,
    TokenError,
    TokenRevoked,
    UserNotFound,
    ValidationError,
    WeakCredential,
)
from wakeup.auth.jwt import TokenCodec, TokenKind, TokenPair
from wakeup.auth.models import User
from wakeup.auth.passwords import BCRYPT_MAX_BYTES, PasswordHasher
from wakeup.auth.store import UserStore

EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
MIN_PASSWORD_LENGTH = 8


# Pydantic models for request validation
class SignupRequest(BaseModel):
    """Model for user registration."""
    email: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)


class LoginRequest(BaseModel):
    """Model for user login."""
    email: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)


class RefreshRequest(BaseModel):
    """Model for token refresh."""
    model_config = ConfigDict(populate_by_name=True)

    refresh_token: str = Field(..., min_length=1, alias="refreshToken")


class UserOut(BaseModel):
    """Public view of a user."""
    model_config = ConfigDict(from_attributes=True)

    id: int
    email: str


class AuthResult(BaseModel):
    """Tokens returned by signup, login and refresh."""
    tokens: TokenPair
    user: Optional[UserOut] = None

    def payload(self) -> dict:
        body = self.tokens.model_dump(by_alias=True)
        if self.user is not None:
            body["user"] = self.user.model_dump()
        return body


def normalize_email(email: str) -> str:
    """Trim and lowercase an email address before any lookup or write."""
    return email.strip().lower()


def check_signup_policy(email: str, password: str) -> None:
    """
    Raises:
        WeakCredential: If the email is malformed or the password is too short
            or too long for bcrypt
    """
    if not EMAIL_PATTERN.match(email):
        raise WeakCredential("malformed email", message="Invalid email address")
    if len(password) < MIN_PASSWORD_LENGTH:
        raise WeakCredential(
            "password too short",
            message=f"Password must be at least {MIN_PASSWORD_LENGTH} characters",
        )
    if len(password.encode("utf-8")) > BCRYPT_MAX_BYTES:
        raise WeakCredential(
            "password too long",
            message=f"Password must be at most {BCRYPT_MAX_BYTES} bytes",
        )


class SessionManager:
    """
    Orchestrates the credential store, password hasher and token codec.
    """

    def __init__(self, store: UserStore, hasher: PasswordHasher, codec: TokenCodec):
        self.store = store
        self.hasher = hasher
        self.codec = codec
        self.service = BaseMicroservice("sessions")

    async def signup(self, email: str, password: str) -> AuthResult:
        """
        Register a new user and open their first session.

        The user row and its initial refresh token are written in a single
        commit.

        Raises:
            WeakCredential: Email malformed or password fails the policy
            AlreadyExists: Email already registered
            StoreUnavailable: Persistence failure
        """
        email = normalize_email(email)
        check_signup_policy(email, password)

        if await self.store.find_by_email(email) is not None:
            raise AlreadyExists(f"signup for existing email {email}")

        password_hash = await run_in_threadpool(self.hasher.hash, password)
        user = await self.store.create(email, password_hash)
        tokens = self._rotate(user)
        await self.store.save(user)

        return AuthResult(tokens=tokens, user=UserOut.model_validate(user))

    async def login(self, email: str, password: str) -> AuthResult:
        """
        Authenticate with email and password.

        Unknown email and wrong password raise the same error. Any refresh
        token issued earlier for the user stops working.

        Raises:
            ValidationError: Email is malformed
            InvalidCredentials: Authentication failed
            StoreUnavailable: Persistence failure
        """
        email = normalize_email(email)
        if not EMAIL_PATTERN.match(email):
            raise ValidationError("malformed email", message="Invalid email address")

        user = await self.store.find_by_email(email)
        if user is None:
            self.service.log_warning("login.rejected", {"reason": "unknown email"})
            raise InvalidCredentials("unknown email")

        try:
            await run_in_threadpool(self.hasher.verify, user.password_hash, password)
        except PasswordMismatch as e:
            self.service.log_warning("login.rejected", {"user_id": user.id, "reason": e.reason})
            raise InvalidCredentials(e.reason) from e

        tokens = self._rotate(user)
        await self.store.save(user)

        return AuthResult(tokens=tokens, user=UserOut.model_validate(user))

    async def refresh(self, refresh_token: str) -> AuthResult:
        """
        Exchange the current refresh token for a new token pair.

        The presented token must be the one stored for the user; on success
        it is replaced, so a client must always keep the newest refresh token.

        Raises:
            InvalidOrExpiredToken: Token fails validation
            UserNotFound: Token subject no longer exists
            TokenRevoked: Token is not the user's current refresh token
            StoreUnavailable: Persistence failure
        """
        try:
            claims = self.codec.validate(refresh_token, kind=TokenKind.REFRESH)
        except TokenError as e:
            self.service.log_warning(
                "refresh.rejected", {"reason": f"{e.__class__.__name__}: {e.reason}"}
            )
            raise InvalidOrExpiredToken(e.reason) from e

        user = await self.store.find_by_id(claims.user_id)
        if user is None:
            self.service.log_warning("refresh.rejected", {"user_id": claims.user_id, "reason": "user not found"})
            raise UserNotFound(f"user {claims.user_id} not found")

        if not _same_token(user.refresh_token, refresh_token):
            self.service.log_warning("refresh.rejected", {"user_id": user.id, "reason": "token revoked"})
            raise TokenRevoked(f"stale refresh token for user {user.id}")

        tokens = self._rotate(user)
        await self.store.save(user)

        return AuthResult(tokens=tokens)

    async def logout(self, user_id: int) -> None:
        """
        Clear the stored refresh token. Safe to call repeatedly.

        Raises:
            StoreUnavailable: Persistence failure
        """
        await self.store.set_refresh_token(user_id, "")

    def _rotate(self, user: User) -> TokenPair:
        tokens = self.codec.issue_pair(user.id, user.email)
        user.refresh_token = tokens.refresh_token
        return tokens


def _same_token(stored: Optional[str], presented: str) -> bool:
    if not stored:
        return False
    return hmac.compare_digest(stored.encode("utf-8"), presented.encode("utf-8"))
