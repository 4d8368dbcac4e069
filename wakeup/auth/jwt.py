"""
JWT token handling for authentication.

This module provides functionality for:
- Creating access and refresh tokens
- Validating tokens and mapping each failure to a distinct error
"""
import time
import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Dict, Optional

import jwt
from jwt.exceptions import (
    ExpiredSignatureError,
    ImmatureSignatureError,
    InvalidAlgorithmError,
    InvalidSignatureError,
    PyJWTError,
)
from pydantic import BaseModel, ConfigDict, Field

from wakeup.auth.errors import (
    BadSignature,
    MalformedToken,
    TokenExpired,
    TokenNotYetValid,
    WrongTokenKind,
)
from wakeup.config import Settings

REQUIRED_CLAIMS = ["sub", "exp", "iat", "nbf"]


class TokenKind(str, Enum):
    ACCESS = "access"
    REFRESH = "refresh"


class TokenPair(BaseModel):
    """Access and refresh token issued together."""
    model_config = ConfigDict(populate_by_name=True)

    access_token: str = Field(..., alias="accessToken")
    refresh_token: str = Field(..., alias="refreshToken")


class TokenClaims(BaseModel):
    """Validated token payload."""
    model_config = ConfigDict(frozen=True)

    user_id: int
    email: str
    kind: TokenKind
    issued_at: datetime
    not_before: datetime
    expires_at: datetime


class TokenCodec:
    """
    Signs and verifies session tokens with the configured symmetric secret.

    Only the configured HMAC algorithm is accepted on decode; a token whose
    header names any other algorithm (including ``none``) is rejected.
    """

    def __init__(self, settings: Settings, clock: Callable[[], float] = time.time):
        self._secret = settings.jwt_secret
        self.algorithm = settings.jwt_algorithm
        self.leeway = settings.token_leeway_seconds
        self.lifetimes = {
            TokenKind.ACCESS: settings.access_token_expire_minutes * 60,
            TokenKind.REFRESH: settings.refresh_token_expire_days * 24 * 60 * 60,
        }
        self._clock = clock

    def issue(self, kind: TokenKind, user_id: int, email: str) -> str:
        """
        Create a signed token.

        Args:
            kind: Access or refresh
            user_id: Subject user id
            email: Subject email

        Returns:
            Encoded JWT string
        """
        now = int(self._clock())
        payload: Dict[str, Any] = {
            "sub": str(user_id),
            "email": email,
            "type": kind.value,
            # two tokens minted in the same second must still differ
            "jti": uuid.uuid4().hex,
            "iat": now,
            "nbf": now,
            "exp": now + self.lifetimes[kind],
        }
        return jwt.encode(payload, self._secret, algorithm=self.algorithm)

    def issue_pair(self, user_id: int, email: str) -> TokenPair:
        return TokenPair(
            access_token=self.issue(TokenKind.ACCESS, user_id, email),
            refresh_token=self.issue(TokenKind.REFRESH, user_id, email),
        )

    def validate(self, token: str, kind: Optional[TokenKind] = None) -> TokenClaims:
        """
        Verify a token and return its claims.

        Args:
            token: Encoded JWT string
            kind: If given, the token's ``type`` claim must match

        Returns:
            TokenClaims for a valid token

        Raises:
            MalformedToken: Token cannot be parsed or lacks required claims
            BadSignature: Signature or algorithm mismatch
            TokenExpired: Past the ``exp`` instant
            TokenNotYetValid: Before the ``nbf`` instant
            WrongTokenKind: ``type`` claim differs from ``kind``
        """
        try:
            payload = jwt.decode(
                token,
                self._secret,
                algorithms=[self.algorithm],
                leeway=self.leeway,
                options={"require": REQUIRED_CLAIMS},
            )
        except ExpiredSignatureError as e:
            raise TokenExpired(str(e)) from e
        except ImmatureSignatureError as e:
            raise TokenNotYetValid(str(e)) from e
        # InvalidSignatureError subclasses DecodeError, so it is caught first
        except (InvalidSignatureError, InvalidAlgorithmError) as e:
            raise BadSignature(str(e)) from e
        except PyJWTError as e:
            raise MalformedToken(str(e)) from e

        try:
            user_id = int(payload["sub"])
            token_kind = TokenKind(payload.get("type", TokenKind.ACCESS.value))
            email = payload["email"]
        except (KeyError, TypeError, ValueError) as e:
            raise MalformedToken(f"unusable claims: {e}") from e
        if not isinstance(email, str):
            raise MalformedToken("email claim is not a string")

        if kind is not None and token_kind is not kind:
            raise WrongTokenKind(f"expected {kind.value} token, got {token_kind.value}")

        return TokenClaims(
            user_id=user_id,
            email=email,
            kind=token_kind,
            issued_at=_from_timestamp(payload["iat"]),
            not_before=_from_timestamp(payload["nbf"]),
            expires_at=_from_timestamp(payload["exp"]),
        )


def _from_timestamp(value: Any) -> datetime:
    try:
        return datetime.fromtimestamp(int(value), tz=timezone.utc)
    except (TypeError, ValueError, OverflowError, OSError) as e:
        raise MalformedToken(f"bad timestamp claim: {e}") from e
