"""
Google sign-in.

Exchanges a Google OAuth access token for a locally signed access token.
Google's tokeninfo endpoint is trusted to attest that the caller owns the
email address; no local password check happens on this path.
"""
from typing import Any, Dict, Optional

import httpx
from pydantic import BaseModel

from wakeup.base_microservice import BaseMicroservice
from wakeup.auth.errors import AlreadyExists, InvalidProviderToken, ProviderUnreachable, StoreUnavailable
from wakeup.auth.jwt import TokenCodec, TokenKind
from wakeup.auth.models import User
from wakeup.auth.sessions import UserOut, normalize_email
from wakeup.auth.store import UserStore


class FederatedLoginResult(BaseModel):
    token: str
    user: UserOut
    created: bool = False


class GoogleLoginAdapter:
    """
    Looks up or provisions a user from a Google access token.
    """

    def __init__(
        self,
        store: UserStore,
        codec: TokenCodec,
        client: httpx.AsyncClient,
        tokeninfo_url: str,
    ):
        self.store = store
        self.codec = codec
        self.client = client
        self.tokeninfo_url = tokeninfo_url
        self.service = BaseMicroservice("google")

    async def fetch_email(self, provider_token: str) -> str:
        """
        Ask Google which email the access token belongs to.

        Raises:
            ProviderUnreachable: Transport error or timeout
            InvalidProviderToken: Non-200 response or no usable email
        """
        try:
            # form body keeps the token out of the URL and so out of request logs
            response = await self.client.post(
                self.tokeninfo_url, data={"access_token": provider_token}
            )
        except httpx.HTTPError as e:
            raise ProviderUnreachable(f"tokeninfo request failed: {e.__class__.__name__}") from e

        if response.status_code != 200:
            raise InvalidProviderToken(f"tokeninfo returned {response.status_code}")

        try:
            info: Dict[str, Any] = response.json()
        except ValueError as e:
            raise InvalidProviderToken("tokeninfo body is not JSON") from e
        if not isinstance(info, dict):
            raise InvalidProviderToken("tokeninfo body is not an object")

        email = info.get("email")
        if not isinstance(email, str) or not email.strip():
            raise InvalidProviderToken("tokeninfo has no email")
        if info.get("verified_email") is False:
            raise InvalidProviderToken("email not verified by provider")
        return normalize_email(email)

    async def login(self, provider_token: str) -> FederatedLoginResult:
        """
        Sign in with a Google access token.

        Returns:
            A local access token and the user it was issued for. No refresh
            token is issued on this path.
        """
        email = await self.fetch_email(provider_token)

        created = False
        user = await self.store.find_by_email(email)
        if user is None:
            user = await self._provision(email)
            if user is not None:
                created = True
            else:
                # lost a concurrent provisioning race; the row exists now
                user = await self.store.find_by_email(email)
        if user is None:
            raise StoreUnavailable(f"could not provision or find {email}")

        token = self.codec.issue(TokenKind.ACCESS, user.id, user.email)
        return FederatedLoginResult(token=token, user=UserOut.model_validate(user), created=created)

    async def _provision(self, email: str) -> Optional[User]:
        try:
            user = await self.store.create(email, password_hash=None)
            await self.store.save(user)
        except AlreadyExists:
            return None
        self.service.log_event("user.provisioned", {"user_id": user.id, "provider": "google"})
        return user
