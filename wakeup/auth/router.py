"""
Authentication router.

This module provides FastAPI router for authentication endpoints:
- Signup and password login
- Refresh token rotation
- Logout
- Google sign-in
"""
from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from wakeup.base_microservice import BaseMicroservice
from wakeup.auth.errors import AuthServiceError
from wakeup.auth.google import GoogleLoginAdapter
from wakeup.auth.middleware import AUTHORIZATION_HEADER, Identity, extract_bearer_token, require_identity
from wakeup.auth.sessions import LoginRequest, RefreshRequest, SessionManager, SignupRequest
from wakeup.auth.store import UserStore

# Create router
router = APIRouter(tags=["auth"])

# Create service instance
base_service = BaseMicroservice()


async def get_db_session(request: Request):
    """Dependency for getting a database session."""
    async with request.app.state.sessionmaker() as session:
        yield session


def get_session_manager(
    request: Request,
    db: AsyncSession = Depends(get_db_session),
) -> SessionManager:
    state = request.app.state
    return SessionManager(UserStore(db), state.password_hasher, state.token_codec)


def get_google_adapter(
    request: Request,
    db: AsyncSession = Depends(get_db_session),
) -> GoogleLoginAdapter:
    state = request.app.state
    return GoogleLoginAdapter(
        UserStore(db),
        state.token_codec,
        state.google_client,
        state.settings.google_tokeninfo_url,
    )


def _internal_error(e: Exception, context: str, detail: str) -> HTTPException:
    base_service.log_error(e, context=context)
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=detail)


@router.post("/signup", status_code=status.HTTP_201_CREATED)
async def signup(
    body: SignupRequest,
    sessions: SessionManager = Depends(get_session_manager),
):
    """
    Register a new user.

    Returns:
        Envelope with access token, refresh token and user information
    """
    try:
        result = await sessions.signup(body.email, body.password)
    except AuthServiceError as e:
        base_service.log_warning("user.signup.failed", {"reason": e.reason})
        raise
    except Exception as e:
        raise _internal_error(e, "User signup", "Registration failed")

    base_service.log_event("user.signup", {"id": result.user.id})
    return base_service.mcp_response(
        message="User registered successfully",
        payload=result.payload(),
        status_code=status.HTTP_201_CREATED,
    )


@router.post("/login")
async def login(
    body: LoginRequest,
    sessions: SessionManager = Depends(get_session_manager),
):
    """
    Authenticate a user with email and password.

    Returns:
        Envelope with a fresh token pair and user information
    """
    try:
        result = await sessions.login(body.email, body.password)
    except AuthServiceError as e:
        base_service.log_event("user.login.failed", {"reason": e.reason})
        raise
    except Exception as e:
        raise _internal_error(e, "User login", "Login failed")

    base_service.log_event("user.login", {"id": result.user.id})
    return base_service.mcp_response(message="Login successful", payload=result.payload())


@router.post("/refresh")
async def refresh_token(
    body: RefreshRequest,
    sessions: SessionManager = Depends(get_session_manager),
):
    """
    Rotate a refresh token.

    Returns:
        Envelope with a new access token and a new refresh token; the
        presented refresh token is no longer valid afterwards
    """
    try:
        result = await sessions.refresh(body.refresh_token)
    except AuthServiceError as e:
        base_service.log_event("token.refresh.failed", {"reason": e.reason})
        raise
    except Exception as e:
        raise _internal_error(e, "Token refresh", "Token refresh failed")

    base_service.log_event("token.refresh", None)
    return base_service.mcp_response(message="Token refreshed successfully", payload=result.payload())


@router.post("/logout")
async def logout(
    identity: Identity = Depends(require_identity),
    sessions: SessionManager = Depends(get_session_manager),
):
    """
    Revoke the caller's refresh token.
    """
    try:
        await sessions.logout(identity.user_id)
    except AuthServiceError as e:
        base_service.log_warning("user.logout.failed", {"id": identity.user_id, "reason": e.reason})
        raise
    except Exception as e:
        raise _internal_error(e, "User logout", "Failed to logout")

    base_service.log_event("user.logout", {"id": identity.user_id})
    return base_service.mcp_response(message="Logout successful")


@router.get("/me")
async def get_current_user_info(identity: Identity = Depends(require_identity)):
    """
    Return the identity derived from the caller's access token.
    """
    return base_service.mcp_response(
        message="User information retrieved successfully",
        payload={"user": {"id": identity.user_id, "email": identity.email}},
    )


@router.get("/google")
async def google_login(
    request: Request,
    adapter: GoogleLoginAdapter = Depends(get_google_adapter),
):
    """
    Sign in with a Google OAuth access token sent as ``Authorization: Bearer``.

    Returns:
        Envelope with a locally signed access token
    """
    try:
        provider_token = extract_bearer_token(request.headers.get(AUTHORIZATION_HEADER))
        result = await adapter.login(provider_token)
    except AuthServiceError as e:
        base_service.log_event("user.google_login.failed", {"reason": e.reason})
        raise
    except Exception as e:
        raise _internal_error(e, "Google login", "Google authentication failed")

    base_service.log_event("user.google_login", {"id": result.user.id, "created": result.created})
    return base_service.mcp_response(message="Authentication successful", payload={"token": result.token})
