from contextlib import asynccontextmanager
from typing import Optional

import httpx
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.ext.asyncio import AsyncEngine, async_sessionmaker

from wakeup.base_microservice import BaseMicroservice, create_engine_and_sessionmaker, init_models
from wakeup.config import Settings
from wakeup.error_handling import register_exception_handlers
from wakeup.auth.jwt import TokenCodec
from wakeup.auth.middleware import IdentityMiddleware
from wakeup.auth.passwords import PasswordHasher
from wakeup.auth.router import router as auth_router

base_service = BaseMicroservice()


def create_app(
    settings: Optional[Settings] = None,
    engine: Optional[AsyncEngine] = None,
    http_client: Optional[httpx.AsyncClient] = None,
) -> FastAPI:
    """
    Build the Wakeup API.

    Args:
        settings: Service configuration, read from the environment when omitted
            (raises ConfigurationError if JWT_SECRET is missing)
        engine: Async engine to use instead of one built from ``database_url``
        http_client: Client for calls to Google, built with the configured
            timeout when omitted

    Returns:
        Configured FastAPI application
    """
    if settings is None:
        settings = Settings.from_env()

    owns_engine = engine is None
    if engine is None:
        engine, sessionmaker = create_engine_and_sessionmaker(settings.database_url)
    else:
        sessionmaker = async_sessionmaker(engine, expire_on_commit=False)

    owns_client = http_client is None
    if http_client is None:
        http_client = httpx.AsyncClient(timeout=settings.google_timeout_seconds)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """
        Lifespan context manager for FastAPI.
        Handles startup and shutdown events.
        """
        base_service.log_event("service.startup", {"service": "auth"})
        await init_models(engine)
        yield
        if owns_client:
            await http_client.aclose()
        if owns_engine:
            await engine.dispose()
        base_service.log_event("service.shutdown", {"service": "auth"})

    app = FastAPI(
        title="Wakeup API",
        description="Account registration, login and session tokens",
        lifespan=lifespan,
    )

    base_service.logger.setLevel(settings.log_level)

    codec = TokenCodec(settings)
    app.state.settings = settings
    app.state.engine = engine
    app.state.sessionmaker = sessionmaker
    app.state.token_codec = codec
    app.state.password_hasher = PasswordHasher(rounds=settings.bcrypt_rounds)
    app.state.identity_middleware = IdentityMiddleware(codec)
    app.state.google_client = http_client

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
        allow_headers=["Origin", "Content-Type", "Authorization"],
    )
    register_exception_handlers(app)

    app.include_router(auth_router, prefix=f"{settings.api_prefix}/auth", tags=["auth"])

    @app.get(f"{settings.api_prefix}/health", tags=["health"])
    async def health_check():
        """Service health check."""
        return base_service.mcp_response(message="Server is healthy")

    return app
