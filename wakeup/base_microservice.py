import os
import logging
from typing import Any, Dict, Optional, Tuple

from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import declarative_base

# Setup logging
logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s %(message)s",
)
logger = logging.getLogger("wakeup")
# httpx logs every request URL at INFO
logging.getLogger("httpx").setLevel(logging.WARNING)

Base = declarative_base()


def create_engine_and_sessionmaker(
    database_url: str,
    **engine_kwargs: Any,
) -> Tuple[AsyncEngine, async_sessionmaker]:
    """
    Create the async engine and the session factory bound to it.

    Args:
        database_url: SQLAlchemy async database URL
        **engine_kwargs: Extra arguments for ``create_async_engine``

    Returns:
        Tuple of engine and session factory
    """
    engine = create_async_engine(database_url, echo=False, **engine_kwargs)
    return engine, async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)


async def init_models(engine: AsyncEngine) -> None:
    """Create any missing tables for the registered models."""
    # Registers the users table on Base.metadata
    from wakeup.auth import models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


class MCPResponse(JSONResponse):
    """
    Standard response envelope for all API endpoints.

    The payload is spread next to ``status`` and ``message``:
    ``{"status": "success", "message": "...", "accessToken": "..."}``.
    """
    def __init__(
        self,
        message: str = "success",
        status: str = "success",
        payload: Optional[Dict[str, Any]] = None,
        **kwargs,
    ):
        content = {"status": status, "message": message}
        if payload:
            content.update(payload)
        super().__init__(content=content, **kwargs)


class BaseMicroservice:
    """
    Base class for service components. Provides:
    - Error/event logging
    - Response envelope construction
    """
    def __init__(self, name: str = "wakeup"):
        self.logger = logger if name == "wakeup" else logger.getChild(name)

    def mcp_response(
        self,
        message: str = "success",
        status: str = "success",
        payload: Optional[Dict[str, Any]] = None,
        status_code: int = 200,
        headers: Optional[Dict[str, str]] = None,
    ) -> MCPResponse:
        """
        Return a standard envelope response.
        """
        return MCPResponse(
            message=message,
            status=status,
            payload=payload,
            status_code=status_code,
            headers=headers,
        )

    def log_event(self, event: str, details: Optional[Dict[str, Any]] = None):
        self.logger.info(f"EVENT: {event} | Details: {details}")

    def log_warning(self, event: str, details: Optional[Dict[str, Any]] = None):
        self.logger.warning(f"EVENT: {event} | Details: {details}")

    def log_error(self, error: Exception, context: str = ""):
        self.logger.error(f"ERROR: {error.__class__.__name__}: {error} | Context: {context}")
