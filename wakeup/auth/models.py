"""
Authentication models for Wakeup.

This module defines the SQLAlchemy model for users. The user row also holds
the one refresh token that is currently valid for the user.
"""
from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, Integer, String

from wakeup.base_microservice import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class User(Base):
    """User model for authentication."""
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String, unique=True, index=True, nullable=False)
    # NULL for accounts provisioned through Google sign-in
    password_hash = Column(String, nullable=True)
    # "" means no active session
    refresh_token = Column(String, nullable=False, default="")
    created_at = Column(DateTime(timezone=True), default=_utcnow)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    @property
    def has_active_session(self) -> bool:
        return bool(self.refresh_token)

    @property
    def is_federated_only(self) -> bool:
        return not self.password_hash

    def __repr__(self) -> str:
        return f"<User id={self.id} email={self.email!r}>"
