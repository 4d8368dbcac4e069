"""
Credential store.

Keyed access to user records on top of an ``AsyncSession``. Lookups never
raise for a missing row; persistence failures are reported as
``StoreUnavailable`` and a duplicate email as ``AlreadyExists``.
"""
from typing import Optional

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from wakeup.auth.errors import AlreadyExists, StoreUnavailable
from wakeup.auth.models import User


class UserStore:
    """
    Lookup, insert and update operations for users.
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    async def find_by_email(self, email: str) -> Optional[User]:
        try:
            result = await self.db.execute(select(User).where(User.email == email))
        except SQLAlchemyError as e:
            raise StoreUnavailable(f"find_by_email failed: {e.__class__.__name__}") from e
        return result.scalar_one_or_none()

    async def find_by_id(self, user_id: int) -> Optional[User]:
        try:
            result = await self.db.execute(select(User).where(User.id == user_id))
        except SQLAlchemyError as e:
            raise StoreUnavailable(f"find_by_id failed: {e.__class__.__name__}") from e
        return result.scalar_one_or_none()

    async def create(self, email: str, password_hash: Optional[str] = None) -> User:
        """
        Insert a user and flush it so the id is assigned.

        The row is not committed; call ``save`` once the rest of the record
        (the initial refresh token) is filled in so both land in one
        transaction.

        Raises:
            AlreadyExists: If the email is already registered
            StoreUnavailable: On any other persistence error
        """
        user = User(email=email, password_hash=password_hash, refresh_token="")
        self.db.add(user)
        try:
            await self.db.flush()
        except IntegrityError as e:
            await self.db.rollback()
            raise AlreadyExists(f"unique constraint rejected {email}") from e
        except SQLAlchemyError as e:
            await self.db.rollback()
            raise StoreUnavailable(f"create failed: {e.__class__.__name__}") from e
        return user

    async def save(self, user: User) -> User:
        """Commit pending changes to ``user``."""
        try:
            await self.db.commit()
        except IntegrityError as e:
            await self.db.rollback()
            raise AlreadyExists(f"unique constraint rejected {user.email}") from e
        except SQLAlchemyError as e:
            await self.db.rollback()
            raise StoreUnavailable(f"save failed: {e.__class__.__name__}") from e
        return user

    async def set_refresh_token(self, user_id: int, refresh_token: str) -> bool:
        """
        Overwrite the stored refresh token of a user.

        Returns:
            True if a row was updated
        """
        try:
            result = await self.db.execute(
                update(User)
                .where(User.id == user_id)
                .values(refresh_token=refresh_token)
            )
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            raise StoreUnavailable(f"set_refresh_token failed: {e.__class__.__name__}") from e
        return result.rowcount > 0
