import logging
from datetime import datetime, timezone
from typing import Literal, Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from linkist.models import User
from linkist.schemas.user import CreateUserInput, UserAccount
from linkist.services.errors import UserCreationFailed
from linkist.services.identifiers import normalize_email

logger = logging.getLogger(__name__)

Channel = Literal["email", "mobile"]


class UserDirectory:
    """Account records, unique by normalized email and by phone number."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def _one(self, stmt) -> Optional[User]:
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def get_by_email(self, email: str) -> Optional[UserAccount]:
        user = await self._one(select(User).where(User.email == normalize_email(email)))
        return UserAccount.model_validate(user) if user else None

    async def get_by_phone(self, phone_number: str) -> Optional[UserAccount]:
        user = await self._one(select(User).where(User.phone_number == phone_number))
        return UserAccount.model_validate(user) if user else None

    async def get_by_id(self, user_id: str) -> Optional[UserAccount]:
        user = await self._one(select(User).where(User.id == user_id))
        return UserAccount.model_validate(user) if user else None

    async def exists(self, email: Optional[str] = None, phone_number: Optional[str] = None) -> bool:
        if email and await self.get_by_email(email):
            return True
        if phone_number and await self.get_by_phone(phone_number):
            return True
        return False

    async def upsert_by_email(self, data: CreateUserInput) -> UserAccount:
        """Create the account for ``data.email`` unless one already exists.

        An existing record is returned untouched. If the insert loses a
        uniqueness race on email or phone, the record that won is returned.
        """
        existing = await self.get_by_email(data.email)
        if existing:
            logger.info(f"[UserDirectory] User {existing.id} already exists for {data.email}; existing data preserved")
            return existing

        user = User(
            email=data.email,
            first_name=data.first_name or None,
            last_name=data.last_name or None,
            phone_number=data.phone_number,
            country=data.country or None,
            country_code=data.country_code or None,
            role=data.role,
            email_verified=data.email_verified,
            mobile_verified=data.mobile_verified,
        )
        self.db.add(user)
        try:
            await self.db.commit()
        except IntegrityError as ie:
            await self.db.rollback()
            logger.warning(f"[UserDirectory] Unique constraint hit creating {data.email}: {ie.orig}")
            winner = await self.get_by_email(data.email)
            if winner is None and data.phone_number:
                winner = await self.get_by_phone(data.phone_number)
            if winner is not None:
                logger.info(f"[UserDirectory] Resolved to existing user {winner.id}")
                return winner
            raise UserCreationFailed() from ie
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error(f"[UserDirectory] Failed to create user {data.email}: {e}")
            raise UserCreationFailed() from e
        await self.db.refresh(user)
        logger.info(f"[UserDirectory] Created user {user.id} for {data.email}")
        return UserAccount.model_validate(user)

    async def update_verification_status(self, email: str, channel: Channel, verified: bool = True) -> Optional[UserAccount]:
        user = await self._one(select(User).where(User.email == normalize_email(email)))
        if user is None:
            return None
        if channel == "email":
            user.email_verified = verified
        else:
            user.mobile_verified = verified
        user.updated_at = datetime.now(timezone.utc)
        await self.db.commit()
        await self.db.refresh(user)
        return UserAccount.model_validate(user)
