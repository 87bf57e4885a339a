"""User directory used by the subscription services."""

import logging
import secrets
from abc import ABC, abstractmethod
from typing import Optional

from fastapi_users.password import PasswordHelper
from pymongo.errors import DuplicateKeyError

from ...schemas.users import User, UserRecord
from ..subscriptions.repository import to_object_id, storage_operation

logger = logging.getLogger(__name__)


class UserDirectory(ABC):
    """Lookup and denormalized-flag maintenance for registered users."""

    @abstractmethod
    async def find_by_id(self, user_id: str) -> Optional[UserRecord]:
        pass

    @abstractmethod
    async def find_by_email(self, email: str) -> Optional[UserRecord]:
        pass

    @abstractmethod
    async def find_or_create_user(self, email: str, full_name: str) -> UserRecord:
        """Return the user registered with ``email``, registering one if needed."""

    @abstractmethod
    async def set_has_active_subscription(
        self, user_id: str, has_active: bool, subscription_id: Optional[str] = None
    ) -> None:
        """Update the cached entitlement flag on the user."""


def _to_record(user: User) -> UserRecord:
    return UserRecord(
        id=str(user.id),
        email=user.email,
        full_name=user.full_name,
        has_active_subscription=user.has_active_subscription,
        subscription_id=user.subscription_id,
        is_superuser=user.is_superuser,
    )


class BeanieUserDirectory(UserDirectory):
    """User directory over the fastapi-users ``users`` collection."""

    def __init__(self, password_helper: Optional[PasswordHelper] = None):
        self.password_helper = password_helper or PasswordHelper()

    @storage_operation("user.find_by_id")
    async def find_by_id(self, user_id: str) -> Optional[UserRecord]:
        oid = to_object_id(user_id)
        if oid is None:
            return None
        user = await User.get(oid)
        return _to_record(user) if user else None

    @storage_operation("user.find_by_email")
    async def find_by_email(self, email: str) -> Optional[UserRecord]:
        # Registration keeps the email's case, match it the way the users index does
        user = await User.find_one({"email": email.strip()}, collation=User.Settings.email_collation)
        return _to_record(user) if user else None

    @storage_operation("user.find_or_create")
    async def find_or_create_user(self, email: str, full_name: str) -> UserRecord:
        existing = await self.find_by_email(email)
        if existing:
            return existing

        # Guests get an unusable random password until they reset it
        user = User(
            email=email.strip(),
            hashed_password=self.password_helper.hash(secrets.token_urlsafe(16)),
            full_name=full_name,
        )
        try:
            await user.insert()
        except DuplicateKeyError:
            # Registered concurrently
            existing = await self.find_by_email(email)
            if existing:
                return existing
            raise
        logger.info(f"Registered user {user.id} for {user.email}")
        return _to_record(user)

    @storage_operation("user.set_has_active_subscription")
    async def set_has_active_subscription(
        self, user_id: str, has_active: bool, subscription_id: Optional[str] = None
    ) -> None:
        oid = to_object_id(user_id)
        if oid is None:
            logger.warning(f"Cannot update subscription flag, invalid user id {user_id}")
            return
        await User.find_one({"_id": oid}).update(
            {"$set": {"has_active_subscription": has_active, "subscription_id": subscription_id if has_active else None}}
        )
