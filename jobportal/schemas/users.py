from datetime import datetime
from typing import Optional

from beanie import Document, PydanticObjectId
from fastapi_users.db import BeanieBaseUser
from fastapi_users.schemas import BaseUser, BaseUserCreate, BaseUserUpdate
from pydantic import BaseModel, Field

from jobportal.utils.utils import utcnow


class User(BeanieBaseUser, Document):
    full_name: Optional[str] = None
    # Cached entitlement, kept in sync by the subscription services
    has_active_subscription: bool = False
    subscription_id: Optional[str] = None
    created_at: datetime = Field(default_factory=utcnow)

    class Settings(BeanieBaseUser.Settings):
        name = "users"


class UserRead(BaseUser[PydanticObjectId]):
    full_name: Optional[str] = None
    has_active_subscription: bool = False
    subscription_id: Optional[str] = None


class UserCreate(BaseUserCreate):
    full_name: Optional[str] = None


class UserUpdate(BaseUserUpdate):
    full_name: Optional[str] = None


class UserRecord(BaseModel):
    """The slice of a user the subscription services work with."""

    id: str
    email: str
    full_name: Optional[str] = None
    has_active_subscription: bool = False
    subscription_id: Optional[str] = None
    is_superuser: bool = False
