"""Schema definitions for subscriptions."""

from datetime import datetime
from enum import Enum
from typing import List, Optional

from beanie import Document
from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel
from pymongo import ASCENDING, DESCENDING, IndexModel

from jobportal.utils.utils import days_until, utcnow

from .payments import PaymentRead
from .plans import PlanRead


class SubscriptionStatus(str, Enum):
    PENDING = "pending"
    ACTIVE = "active"
    EXPIRED = "expired"
    CANCELLED = "cancelled"


class SubscriptionBase(BaseModel):
    """Fields shared by the stored document and the domain model."""

    user_id: Optional[str] = Field(None, description="Absent for guest, email-only subscriptions")
    email: str
    full_name: str
    plan_id: str
    amount: int = Field(..., ge=0)
    currency: str
    status: SubscriptionStatus = SubscriptionStatus.PENDING
    start_date: datetime
    end_date: datetime
    features: List[str] = Field(default_factory=list, description="Snapshot of the plan features at purchase")
    payment_id: Optional[str] = None
    payment_method: Optional[str] = None
    provider_order_id: Optional[str] = None
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    @model_validator(mode="after")
    def _check_window(self):
        if self.end_date < self.start_date:
            raise ValueError("end_date must not be before start_date")
        return self


class Subscription(SubscriptionBase):
    """Subscription as seen by the services."""

    id: Optional[str] = None

    def is_active(self, now: datetime) -> bool:
        return self.status == SubscriptionStatus.ACTIVE and days_until(self.end_date, now) > 0

    def days_remaining(self, now: datetime) -> int:
        if self.status != SubscriptionStatus.ACTIVE:
            return 0
        return days_until(self.end_date, now)


class SubscriptionDocument(Document, SubscriptionBase):
    """MongoDB document model for subscriptions."""

    class Settings:
        name = "subscriptions"
        indexes = [
            IndexModel([("email", ASCENDING), ("created_at", DESCENDING)], name="email_created"),
            IndexModel([("user_id", ASCENDING), ("created_at", DESCENDING)], name="user_created"),
            IndexModel([("status", ASCENDING)], name="status"),
            # One active subscription per email
            IndexModel(
                [("email", ASCENDING)],
                name="unique_active_email",
                unique=True,
                partialFilterExpression={"status": SubscriptionStatus.ACTIVE.value},
            ),
            IndexModel(
                [("provider_order_id", ASCENDING)],
                name="unique_provider_order",
                unique=True,
                partialFilterExpression={"provider_order_id": {"$type": "string"}},
            ),
        ]


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class SubscriptionCreate(_CamelModel):
    """Body for the direct purchase flow.

    Required fields are checked by the lifecycle controller so that missing
    values are reported together.
    """

    email: Optional[str] = None
    full_name: Optional[str] = None
    plan_id: Optional[str] = None
    payment_method: str = "card"


class OrderCreate(_CamelModel):
    """Body for the first phase of the order/verify flow."""

    plan_id: Optional[str] = None
    user_id: Optional[str] = None
    email: Optional[str] = None
    name: Optional[str] = None


class OrderVerify(_CamelModel):
    """Body for the second phase of the order/verify flow."""

    provider_order_id: Optional[str] = None
    provider_payment_id: Optional[str] = None
    provider_signature: Optional[str] = None
    plan_id: Optional[str] = None
    user_id: Optional[str] = None
    email: Optional[str] = None
    name: Optional[str] = None
    duration: Optional[int] = None


class SubscriptionRead(_CamelModel):
    """Full subscription record returned to clients."""

    id: str
    user_id: Optional[str] = None
    email: str
    full_name: str
    plan_id: str
    amount: int
    currency: str
    status: SubscriptionStatus
    start_date: datetime
    end_date: datetime
    features: List[str]
    payment_id: Optional[str] = None
    payment_method: Optional[str] = None
    created_at: datetime

    @classmethod
    def from_subscription(cls, subscription: Subscription) -> "SubscriptionRead":
        return cls.model_validate(subscription.model_dump())


class SubscriptionSummary(_CamelModel):
    id: str
    plan: str
    status: SubscriptionStatus
    start_date: datetime
    end_date: datetime
    features: List[str]
    days_remaining: int


class SubscriptionStatusResponse(_CamelModel):
    has_active_subscription: bool
    subscription: Optional[SubscriptionSummary] = None


class PurchaseResponse(_CamelModel):
    success: bool = True
    subscription: SubscriptionRead
    payment: PaymentRead


class OrderResponse(_CamelModel):
    order_id: str
    subscription_id: str
    amount: int
    currency: str
    key_id: str
    user_id: Optional[str] = None
    plan_details: PlanRead


class SubscriptionListResponse(_CamelModel):
    subscriptions: List[SubscriptionRead]
    total: int
    page: int
    limit: int
