"""Schema definitions for payment records."""

import math
from datetime import datetime
from enum import Enum
from typing import List, Optional

from beanie import Document
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel
from pymongo import ASCENDING, DESCENDING, IndexModel

from jobportal.utils.utils import utcnow


class PaymentStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"


class PaymentBase(BaseModel):
    """Fields shared by the stored document and the domain model."""

    user_id: Optional[str] = None
    email: str
    plan_id: str
    amount: int = Field(..., ge=0)
    currency: str
    status: PaymentStatus = PaymentStatus.PENDING
    payment_method: str
    transaction_id: Optional[str] = None
    provider_order_id: Optional[str] = None
    failure_reason: Optional[str] = None
    created_at: datetime = Field(default_factory=utcnow)


class Payment(PaymentBase):
    """Payment attempt as seen by the services."""

    id: Optional[str] = None


class PaymentDocument(Document, PaymentBase):
    """MongoDB document model for payments."""

    class Settings:
        name = "payments"
        indexes = [
            IndexModel([("email", ASCENDING), ("created_at", DESCENDING)], name="email_created"),
            IndexModel([("status", ASCENDING)], name="status"),
        ]


class PaymentRead(BaseModel):
    id: str
    user_id: Optional[str] = None
    email: str
    plan_id: str
    amount: int
    currency: str
    status: PaymentStatus
    payment_method: str
    transaction_id: Optional[str] = None
    failure_reason: Optional[str] = None
    created_at: datetime

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    @classmethod
    def from_payment(cls, payment: Payment) -> "PaymentRead":
        return cls.model_validate(payment.model_dump())


class Pagination(BaseModel):
    total: int
    page: int
    limit: int
    pages: int

    @classmethod
    def build(cls, total: int, page: int, limit: int) -> "Pagination":
        return cls(total=total, page=page, limit=limit, pages=math.ceil(total / limit) if limit else 0)


class PaymentHistoryResponse(BaseModel):
    success: bool = True
    payments: List[PaymentRead]
    pagination: Pagination
