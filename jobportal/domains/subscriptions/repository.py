"""Record stores for subscriptions and payments."""

import functools
import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Tuple

from beanie import PydanticObjectId, UpdateResponse
from bson import ObjectId
from pymongo.errors import DuplicateKeyError, PyMongoError

from ...schemas.identity import ByUserId, Identity
from ...schemas.payments import Payment, PaymentDocument, PaymentStatus
from ...schemas.subscriptions import Subscription, SubscriptionDocument, SubscriptionStatus
from ...utils.errors import NotFoundError, PortalError, StorageUnavailable, SubscriptionConflict
from ...utils.utils import utcnow

logger = logging.getLogger(__name__)


def storage_operation(name: str):
    """Surface driver failures and timeouts as StorageUnavailable."""

    def decorator(func):
        @functools.wraps(func)
        async def wrapper(*args, **kwargs):
            try:
                return await func(*args, **kwargs)
            except PortalError:
                raise
            except PyMongoError as e:
                logger.error(f"Storage operation {name} failed: {e}")
                raise StorageUnavailable(name, e) from e

        return wrapper

    return decorator


def identity_filter(identity: Identity) -> Dict[str, Any]:
    if isinstance(identity, ByUserId):
        return {"user_id": identity.user_id}
    return {"email": identity.email}


def to_object_id(value: Optional[str]) -> Optional[PydanticObjectId]:
    if not value or not ObjectId.is_valid(value):
        return None
    return PydanticObjectId(value)


class SubscriptionRepository(ABC):
    """Persistence contract for subscription records."""

    @abstractmethod
    async def insert(self, subscription: Subscription) -> Subscription:
        """Store a new subscription.

        Raises:
            SubscriptionConflict: If it would be a second active subscription for the email
        """

    @abstractmethod
    async def get(self, subscription_id: str) -> Optional[Subscription]:
        pass

    @abstractmethod
    async def find_latest_active(self, identity: Identity) -> Optional[Subscription]:
        """Most recently created subscription with status active for the identity."""

    @abstractmethod
    async def find_latest(self, identity: Identity) -> Optional[Subscription]:
        """Most recently created subscription in any status for the identity."""

    @abstractmethod
    async def find_by_order_id(self, order_id: str) -> Optional[Subscription]:
        pass

    @abstractmethod
    async def transition(
        self,
        subscription_id: str,
        from_status: SubscriptionStatus,
        to_status: SubscriptionStatus,
        **fields: Any,
    ) -> Optional[Subscription]:
        """Move a subscription between states if it is still in ``from_status``.

        Returns:
            The updated subscription, or None if its status had already changed

        Raises:
            SubscriptionConflict: If activating would create a second active subscription
        """

    @abstractmethod
    async def list_for_identity(self, identity: Identity) -> List[Subscription]:
        """All subscriptions for the identity, newest first."""

    @abstractmethod
    async def list(
        self, status: Optional[SubscriptionStatus] = None, skip: int = 0, limit: int = 20
    ) -> Tuple[List[Subscription], int]:
        pass

    @abstractmethod
    async def count_by_status(self) -> Dict[str, int]:
        pass


class PaymentRepository(ABC):
    """Persistence contract for payment attempts."""

    @abstractmethod
    async def insert(self, payment: Payment) -> Payment:
        pass

    @abstractmethod
    async def get(self, payment_id: str) -> Optional[Payment]:
        pass

    @abstractmethod
    async def update_status(self, payment_id: str, status: PaymentStatus, **fields: Any) -> Payment:
        pass

    @abstractmethod
    async def history(
        self, email: Optional[str] = None, skip: int = 0, limit: int = 10
    ) -> Tuple[List[Payment], int]:
        """Payments newest first, optionally for one email, with the total count."""


def _to_subscription(doc: SubscriptionDocument) -> Subscription:
    return Subscription(id=str(doc.id), **doc.model_dump(exclude={"id", "revision_id"}))


def _to_payment(doc: PaymentDocument) -> Payment:
    return Payment(id=str(doc.id), **doc.model_dump(exclude={"id", "revision_id"}))


class BeanieSubscriptionRepository(SubscriptionRepository):
    """Subscription store backed by the ``subscriptions`` collection."""

    @storage_operation("subscription.insert")
    async def insert(self, subscription: Subscription) -> Subscription:
        doc = SubscriptionDocument(**subscription.model_dump(exclude={"id"}))
        try:
            await doc.insert()
        except DuplicateKeyError as e:
            raise SubscriptionConflict(
                "An active subscription already exists for this email",
                details={"email": subscription.email},
            ) from e
        return _to_subscription(doc)

    @storage_operation("subscription.get")
    async def get(self, subscription_id: str) -> Optional[Subscription]:
        oid = to_object_id(subscription_id)
        if oid is None:
            return None
        doc = await SubscriptionDocument.get(oid)
        return _to_subscription(doc) if doc else None

    @storage_operation("subscription.find_latest_active")
    async def find_latest_active(self, identity: Identity) -> Optional[Subscription]:
        query = {**identity_filter(identity), "status": SubscriptionStatus.ACTIVE.value}
        doc = await SubscriptionDocument.find(query).sort([("created_at", -1)]).first_or_none()
        return _to_subscription(doc) if doc else None

    @storage_operation("subscription.find_latest")
    async def find_latest(self, identity: Identity) -> Optional[Subscription]:
        doc = await SubscriptionDocument.find(identity_filter(identity)).sort([("created_at", -1)]).first_or_none()
        return _to_subscription(doc) if doc else None

    @storage_operation("subscription.find_by_order_id")
    async def find_by_order_id(self, order_id: str) -> Optional[Subscription]:
        doc = await SubscriptionDocument.find_one({"provider_order_id": order_id})
        return _to_subscription(doc) if doc else None

    @storage_operation("subscription.transition")
    async def transition(
        self,
        subscription_id: str,
        from_status: SubscriptionStatus,
        to_status: SubscriptionStatus,
        **fields: Any,
    ) -> Optional[Subscription]:
        oid = to_object_id(subscription_id)
        if oid is None:
            raise NotFoundError("Subscription", {"id": subscription_id})

        update = {**fields, "status": to_status.value, "updated_at": utcnow()}
        try:
            doc = await SubscriptionDocument.find_one({"_id": oid, "status": from_status.value}).update(
                {"$set": update}, response_type=UpdateResponse.NEW_DOCUMENT
            )
        except DuplicateKeyError as e:
            raise SubscriptionConflict(
                "An active subscription already exists for this email",
                details={"subscription_id": subscription_id},
            ) from e

        if doc is None:
            logger.debug(f"Subscription {subscription_id} was not {from_status.value}, transition skipped")
            return None
        return _to_subscription(doc)

    @storage_operation("subscription.list_for_identity")
    async def list_for_identity(self, identity: Identity) -> List[Subscription]:
        docs = await SubscriptionDocument.find(identity_filter(identity)).sort([("created_at", -1)]).to_list()
        return [_to_subscription(doc) for doc in docs]

    @storage_operation("subscription.list")
    async def list(
        self, status: Optional[SubscriptionStatus] = None, skip: int = 0, limit: int = 20
    ) -> Tuple[List[Subscription], int]:
        query: Dict[str, Any] = {}
        if status:
            query["status"] = status.value

        docs = await SubscriptionDocument.find(query).sort([("created_at", -1)]).skip(skip).limit(limit).to_list()
        total = await SubscriptionDocument.find(query).count()
        return [_to_subscription(doc) for doc in docs], total

    @storage_operation("subscription.count_by_status")
    async def count_by_status(self) -> Dict[str, int]:
        pipeline = [{"$group": {"_id": "$status", "count": {"$sum": 1}}}]
        results = await SubscriptionDocument.aggregate(pipeline).to_list()

        counts = {status.value: 0 for status in SubscriptionStatus}
        for row in results:
            counts[row["_id"]] = row["count"]
        counts["total"] = sum(counts[status.value] for status in SubscriptionStatus)
        return counts


class BeaniePaymentRepository(PaymentRepository):
    """Payment store backed by the ``payments`` collection."""

    @storage_operation("payment.insert")
    async def insert(self, payment: Payment) -> Payment:
        doc = PaymentDocument(**payment.model_dump(exclude={"id"}))
        await doc.insert()
        return _to_payment(doc)

    @storage_operation("payment.get")
    async def get(self, payment_id: str) -> Optional[Payment]:
        oid = to_object_id(payment_id)
        if oid is None:
            return None
        doc = await PaymentDocument.get(oid)
        return _to_payment(doc) if doc else None

    @storage_operation("payment.update_status")
    async def update_status(self, payment_id: str, status: PaymentStatus, **fields: Any) -> Payment:
        oid = to_object_id(payment_id)
        if oid is None:
            raise NotFoundError("Payment", {"id": payment_id})

        doc = await PaymentDocument.find_one({"_id": oid}).update(
            {"$set": {**fields, "status": status.value}}, response_type=UpdateResponse.NEW_DOCUMENT
        )
        if doc is None:
            raise NotFoundError("Payment", {"id": payment_id})
        return _to_payment(doc)

    @storage_operation("payment.history")
    async def history(
        self, email: Optional[str] = None, skip: int = 0, limit: int = 10
    ) -> Tuple[List[Payment], int]:
        query: Dict[str, Any] = {}
        if email:
            query["email"] = email

        docs = await PaymentDocument.find(query).sort([("created_at", -1)]).skip(skip).limit(limit).to_list()
        total = await PaymentDocument.find(query).count()
        return [_to_payment(doc) for doc in docs], total
