"""Subscription purchase, activation and cancellation."""

import logging
from dataclasses import dataclass
from typing import Callable, List, Optional

from pydantic.alias_generators import to_camel

from jobportal.domains.subscriptions.repository import PaymentRepository, SubscriptionRepository
from jobportal.domains.users.repository import UserDirectory
from jobportal.schemas.identity import ByEmail, Identity, normalize_email
from jobportal.schemas.payments import Payment, PaymentStatus
from jobportal.schemas.plans import Plan
from jobportal.schemas.subscriptions import (
    OrderCreate,
    OrderVerify,
    Subscription,
    SubscriptionCreate,
    SubscriptionStatus,
)
from jobportal.schemas.users import UserRecord
from jobportal.utils.errors import (
    Forbidden,
    NotFoundError,
    PaymentDeclined,
    PaymentProviderError,
    PlanNotFound,
    SignatureInvalid,
    SubscriptionConflict,
    ValidationError,
)
from jobportal.utils.utils import add_days, random_token, utcnow

from .entitlement import EntitlementEngine, identity_matches
from .payment_gateway import ChargeRequest, PaymentGateway, verify_order_signature
from .plan_catalog import PlanCatalog

logger = logging.getLogger(__name__)

ORDER_PAYMENT_METHOD = "razorpay"


@dataclass(frozen=True)
class PurchaseResult:
    subscription: Subscription
    payment: Payment
    plan: Plan


@dataclass(frozen=True)
class OrderResult:
    order_id: str
    subscription: Subscription
    plan: Plan
    key_id: str
    user_id: Optional[str] = None


def require_fields(**fields: Optional[str]) -> None:
    """Raise a single ValidationError naming every blank field."""
    missing = [to_camel(name) for name, value in fields.items() if value is None or not str(value).strip()]
    if missing:
        raise ValidationError(f"Missing required fields: {', '.join(missing)}", details={"missing": missing})


class SubscriptionLifecycleController:
    """Takes a subscription from plan selection through payment to activation."""

    def __init__(
        self,
        catalog: PlanCatalog,
        subscriptions: SubscriptionRepository,
        payments: PaymentRepository,
        entitlement: EntitlementEngine,
        gateway: PaymentGateway,
        users: UserDirectory,
        order_secret: str,
        key_id: str = "",
        clock: Callable = utcnow,
    ):
        self.catalog = catalog
        self.subscriptions = subscriptions
        self.payments = payments
        self.entitlement = entitlement
        self.gateway = gateway
        self.users = users
        self.order_secret = order_secret
        self.key_id = key_id
        self.clock = clock

    async def create_subscription(self, request: SubscriptionCreate) -> PurchaseResult:
        """Charge for a plan and activate the subscription in one step.

        Raises:
            ValidationError: If email or full name is missing, or the gateway cannot charge the payment method
            PlanNotFound: If the plan id is unknown
            SubscriptionConflict: If the email already has an active subscription
            PaymentDeclined: If the gateway declines; only the failed payment is stored
        """
        require_fields(email=request.email, full_name=request.full_name)
        plan = self.catalog.get_plan(request.plan_id)
        self.gateway.check_payment_method(request.payment_method)
        email = normalize_email(request.email)
        full_name = request.full_name.strip()

        await self._ensure_no_active_subscription(email)
        user = await self.users.find_by_email(email)

        payment = await self.payments.insert(
            Payment(
                user_id=user.id if user else None,
                email=email,
                plan_id=plan.id,
                amount=plan.price,
                currency=plan.currency,
                status=PaymentStatus.PENDING,
                payment_method=request.payment_method,
                created_at=self.clock(),
            )
        )

        charge = ChargeRequest(
            amount=plan.price,
            currency=plan.currency,
            payment_method=request.payment_method,
            email=email,
            description=f"{plan.name} subscription",
        )
        try:
            outcome = await self.gateway.charge(charge)
        except PaymentProviderError as e:
            await self.payments.update_status(payment.id, PaymentStatus.FAILED, failure_reason=e.message)
            raise

        if not outcome.success:
            reason = outcome.failure_reason or "Payment declined"
            payment = await self.payments.update_status(
                payment.id, PaymentStatus.FAILED, failure_reason=reason, transaction_id=outcome.transaction_id
            )
            logger.info(f"Payment {payment.id} for {email} declined: {reason}")
            raise PaymentDeclined(reason, payment.id)

        payment = await self.payments.update_status(
            payment.id, PaymentStatus.COMPLETED, transaction_id=outcome.transaction_id
        )

        now = self.clock()
        try:
            subscription = await self.subscriptions.insert(
                self._snapshot(
                    plan,
                    email=email,
                    full_name=full_name,
                    user=user,
                    status=SubscriptionStatus.ACTIVE,
                    now=now,
                    payment_id=payment.id,
                    payment_method=request.payment_method,
                )
            )
        except SubscriptionConflict:
            await self._void_payment(payment, "duplicate_active_subscription")
            raise

        await self.entitlement.mark_user_active(subscription)
        logger.info(f"Subscription {subscription.id} activated for {email} on plan {plan.id}")
        return PurchaseResult(subscription, payment, plan)

    async def create_order(self, request: OrderCreate) -> OrderResult:
        """Open a pending subscription to be paid through the external provider.

        Raises:
            ValidationError: If email or name is missing, or does not match the given user
            PlanNotFound: If the plan id is unknown
            NotFoundError: If a user id is given and does not exist
            SubscriptionConflict: If the email already has an active subscription
        """
        require_fields(email=request.email, name=request.name)
        plan = self.catalog.get_plan(request.plan_id)
        email = normalize_email(request.email)
        full_name = request.name.strip()

        await self._ensure_no_active_subscription(email)
        user = await self._resolve_order_user(request.user_id, email, full_name)

        order_id = random_token("order")
        subscription = await self.subscriptions.insert(
            self._snapshot(
                plan,
                email=email,
                full_name=full_name,
                user=user,
                status=SubscriptionStatus.PENDING,
                now=self.clock(),
                payment_method=ORDER_PAYMENT_METHOD,
                provider_order_id=order_id,
            )
        )
        logger.info(f"Order {order_id} created for {email}, pending subscription {subscription.id}")
        return OrderResult(order_id, subscription, plan, self.key_id, user.id)

    async def verify_payment(self, request: OrderVerify) -> PurchaseResult:
        """Check the provider signature for a paid order and activate its subscription.

        Raises:
            ValidationError: If a required field is missing or the plan does not match the order
            SignatureInvalid: If the signature does not match the order and payment ids
            NotFoundError: If no order has this id
            SubscriptionConflict: If the order was already processed or another subscription is active
        """
        require_fields(
            provider_order_id=request.provider_order_id,
            provider_payment_id=request.provider_payment_id,
            provider_signature=request.provider_signature,
        )
        order_id = request.provider_order_id
        provider_payment_id = request.provider_payment_id

        if not verify_order_signature(order_id, provider_payment_id, request.provider_signature, self.order_secret):
            logger.warning(f"Rejected payment {provider_payment_id} for order {order_id}: signature mismatch")
            raise SignatureInvalid(order_id)

        pending = await self.subscriptions.find_by_order_id(order_id)
        if pending is None:
            raise NotFoundError("Order", {"order_id": order_id})
        if request.plan_id and request.plan_id != pending.plan_id:
            raise ValidationError(
                "Plan does not match the order", details={"order_plan": pending.plan_id, "plan_id": request.plan_id}
            )
        if pending.status != SubscriptionStatus.PENDING:
            raise SubscriptionConflict("Order already processed", details={"order_id": order_id})

        await self._ensure_no_active_subscription(pending.email)
        plan = self._plan_for(pending)

        payment = await self.payments.insert(
            Payment(
                user_id=pending.user_id,
                email=pending.email,
                plan_id=pending.plan_id,
                amount=pending.amount,
                currency=pending.currency,
                status=PaymentStatus.COMPLETED,
                payment_method=pending.payment_method or ORDER_PAYMENT_METHOD,
                transaction_id=provider_payment_id,
                provider_order_id=order_id,
                created_at=self.clock(),
            )
        )

        # Keep the snapshotted duration, the window starts when payment lands
        now = self.clock()
        duration = pending.end_date - pending.start_date
        try:
            subscription = await self.subscriptions.transition(
                pending.id,
                SubscriptionStatus.PENDING,
                SubscriptionStatus.ACTIVE,
                start_date=now,
                end_date=now + duration,
                payment_id=payment.id,
            )
        except SubscriptionConflict:
            await self._void_payment(payment, "duplicate_active_subscription")
            raise
        if subscription is None:
            await self._void_payment(payment, "order_already_processed")
            raise SubscriptionConflict("Order already processed", details={"order_id": order_id})

        await self.entitlement.mark_user_active(subscription)
        logger.info(f"Order {order_id} verified, subscription {subscription.id} activated")
        return PurchaseResult(subscription, payment, plan)

    async def cancel_subscription(self, subscription_id: str, identity: Identity) -> Subscription:
        """Cancel a pending or active subscription owned by the identity.

        Raises:
            NotFoundError: If the subscription does not exist
            Forbidden: If it belongs to someone else
            SubscriptionConflict: If it is already expired or cancelled
        """
        subscription = await self.subscriptions.get(subscription_id)
        if subscription is None:
            raise NotFoundError("Subscription", {"id": subscription_id})
        if not identity_matches(subscription, identity):
            raise Forbidden()
        if subscription.status not in (SubscriptionStatus.PENDING, SubscriptionStatus.ACTIVE):
            raise SubscriptionConflict(
                f"Cannot cancel a subscription that is {subscription.status.value}",
                details={"id": subscription_id},
            )

        cancelled = await self.subscriptions.transition(
            subscription.id, subscription.status, SubscriptionStatus.CANCELLED
        )
        if cancelled is None:
            raise SubscriptionConflict("Subscription changed while cancelling, retry", details={"id": subscription_id})

        if subscription.status == SubscriptionStatus.ACTIVE:
            await self.entitlement.clear_user_flag(cancelled)
        logger.info(f"Subscription {subscription_id} cancelled")
        return cancelled

    async def subscription_history(self, identity: Identity) -> List[Subscription]:
        return await self.entitlement.history(identity)

    async def _ensure_no_active_subscription(self, email: str) -> None:
        active = await self.entitlement.get_active_subscription(ByEmail(email))
        if active:
            raise SubscriptionConflict(
                "User already has an active subscription",
                details={"subscription_id": active.subscription.id, "days_remaining": active.days_remaining},
            )

    async def _resolve_order_user(self, user_id: Optional[str], email: str, full_name: str) -> UserRecord:
        if not user_id:
            return await self.users.find_or_create_user(email, full_name)

        user = await self.users.find_by_id(user_id)
        if user is None:
            raise NotFoundError("User", {"id": user_id})
        if normalize_email(user.email) != email:
            raise ValidationError("Email does not match the user", details={"user_id": user_id})
        return user

    def _plan_for(self, subscription: Subscription) -> Plan:
        """The catalog plan, or the terms snapshotted on the subscription if it was retired."""
        try:
            return self.catalog.get_plan(subscription.plan_id)
        except PlanNotFound:
            logger.warning(f"Plan {subscription.plan_id} left the catalog, using subscription {subscription.id} terms")
            return Plan(
                id=subscription.plan_id,
                name=subscription.plan_id,
                price=subscription.amount,
                currency=subscription.currency,
                duration_days=max(1, (subscription.end_date - subscription.start_date).days),
                features=frozenset(subscription.features),
            )

    async def _void_payment(self, payment: Payment, reason: str) -> None:
        logger.error(f"Payment {payment.id} completed but no subscription was activated: {reason}")
        await self.payments.update_status(payment.id, PaymentStatus.FAILED, failure_reason=reason)

    def _snapshot(
        self,
        plan: Plan,
        *,
        email: str,
        full_name: str,
        user: Optional[UserRecord],
        status: SubscriptionStatus,
        now,
        payment_id: Optional[str] = None,
        payment_method: Optional[str] = None,
        provider_order_id: Optional[str] = None,
    ) -> Subscription:
        """Copy the plan terms onto a new subscription so catalog edits never reach it."""
        return Subscription(
            user_id=user.id if user else None,
            email=email,
            full_name=full_name,
            plan_id=plan.id,
            amount=plan.price,
            currency=plan.currency,
            status=status,
            start_date=now,
            end_date=add_days(now, plan.duration_days),
            features=sorted(plan.features),
            payment_id=payment_id,
            payment_method=payment_method,
            provider_order_id=provider_order_id,
            created_at=now,
            updated_at=now,
        )
