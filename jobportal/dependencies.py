"""FastAPI dependency providers wiring the services to their stores."""

from functools import lru_cache

from fastapi import Depends

from jobportal.config import settings
from jobportal.domains.subscriptions.repository import (
    BeaniePaymentRepository,
    BeanieSubscriptionRepository,
    PaymentRepository,
    SubscriptionRepository,
)
from jobportal.domains.users.repository import BeanieUserDirectory, UserDirectory
from jobportal.services.entitlement import EntitlementEngine
from jobportal.services.lifecycle import SubscriptionLifecycleController
from jobportal.services.notifications import EmailNotifier, LoggingEmailNotifier
from jobportal.services.payment_gateway import PaymentGateway, build_payment_gateway
from jobportal.services.plan_catalog import DEFAULT_PLANS, PlanCatalog


@lru_cache
def get_plan_catalog() -> PlanCatalog:
    return PlanCatalog(DEFAULT_PLANS, default_plan_id=settings.payments.default_plan_id)


@lru_cache
def get_payment_gateway() -> PaymentGateway:
    return build_payment_gateway(settings.payments)


def get_subscription_repository() -> SubscriptionRepository:
    return BeanieSubscriptionRepository()


def get_payment_repository() -> PaymentRepository:
    return BeaniePaymentRepository()


def get_user_directory() -> UserDirectory:
    return BeanieUserDirectory()


def get_notifier() -> EmailNotifier:
    return LoggingEmailNotifier()


def get_entitlement_engine(
    subscriptions: SubscriptionRepository = Depends(get_subscription_repository),
    users: UserDirectory = Depends(get_user_directory),
) -> EntitlementEngine:
    return EntitlementEngine(subscriptions, users)


def get_lifecycle_controller(
    catalog: PlanCatalog = Depends(get_plan_catalog),
    subscriptions: SubscriptionRepository = Depends(get_subscription_repository),
    payments: PaymentRepository = Depends(get_payment_repository),
    entitlement: EntitlementEngine = Depends(get_entitlement_engine),
    gateway: PaymentGateway = Depends(get_payment_gateway),
    users: UserDirectory = Depends(get_user_directory),
) -> SubscriptionLifecycleController:
    return SubscriptionLifecycleController(
        catalog,
        subscriptions,
        payments,
        entitlement,
        gateway,
        users,
        order_secret=settings.payments.razorpay_key_secret.get_secret_value(),
        key_id=settings.payments.razorpay_key_id,
    )
