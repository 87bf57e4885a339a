"""API endpoints for plans, purchases and subscription status."""

import logging
from typing import List, Optional

from fastapi import APIRouter, BackgroundTasks, Depends, Query, status

from jobportal.dependencies import (
    get_entitlement_engine,
    get_lifecycle_controller,
    get_notifier,
    get_plan_catalog,
)
from jobportal.schemas.identity import ByUserId, identity_from
from jobportal.schemas.payments import PaymentRead
from jobportal.schemas.plans import PlanRead
from jobportal.schemas.subscriptions import (
    OrderCreate,
    OrderResponse,
    OrderVerify,
    PurchaseResponse,
    SubscriptionCreate,
    SubscriptionRead,
    SubscriptionStatusResponse,
    SubscriptionSummary,
)
from jobportal.security import Caller, authorize_identity, get_caller
from jobportal.services.entitlement import EntitlementEngine
from jobportal.services.lifecycle import PurchaseResult, SubscriptionLifecycleController
from jobportal.services.notifications import EmailNotifier, send_subscription_receipt
from jobportal.services.plan_catalog import PlanCatalog

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/subscription", tags=["subscriptions"])


def _purchase_response(
    result: PurchaseResult, background_tasks: BackgroundTasks, notifier: EmailNotifier
) -> PurchaseResponse:
    background_tasks.add_task(send_subscription_receipt, notifier, result.plan, result.subscription, result.payment)
    return PurchaseResponse(
        subscription=SubscriptionRead.from_subscription(result.subscription),
        payment=PaymentRead.from_payment(result.payment),
    )


@router.get("/plans", response_model=List[PlanRead], response_model_by_alias=True)
async def list_plans(catalog: PlanCatalog = Depends(get_plan_catalog)) -> List[PlanRead]:
    """List every plan available for purchase."""
    return [PlanRead.from_plan(plan) for plan in catalog.list_plans()]


@router.get("/status", response_model=SubscriptionStatusResponse, response_model_by_alias=True)
async def subscription_status(
    user_id: Optional[str] = Query(None, alias="userId"),
    email: Optional[str] = Query(None),
    caller: Caller = Depends(get_caller),
    engine: EntitlementEngine = Depends(get_entitlement_engine),
) -> SubscriptionStatusResponse:
    """Report whether the user or email currently has an active subscription."""
    identity = identity_from(user_id, email)
    authorize_identity(caller, identity)

    view = await engine.get_status(identity)
    if view.subscription is None:
        return SubscriptionStatusResponse(has_active_subscription=False)

    subscription = view.subscription
    return SubscriptionStatusResponse(
        has_active_subscription=view.has_active_subscription,
        subscription=SubscriptionSummary(
            id=subscription.id,
            plan=subscription.plan_id,
            status=subscription.status,
            start_date=subscription.start_date,
            end_date=subscription.end_date,
            features=subscription.features,
            days_remaining=view.days_remaining,
        ),
    )


@router.post(
    "/create",
    response_model=PurchaseResponse,
    response_model_by_alias=True,
    status_code=status.HTTP_201_CREATED,
)
async def create_subscription(
    request: SubscriptionCreate,
    background_tasks: BackgroundTasks,
    controller: SubscriptionLifecycleController = Depends(get_lifecycle_controller),
    notifier: EmailNotifier = Depends(get_notifier),
) -> PurchaseResponse:
    """Charge for a plan and activate the subscription immediately."""
    result = await controller.create_subscription(request)
    return _purchase_response(result, background_tasks, notifier)


@router.post(
    "/order",
    response_model=OrderResponse,
    response_model_by_alias=True,
    status_code=status.HTTP_201_CREATED,
)
async def create_order(
    request: OrderCreate,
    controller: SubscriptionLifecycleController = Depends(get_lifecycle_controller),
) -> OrderResponse:
    """Open a provider order and a pending subscription for it."""
    order = await controller.create_order(request)
    return OrderResponse(
        order_id=order.order_id,
        subscription_id=order.subscription.id,
        amount=order.subscription.amount,
        currency=order.subscription.currency,
        key_id=order.key_id,
        user_id=order.user_id,
        plan_details=PlanRead.from_plan(order.plan),
    )


@router.post("/verify", response_model=PurchaseResponse, response_model_by_alias=True)
async def verify_payment(
    request: OrderVerify,
    background_tasks: BackgroundTasks,
    controller: SubscriptionLifecycleController = Depends(get_lifecycle_controller),
    notifier: EmailNotifier = Depends(get_notifier),
) -> PurchaseResponse:
    """Verify the provider signature for a paid order and activate its subscription."""
    result = await controller.verify_payment(request)
    return _purchase_response(result, background_tasks, notifier)


@router.post("/{subscription_id}/cancel", response_model=SubscriptionRead, response_model_by_alias=True)
async def cancel_subscription(
    subscription_id: str,
    user_id: Optional[str] = Query(None, alias="userId"),
    email: Optional[str] = Query(None),
    caller: Caller = Depends(get_caller),
    controller: SubscriptionLifecycleController = Depends(get_lifecycle_controller),
) -> SubscriptionRead:
    """Cancel a pending or active subscription owned by the caller."""
    if user_id or email or caller.user is None:
        identity = identity_from(user_id, email)
    else:
        identity = ByUserId(str(caller.user.id))
    authorize_identity(caller, identity)

    cancelled = await controller.cancel_subscription(subscription_id, identity)
    return SubscriptionRead.from_subscription(cancelled)


@router.get("/history", response_model=List[SubscriptionRead], response_model_by_alias=True)
async def subscription_history(
    user_id: Optional[str] = Query(None, alias="userId"),
    email: Optional[str] = Query(None),
    caller: Caller = Depends(get_caller),
    controller: SubscriptionLifecycleController = Depends(get_lifecycle_controller),
) -> List[SubscriptionRead]:
    """Every subscription for the user or email, newest first."""
    identity = identity_from(user_id, email)
    authorize_identity(caller, identity)

    subscriptions = await controller.subscription_history(identity)
    return [SubscriptionRead.from_subscription(subscription) for subscription in subscriptions]
