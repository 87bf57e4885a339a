"""Admin views over subscriptions."""

from typing import Dict, Optional

from fastapi import APIRouter, Depends, Query

from jobportal.dependencies import get_subscription_repository
from jobportal.domains.subscriptions.repository import SubscriptionRepository
from jobportal.schemas.subscriptions import SubscriptionListResponse, SubscriptionRead, SubscriptionStatus
from jobportal.security import verify_security_admin

router = APIRouter(prefix="/admin", tags=["admin"], dependencies=[Depends(verify_security_admin)])


@router.get("/subscriptions", response_model=SubscriptionListResponse, response_model_by_alias=True)
async def list_subscriptions(
    status: Optional[SubscriptionStatus] = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    subscriptions: SubscriptionRepository = Depends(get_subscription_repository),
) -> SubscriptionListResponse:
    """List stored subscriptions as they are, newest first."""
    records, total = await subscriptions.list(status=status, skip=(page - 1) * limit, limit=limit)
    return SubscriptionListResponse(
        subscriptions=[SubscriptionRead.from_subscription(record) for record in records],
        total=total,
        page=page,
        limit=limit,
    )


@router.get("/subscriptions/count")
async def count_subscriptions(
    subscriptions: SubscriptionRepository = Depends(get_subscription_repository),
) -> Dict[str, int]:
    return await subscriptions.count_by_status()
