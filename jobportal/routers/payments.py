"""API endpoints for payment records."""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query

from jobportal.dependencies import get_payment_repository
from jobportal.domains.subscriptions.repository import PaymentRepository
from jobportal.schemas.identity import ByEmail
from jobportal.schemas.payments import Pagination, PaymentHistoryResponse, PaymentRead
from jobportal.security import Caller, authorize_identity, get_caller
from jobportal.utils.errors import Forbidden

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/payments", tags=["payments"])


@router.get("/history", response_model=PaymentHistoryResponse, response_model_by_alias=True)
async def payment_history(
    email: Optional[str] = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    caller: Caller = Depends(get_caller),
    payments: PaymentRepository = Depends(get_payment_repository),
) -> PaymentHistoryResponse:
    """Payments newest first. Without an email only trusted callers may list everyone's."""
    identity = ByEmail(email) if email and email.strip() else None
    if identity is None:
        if not caller.trusted:
            raise Forbidden("Only administrators may list all payments")
    else:
        authorize_identity(caller, identity)

    records, total = await payments.history(
        email=identity.email if identity else None,
        skip=(page - 1) * limit,
        limit=limit,
    )
    return PaymentHistoryResponse(
        payments=[PaymentRead.from_payment(payment) for payment in records],
        pagination=Pagination.build(total, page, limit),
    )
