# backend/homebridge/routes/admin_refunds.py
"""Admin refund routes: open a request against a payment and settle it."""

import asyncio
from typing import Annotated

from fastapi import APIRouter, Depends, Path, status

from ..api.dependencies.auth import require_admin
from ..api.dependencies.services import get_refund_service
from ..core.exceptions import DomainException
from ..principal import Principal
from ..schemas.refund import AdminRefundCreate, AdminRefundUpdate, RefundResponse
from ..services.refund_service import RefundService
from .utils import ULID_PATH_PATTERN, handle_domain_exception

router = APIRouter(prefix="/admin/refunds", tags=["admin-refunds"])


@router.post("", response_model=RefundResponse, status_code=status.HTTP_201_CREATED)
async def create_refund(
    payload: AdminRefundCreate,
    principal: Principal = Depends(require_admin),
    service: RefundService = Depends(get_refund_service),
) -> RefundResponse:
    try:
        refund = await asyncio.to_thread(
            service.admin_create_refund,
            principal,
            payload.payment_id,
            amount_cents=payload.amount_cents,
            reason=payload.reason,
        )
    except DomainException as e:
        handle_domain_exception(e)
    return RefundResponse.model_validate(refund)


@router.patch("/{refund_id}", response_model=RefundResponse)
async def update_refund(
    payload: AdminRefundUpdate,
    refund_id: Annotated[str, Path(description="Refund request ULID", pattern=ULID_PATH_PATTERN)],
    principal: Principal = Depends(require_admin),
    service: RefundService = Depends(get_refund_service),
) -> RefundResponse:
    try:
        if payload.action == "approve":
            refund = await asyncio.to_thread(
                service.approve_refund, principal, refund_id, payload.note
            )
        elif payload.action == "decline":
            refund = await asyncio.to_thread(
                service.decline_refund, principal, refund_id, payload.note
            )
        else:
            refund = await asyncio.to_thread(
                service.mark_refunded_manually,
                principal,
                refund_id,
                amount_cents=payload.amount_cents,
                external_ref=payload.external_ref,
                note=payload.note,
            )
    except DomainException as e:
        handle_domain_exception(e)
    return RefundResponse.model_validate(refund)
