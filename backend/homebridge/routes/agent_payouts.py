# backend/homebridge/routes/agent_payouts.py
"""
Agent payout routes.

Agents see and pay out their own earnings; admins pass ``agent_id``.
"""

import asyncio
from typing import Annotated, List, Optional

from fastapi import APIRouter, Depends, Path, Query, status

from ..api.dependencies.auth import require_agent_or_admin
from ..api.dependencies.services import get_payout_service
from ..core.exceptions import DomainException
from ..principal import Principal
from ..schemas.payout import (
    EligiblePaymentResponse,
    PayoutCreateRequest,
    PayoutDetailResponse,
    PayoutResponse,
    PayoutSummaryResponse,
)
from ..services.payout_service import PayoutService
from .utils import ULID_PATH_PATTERN, handle_domain_exception

router = APIRouter(prefix="/agent/payouts", tags=["agent-payouts"])

AgentIdQuery = Annotated[Optional[str], Query(description="Agent to act on (admins only)")]


@router.get("/summary", response_model=PayoutSummaryResponse)
async def payout_summary(
    agent_id: AgentIdQuery = None,
    principal: Principal = Depends(require_agent_or_admin),
    service: PayoutService = Depends(get_payout_service),
) -> PayoutSummaryResponse:
    try:
        summary = await asyncio.to_thread(service.summary, principal, agent_id)
    except DomainException as e:
        handle_domain_exception(e)
    return PayoutSummaryResponse(**summary)


@router.get("/eligible", response_model=List[EligiblePaymentResponse])
async def eligible_payments(
    agent_id: AgentIdQuery = None,
    principal: Principal = Depends(require_agent_or_admin),
    service: PayoutService = Depends(get_payout_service),
) -> List[EligiblePaymentResponse]:
    try:
        rows = await asyncio.to_thread(service.list_eligible_payments, principal, agent_id)
    except DomainException as e:
        handle_domain_exception(e)
    return [EligiblePaymentResponse.model_validate(row) for row in rows]


@router.get("", response_model=List[PayoutResponse])
async def list_payouts(
    agent_id: AgentIdQuery = None,
    principal: Principal = Depends(require_agent_or_admin),
    service: PayoutService = Depends(get_payout_service),
) -> List[PayoutResponse]:
    try:
        payouts = await asyncio.to_thread(service.list_payouts, principal, agent_id)
    except DomainException as e:
        handle_domain_exception(e)
    return [PayoutResponse.model_validate(payout) for payout in payouts]


@router.get("/{payout_id}", response_model=PayoutDetailResponse)
async def get_payout(
    payout_id: Annotated[str, Path(description="Payout ULID", pattern=ULID_PATH_PATTERN)],
    agent_id: AgentIdQuery = None,
    principal: Principal = Depends(require_agent_or_admin),
    service: PayoutService = Depends(get_payout_service),
) -> PayoutDetailResponse:
    try:
        payout = await asyncio.to_thread(service.get_payout, principal, payout_id, agent_id)
    except DomainException as e:
        handle_domain_exception(e)
    return PayoutDetailResponse.model_validate(payout)


@router.post("", response_model=PayoutDetailResponse, status_code=status.HTTP_201_CREATED)
async def create_payout(
    payload: PayoutCreateRequest,
    principal: Principal = Depends(require_agent_or_admin),
    service: PayoutService = Depends(get_payout_service),
) -> PayoutDetailResponse:
    try:
        payout = await asyncio.to_thread(
            service.create_payout,
            principal,
            payload.agent_id,
            payment_ids=payload.payment_ids,
            note=payload.note,
            period_start=payload.period_start,
            period_end=payload.period_end,
            fee_cents=payload.fee_cents,
        )
    except DomainException as e:
        handle_domain_exception(e)
    return PayoutDetailResponse.model_validate(payout)
