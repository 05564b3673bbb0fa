# backend/homebridge/routes/agent_billing.py
"""Agent onboarding fee payment, in-app or through Stripe Checkout."""

import asyncio

from fastapi import APIRouter, Depends

from ..api.dependencies.auth import require_agent
from ..api.dependencies.services import get_payment_initiation_service
from ..core.exceptions import DomainException
from ..principal import Principal
from ..schemas.payment import CheckoutSessionResponse, PaymentIntentResponse
from ..services.payment_initiation_service import PaymentInitiationService
from .utils import handle_domain_exception

router = APIRouter(prefix="/agent/billing", tags=["agent-billing"])


@router.post("/onboarding/intent", response_model=PaymentIntentResponse)
async def create_onboarding_intent(
    principal: Principal = Depends(require_agent),
    service: PaymentInitiationService = Depends(get_payment_initiation_service),
) -> PaymentIntentResponse:
    try:
        result = await asyncio.to_thread(service.create_onboarding_intent, principal)
    except DomainException as e:
        handle_domain_exception(e)
    return PaymentIntentResponse(**result)


@router.post("/onboarding/checkout", response_model=CheckoutSessionResponse)
async def create_onboarding_checkout(
    principal: Principal = Depends(require_agent),
    service: PaymentInitiationService = Depends(get_payment_initiation_service),
) -> CheckoutSessionResponse:
    try:
        result = await asyncio.to_thread(service.create_onboarding_checkout, principal)
    except DomainException as e:
        handle_domain_exception(e)
    return CheckoutSessionResponse(**result)
