# backend/homebridge/routes/agent_stripe_connect.py
"""Agent Stripe Connect onboarding: account creation, hosted links and status."""

import asyncio

from fastapi import APIRouter, Depends

from ..api.dependencies.auth import require_agent
from ..api.dependencies.services import get_connect_service
from ..core.exceptions import DomainException
from ..principal import Principal
from ..schemas.payment import CheckoutSessionResponse, ConnectStatusResponse
from ..services.connect_service import ConnectService
from .utils import handle_domain_exception

router = APIRouter(prefix="/agent/stripe/connect", tags=["agent-stripe-connect"])


@router.post("/start", response_model=CheckoutSessionResponse)
async def start_onboarding(
    principal: Principal = Depends(require_agent),
    service: ConnectService = Depends(get_connect_service),
) -> CheckoutSessionResponse:
    try:
        result = await asyncio.to_thread(service.start_onboarding, principal)
    except DomainException as e:
        handle_domain_exception(e)
    return CheckoutSessionResponse(**result)


@router.post("/link", response_model=CheckoutSessionResponse)
async def update_link(
    principal: Principal = Depends(require_agent),
    service: ConnectService = Depends(get_connect_service),
) -> CheckoutSessionResponse:
    try:
        result = await asyncio.to_thread(service.update_link, principal)
    except DomainException as e:
        handle_domain_exception(e)
    return CheckoutSessionResponse(**result)


@router.get("/status", response_model=ConnectStatusResponse, response_model_exclude_none=True)
async def account_status(
    principal: Principal = Depends(require_agent),
    service: ConnectService = Depends(get_connect_service),
) -> ConnectStatusResponse:
    try:
        result = await asyncio.to_thread(service.account_status, principal)
    except DomainException as e:
        handle_domain_exception(e)
    return ConnectStatusResponse(**result)
