# backend/homebridge/routes/agent_applications.py
"""
Agent routes for approved applications: send an offer (confirm) or reject.

Admins may act on any application; agents only on bookings for their own
listings.
"""

import asyncio
import logging
from typing import Annotated

from fastapi import APIRouter, Depends, Path

from ..api.dependencies.auth import require_agent_or_admin
from ..api.dependencies.services import get_booking_service
from ..core.exceptions import DomainException
from ..principal import Principal
from ..schemas.booking import BookingResponse
from ..schemas.offer import AgentConfirmRequest, AgentRejectRequest, OfferResponse
from ..services.booking_service import BookingService
from .utils import ULID_PATH_PATTERN, handle_domain_exception

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/agent/applications", tags=["agent-applications"])

ApplicationId = Annotated[str, Path(description="Booking ULID", pattern=ULID_PATH_PATTERN)]


@router.post("/{booking_id}/confirm", response_model=OfferResponse)
async def confirm_application(
    payload: AgentConfirmRequest,
    booking_id: ApplicationId,
    principal: Principal = Depends(require_agent_or_admin),
    service: BookingService = Depends(get_booking_service),
) -> OfferResponse:
    try:
        offer = await asyncio.to_thread(
            service.agent_confirm,
            principal,
            booking_id,
            lines=payload.line_dicts(),
            currency=payload.currency,
            note=payload.note,
            expires_at=payload.expires_at,
        )
    except DomainException as e:
        handle_domain_exception(e)
    return OfferResponse.model_validate(offer)


@router.post("/{booking_id}/reject", response_model=BookingResponse)
async def reject_application(
    payload: AgentRejectRequest,
    booking_id: ApplicationId,
    principal: Principal = Depends(require_agent_or_admin),
    service: BookingService = Depends(get_booking_service),
) -> BookingResponse:
    try:
        booking = await asyncio.to_thread(
            service.agent_reject, principal, booking_id, payload.reason
        )
    except DomainException as e:
        handle_domain_exception(e)
    return BookingResponse.from_booking(booking)
