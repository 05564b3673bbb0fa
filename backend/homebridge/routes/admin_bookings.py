# backend/homebridge/routes/admin_bookings.py
"""Admin booking decisions and the offer expiry sweep."""

import asyncio
import logging
from typing import Annotated

from fastapi import APIRouter, Depends, Path

from ..api.dependencies.auth import require_admin
from ..api.dependencies.services import get_booking_service, get_offer_service
from ..core.exceptions import DomainException
from ..principal import Principal
from ..schemas.booking import BookingDecisionRequest, BookingResponse
from ..schemas.offer import OfferExpireResponse
from ..services.booking_service import BookingService
from ..services.offer_service import OfferService
from .utils import ULID_PATH_PATTERN, handle_domain_exception

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", tags=["admin-bookings"])


@router.post("/bookings/{booking_id}/decision", response_model=BookingResponse)
async def decide_booking(
    payload: BookingDecisionRequest,
    booking_id: Annotated[str, Path(description="Booking ULID", pattern=ULID_PATH_PATTERN)],
    principal: Principal = Depends(require_admin),
    service: BookingService = Depends(get_booking_service),
) -> BookingResponse:
    try:
        booking = await asyncio.to_thread(
            service.admin_decide, principal, booking_id, payload.decision
        )
    except DomainException as e:
        handle_domain_exception(e)
    return BookingResponse.from_booking(booking)


@router.post("/offers/expire", response_model=OfferExpireResponse)
async def expire_offers(
    principal: Principal = Depends(require_admin),
    service: OfferService = Depends(get_offer_service),
) -> OfferExpireResponse:
    try:
        expired = await asyncio.to_thread(service.expire_stale_offers)
    except DomainException as e:
        handle_domain_exception(e)
    logger.info(f"Offer sweep by {principal.id} expired {expired} offers")
    return OfferExpireResponse(expired=expired)
