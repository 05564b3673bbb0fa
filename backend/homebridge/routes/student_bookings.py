# backend/homebridge/routes/student_bookings.py
"""
Student booking routes: create, read, update, submit, offer responses, payment
initiation and refund requests.

Every handler offloads the synchronous service call with
``asyncio.to_thread`` and converts domain errors at the boundary.
"""

import asyncio
import logging
from typing import Annotated, List

from fastapi import APIRouter, Depends, Path, status

from ..api.dependencies.auth import require_student
from ..api.dependencies.services import (
    get_booking_service,
    get_offer_service,
    get_payment_initiation_service,
    get_refund_service,
)
from ..core.exceptions import DomainException
from ..principal import Principal
from ..schemas.booking import BookingCreate, BookingResponse, BookingUpdate
from ..schemas.offer import OfferResponse
from ..schemas.payment import CheckoutSessionResponse, PaymentIntentResponse
from ..schemas.refund import RefundResponse, StudentRefundRequest
from ..services.booking_service import BookingService
from ..services.offer_service import OfferService
from ..services.payment_initiation_service import PaymentInitiationService
from ..services.refund_service import RefundService
from .utils import ULID_PATH_PATTERN, handle_domain_exception

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/student/bookings", tags=["student-bookings"])

BookingId = Annotated[str, Path(description="Booking ULID", pattern=ULID_PATH_PATTERN)]


def _booking_response(service: BookingService, booking) -> BookingResponse:
    return BookingResponse.from_booking(booking, service.latest_offer(booking.id))


@router.post("", response_model=BookingResponse, status_code=status.HTTP_201_CREATED)
async def create_booking(
    payload: BookingCreate,
    principal: Principal = Depends(require_student),
    service: BookingService = Depends(get_booking_service),
) -> BookingResponse:
    try:
        booking = await asyncio.to_thread(
            service.create_booking,
            principal,
            listing_id=payload.listing_id,
            check_in=payload.check_in.isoformat(),
            check_out=payload.check_out.isoformat(),
            note=payload.note,
            doc_ids=payload.doc_ids,
        )
    except DomainException as e:
        handle_domain_exception(e)
    return BookingResponse.from_booking(booking)


@router.get("", response_model=List[BookingResponse])
async def list_bookings(
    principal: Principal = Depends(require_student),
    service: BookingService = Depends(get_booking_service),
) -> List[BookingResponse]:
    def _load() -> List[BookingResponse]:
        return [_booking_response(service, b) for b in service.list_bookings(principal)]

    return await asyncio.to_thread(_load)


@router.get("/{booking_id}", response_model=BookingResponse)
async def get_booking(
    booking_id: BookingId,
    principal: Principal = Depends(require_student),
    service: BookingService = Depends(get_booking_service),
) -> BookingResponse:
    def _load() -> BookingResponse:
        return _booking_response(service, service.get_owned_booking(principal, booking_id))

    try:
        return await asyncio.to_thread(_load)
    except DomainException as e:
        handle_domain_exception(e)


@router.patch("/{booking_id}", response_model=BookingResponse)
async def update_booking(
    booking_id: BookingId,
    payload: BookingUpdate,
    principal: Principal = Depends(require_student),
    service: BookingService = Depends(get_booking_service),
) -> BookingResponse:
    def _update() -> BookingResponse:
        booking = service.update_booking(principal, booking_id, payload.to_changes())
        return _booking_response(service, booking)

    try:
        return await asyncio.to_thread(_update)
    except DomainException as e:
        handle_domain_exception(e)


@router.post("/{booking_id}/submit", response_model=BookingResponse)
async def submit_booking(
    booking_id: BookingId,
    principal: Principal = Depends(require_student),
    service: BookingService = Depends(get_booking_service),
) -> BookingResponse:
    try:
        booking = await asyncio.to_thread(service.submit, principal, booking_id)
    except DomainException as e:
        handle_domain_exception(e)
    return BookingResponse.from_booking(booking)


# ---------------------------------------------------------------------- offer


@router.post("/{booking_id}/offer/accept", response_model=OfferResponse)
async def accept_offer(
    booking_id: BookingId,
    principal: Principal = Depends(require_student),
    service: OfferService = Depends(get_offer_service),
) -> OfferResponse:
    try:
        offer = await asyncio.to_thread(service.accept, principal, booking_id)
    except DomainException as e:
        handle_domain_exception(e)
    return OfferResponse.model_validate(offer)


@router.post("/{booking_id}/offer/decline", response_model=OfferResponse)
async def decline_offer(
    booking_id: BookingId,
    principal: Principal = Depends(require_student),
    service: OfferService = Depends(get_offer_service),
) -> OfferResponse:
    try:
        offer = await asyncio.to_thread(service.decline, principal, booking_id)
    except DomainException as e:
        handle_domain_exception(e)
    return OfferResponse.model_validate(offer)


# ------------------------------------------------------------------- payments


@router.post("/{booking_id}/pay/app-fee/intent", response_model=PaymentIntentResponse)
async def create_app_fee_intent(
    booking_id: BookingId,
    principal: Principal = Depends(require_student),
    service: PaymentInitiationService = Depends(get_payment_initiation_service),
) -> PaymentIntentResponse:
    try:
        result = await asyncio.to_thread(service.create_app_fee_intent, principal, booking_id)
    except DomainException as e:
        handle_domain_exception(e)
    return PaymentIntentResponse(**result)


@router.post("/{booking_id}/pay/app-fee/checkout", response_model=CheckoutSessionResponse)
async def create_app_fee_checkout(
    booking_id: BookingId,
    principal: Principal = Depends(require_student),
    service: PaymentInitiationService = Depends(get_payment_initiation_service),
) -> CheckoutSessionResponse:
    try:
        result = await asyncio.to_thread(service.create_app_fee_checkout, principal, booking_id)
    except DomainException as e:
        handle_domain_exception(e)
    return CheckoutSessionResponse(**result)


@router.post("/{booking_id}/pay/offer/intent", response_model=PaymentIntentResponse)
async def create_offer_intent(
    booking_id: BookingId,
    principal: Principal = Depends(require_student),
    service: PaymentInitiationService = Depends(get_payment_initiation_service),
) -> PaymentIntentResponse:
    try:
        result = await asyncio.to_thread(service.create_offer_intent, principal, booking_id)
    except DomainException as e:
        handle_domain_exception(e)
    return PaymentIntentResponse(**result)


@router.post("/{booking_id}/pay/offer/checkout", response_model=CheckoutSessionResponse)
async def create_offer_checkout(
    booking_id: BookingId,
    principal: Principal = Depends(require_student),
    service: PaymentInitiationService = Depends(get_payment_initiation_service),
) -> CheckoutSessionResponse:
    try:
        result = await asyncio.to_thread(service.create_offer_checkout, principal, booking_id)
    except DomainException as e:
        handle_domain_exception(e)
    return CheckoutSessionResponse(**result)


# -------------------------------------------------------------------- refunds


@router.post(
    "/{booking_id}/refund/request",
    response_model=RefundResponse,
    status_code=status.HTTP_201_CREATED,
)
async def request_refund(
    payload: StudentRefundRequest,
    booking_id: BookingId,
    principal: Principal = Depends(require_student),
    service: RefundService = Depends(get_refund_service),
) -> RefundResponse:
    try:
        refund = await asyncio.to_thread(
            service.request_refund,
            principal,
            booking_id,
            reason=payload.reason,
            amount_cents=payload.amount_cents,
        )
    except DomainException as e:
        handle_domain_exception(e)
    return RefundResponse.model_validate(refund)
