# backend/homebridge/services/payment_initiation_service.py
"""
Creates Stripe PaymentIntents and Checkout Sessions.

Nothing is written locally here: the ledger and the booking/offer state
only change when the corresponding webhook arrives. Every object carries a
metadata tag so the reconciler can route it regardless of which Stripe
event delivers it.
"""

from typing import Any, Dict, Optional

from sqlalchemy.orm import Session

from ..core.config import Settings, settings as default_settings
from ..core.enums import PaymentPurpose
from ..core.exceptions import ValidationException
from ..models.booking import Booking
from ..models.offer import Offer
from ..principal import Principal
from ..repositories.factory import RepositoryFactory
from .base import BaseService
from .booking_service import BookingService
from .stripe_gateway import StripeGateway


class PaymentInitiationService(BaseService):
    def __init__(
        self,
        db: Session,
        gateway: StripeGateway,
        booking_service: Optional[BookingService] = None,
        config: Optional[Settings] = None,
    ):
        super().__init__(db)
        self.gateway = gateway
        self.settings = config or default_settings
        self.booking_service = booking_service or BookingService(db)
        self.agent_profile_repository = RepositoryFactory.create_agent_profile_repository(db)

    # ----------------------------------------------------------------- helpers

    def app_fee_cents(self, booking: Booking) -> int:
        if booking.application_fee_cents is not None:
            return int(booking.application_fee_cents)
        return self.settings.student_app_fee_cents

    def _payable_booking(self, principal: Principal, booking_id: str) -> Booking:
        booking = self.booking_service.get_owned_booking(principal, booking_id)
        if booking.fee_paid_at is not None:
            raise ValidationException("Application fee already paid", code="FEE_ALREADY_PAID")
        return booking

    def _payable_offer(self, principal: Principal, booking_id: str) -> tuple[Booking, Offer]:
        booking = self.booking_service.get_owned_booking(principal, booking_id)
        offer = self.booking_service.latest_offer(booking.id)
        if offer is None or offer.due_now_cents <= 0:
            raise ValidationException("No payable amount due now", code="NOTHING_DUE")
        if offer.paid_now_at is not None:
            raise ValidationException("Offer has already been paid", code="OFFER_PAID")
        return booking, offer

    def _intent_response(self, intent: Dict[str, Any], amount_cents: int, currency: str) -> Dict[str, Any]:
        return {
            "client_secret": intent["client_secret"],
            "publishable_key": self.gateway.publishable_key,
            "amount_cents": amount_cents,
            "currency": currency.upper(),
        }

    def _booking_url(self, booking_id: str, suffix: str = "") -> str:
        return f"{self.settings.frontend_url}/dashboard/student/bookings/{booking_id}{suffix}"

    # ---------------------------------------------------------------- app fee

    @BaseService.measure_operation("create_app_fee_intent")
    def create_app_fee_intent(self, principal: Principal, booking_id: str) -> Dict[str, Any]:
        booking = self._payable_booking(principal, booking_id)
        amount = self.app_fee_cents(booking)
        currency = self.gateway.default_currency
        intent = self.gateway.create_payment_intent(
            amount_cents=amount,
            currency=currency,
            metadata={
                "type": PaymentPurpose.STUDENT_APP_FEE.value,
                "userId": principal.id,
                "bookingId": booking.id,
            },
            receipt_email=principal.email,
        )
        return self._intent_response(intent, amount, currency)

    @BaseService.measure_operation("create_app_fee_checkout")
    def create_app_fee_checkout(self, principal: Principal, booking_id: str) -> Dict[str, Any]:
        booking = self._payable_booking(principal, booking_id)
        session = self.gateway.create_checkout_session(
            amount_cents=self.app_fee_cents(booking),
            currency=self.gateway.default_currency,
            product_name="Application/Registration Fee",
            metadata={
                "type": PaymentPurpose.STUDENT_APP_FEE.value,
                "userId": principal.id,
                "bookingId": booking.id,
            },
            success_url=self._booking_url(booking.id, "?paid=1"),
            cancel_url=self._booking_url(booking.id, "/pay/app-fee"),
            customer_email=principal.email,
        )
        return {"url": session["url"]}

    # ------------------------------------------------------------------ offer

    @BaseService.measure_operation("create_offer_intent")
    def create_offer_intent(self, principal: Principal, booking_id: str) -> Dict[str, Any]:
        booking, offer = self._payable_offer(principal, booking_id)
        intent = self.gateway.create_payment_intent(
            amount_cents=offer.due_now_cents,
            currency=offer.currency,
            metadata={
                "type": PaymentPurpose.STUDENT_OFFER_NOW.value,
                "userId": principal.id,
                "bookingId": booking.id,
                "offerId": offer.id,
            },
            receipt_email=principal.email,
        )
        return self._intent_response(intent, offer.due_now_cents, offer.currency)

    @BaseService.measure_operation("create_offer_checkout")
    def create_offer_checkout(self, principal: Principal, booking_id: str) -> Dict[str, Any]:
        booking, offer = self._payable_offer(principal, booking_id)
        session = self.gateway.create_checkout_session(
            amount_cents=offer.due_now_cents,
            currency=offer.currency,
            product_name="Housing offer - due now",
            metadata={
                "type": PaymentPurpose.STUDENT_OFFER_NOW.value,
                "userId": principal.id,
                "bookingId": booking.id,
                "offerId": offer.id,
            },
            success_url=self._booking_url(booking.id, "?offerPaid=1"),
            cancel_url=self._booking_url(booking.id, "/pay/offer"),
            customer_email=principal.email,
        )
        return {"url": session["url"]}

    # ------------------------------------------------------------- onboarding

    @BaseService.measure_operation("create_onboarding_intent")
    def create_onboarding_intent(self, principal: Principal) -> Dict[str, Any]:
        profile = self.agent_profile_repository.get_by_id(principal.id)
        if profile is not None and profile.onboarding_paid_at is not None:
            raise ValidationException("Onboarding fee already paid", code="ONBOARDING_PAID")
        amount = self.settings.agent_onboarding_fee_cents
        currency = self.gateway.default_currency
        intent = self.gateway.create_payment_intent(
            amount_cents=amount,
            currency=currency,
            metadata={"type": PaymentPurpose.AGENT_ONBOARDING.value, "userId": principal.id},
            receipt_email=principal.email,
        )
        return self._intent_response(intent, amount, currency)

    @BaseService.measure_operation("create_onboarding_checkout")
    def create_onboarding_checkout(self, principal: Principal) -> Dict[str, Any]:
        profile = self.agent_profile_repository.get_by_id(principal.id)
        if profile is not None and profile.onboarding_paid_at is not None:
            raise ValidationException("Onboarding fee already paid", code="ONBOARDING_PAID")
        settings_url = f"{self.settings.frontend_url}/dashboard/agent/settings"
        session = self.gateway.create_checkout_session(
            amount_cents=self.settings.agent_onboarding_fee_cents,
            currency=self.gateway.default_currency,
            product_name="Agent Onboarding Fee",
            metadata={"type": PaymentPurpose.AGENT_ONBOARDING.value, "userId": principal.id},
            success_url=f"{settings_url}?paid=1",
            cancel_url=f"{settings_url}?canceled=1",
            customer_email=principal.email,
        )
        return {"url": session["url"]}
