# backend/homebridge/services/offer_service.py
"""
Offer sub-lifecycle: student accept/decline, payment-driven acceptance and
the expiry sweep. Only the latest offer on a booking is ever acted on.
"""

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy.orm import Session

from ..core.enums import PayMethod
from ..core.exceptions import ValidationException
from ..domain.offer_lines import CLOSED_OFFER_STATUSES, OfferStatus
from ..models.offer import Offer
from ..principal import Principal
from ..repositories.factory import RepositoryFactory
from .base import BaseService
from .booking_service import BookingService


class OfferService(BaseService):
    def __init__(self, db: Session, booking_service: Optional[BookingService] = None):
        super().__init__(db)
        self.booking_service = booking_service or BookingService(db)
        self.offer_repository = RepositoryFactory.create_offer_repository(db)

    def _latest_for_student(self, principal: Principal, booking_id: str) -> Optional[Offer]:
        booking = self.booking_service.get_owned_booking(principal, booking_id)
        return self.offer_repository.get_latest_for_booking(booking.id)

    @BaseService.measure_operation("accept_offer")
    def accept(self, principal: Principal, booking_id: str, now: Optional[datetime] = None) -> Offer:
        """Accept the current offer. Accepting an already-accepted offer changes nothing."""
        now = now or datetime.now(timezone.utc)
        offer = self._latest_for_student(principal, booking_id)
        if offer is None:
            raise ValidationException("No offer to accept.", code="NO_OFFER")
        if offer.status == OfferStatus.ACCEPTED.value:
            return offer
        if OfferStatus(offer.status) in CLOSED_OFFER_STATUSES:
            raise ValidationException("Offer is no longer open", code="OFFER_CLOSED")

        if offer.is_past_expiry(now):
            with self.transaction():
                offer.status = OfferStatus.EXPIRED.value
                self.offer_repository.flush()
            raise ValidationException("Offer is no longer open", code="OFFER_CLOSED")

        with self.transaction():
            offer.status = OfferStatus.ACCEPTED.value
            offer.accepted_at = now
            self.offer_repository.flush()
        self.logger.info(f"Offer {offer.id} accepted by {principal.id}")
        return offer

    @BaseService.measure_operation("decline_offer")
    def decline(self, principal: Principal, booking_id: str) -> Offer:
        offer = self._latest_for_student(principal, booking_id)
        if offer is None:
            raise ValidationException("No offer to decline.", code="NO_OFFER")
        if OfferStatus(offer.status) in CLOSED_OFFER_STATUSES:
            return offer
        if offer.paid_now_at is not None:
            raise ValidationException("Offer has already been paid", code="OFFER_PAID")

        with self.transaction():
            offer.status = OfferStatus.DECLINED.value
            offer.declined_at = datetime.now(timezone.utc)
            self.offer_repository.flush()
        self.logger.info(f"Offer {offer.id} declined by {principal.id}")
        return offer

    def apply_payment(
        self, offer_id: str, paid_at: datetime, method: str = PayMethod.CARD.value
    ) -> Optional[Offer]:
        """
        Record a due-now payment on the offer. Payment implies acceptance, even
        if the offer had expired. Joins the caller's transaction.
        """
        return self.offer_repository.mark_paid_now(offer_id, paid_at, method)

    @BaseService.measure_operation("expire_stale_offers")
    def expire_stale_offers(self, now: Optional[datetime] = None) -> int:
        now = now or datetime.now(timezone.utc)
        with self.transaction():
            expired = self.offer_repository.expire_sent_before(now)
        if expired:
            self.logger.info(f"Expired {expired} stale offers")
        return expired
