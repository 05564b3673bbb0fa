# backend/homebridge/services/booking_service.py
"""
Booking Service for HomeBridge

Owns the booking state machine: creation, submission, admin decisions and
agent confirm/reject. Flag-driven status changes all go through
``Booking.refresh_status`` (which wraps ``derive_booking_status``); the
explicit transitions below set status directly.

Notifications are sent after the transaction commits and never affect the
outcome of the operation.
"""

from datetime import datetime, timezone
import logging
from typing import Any, Dict, List, Mapping, Optional, Sequence

from sqlalchemy.orm import Session

from ..core.exceptions import ForbiddenException, NotFoundException, ValidationException
from ..domain.booking_status import DECISION_STATUSES, BookingStatus
from ..domain.offer_lines import DueType, OfferStatus
from ..models.booking import Booking
from ..models.listing import Listing
from ..models.offer import Offer
from ..principal import Principal
from ..repositories.factory import RepositoryFactory
from .base import BaseService
from .notification_service import NotificationService

logger = logging.getLogger(__name__)


_CLOSED_STATUSES = {status.value for status in DECISION_STATUSES} | {BookingStatus.CANCELLED.value}


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _normalize_lines(lines: Sequence[Mapping[str, Any]]) -> List[Dict[str, Any]]:
    if not lines:
        raise ValidationException(
            "Offer must have at least one line item", code="OFFER_LINES_REQUIRED"
        )
    normalized = []
    for index, line in enumerate(lines):
        due_type = str(line.get("dueType") or "").upper()
        if due_type not in (DueType.NOW.value, DueType.LATER.value):
            raise ValidationException(
                "dueType must be NOW or LATER", details={"line": index, "dueType": due_type}
            )
        amount = line.get("amountCents")
        if not isinstance(amount, int) or isinstance(amount, bool) or amount < 0:
            raise ValidationException(
                "amountCents must be a non-negative integer", details={"line": index}
            )
        normalized.append(
            {
                "description": str(line.get("description") or "").strip(),
                "amountCents": amount,
                "dueType": due_type,
            }
        )
    return normalized


class BookingService(BaseService):
    """Service layer for the booking state machine."""

    def __init__(self, db: Session, notification_service: Optional[NotificationService] = None):
        super().__init__(db)
        self.notification_service = notification_service
        self.booking_repository = RepositoryFactory.create_booking_repository(db)
        self.offer_repository = RepositoryFactory.create_offer_repository(db)
        self.document_repository = RepositoryFactory.create_document_repository(db)
        self.listing_repository = RepositoryFactory.create_base_repository(db, Listing)

    # ------------------------------------------------------------------ access

    def get_owned_booking(self, principal: Principal, booking_id: str) -> Booking:
        """Load a booking the calling student owns (404 missing, 403 someone else's)."""
        booking = self.booking_repository.get_by_id(booking_id)
        if booking is None:
            raise NotFoundException("Booking not found", code="BOOKING_NOT_FOUND")
        if booking.student_id != principal.id:
            raise ForbiddenException("You do not have access to this booking")
        return booking

    def get_booking_for_agent(self, principal: Principal, booking_id: str) -> Booking:
        """Load a booking on one of the agent's listings; admins see every booking."""
        booking = self.booking_repository.get_with_listing(booking_id)
        if booking is None:
            raise NotFoundException("Booking not found", code="BOOKING_NOT_FOUND")
        if not principal.is_admin and (
            booking.listing is None or booking.listing.agent_id != principal.id
        ):
            raise ForbiddenException("This application is not on one of your listings")
        return booking

    def latest_offer(self, booking_id: str) -> Optional[Offer]:
        return self.offer_repository.get_latest_for_booking(booking_id)

    # ----------------------------------------------------------------- student

    @BaseService.measure_operation("create_booking")
    def create_booking(
        self,
        principal: Principal,
        *,
        listing_id: str,
        check_in: str,
        check_out: str,
        note: Optional[str] = None,
        doc_ids: Optional[Sequence[str]] = None,
    ) -> Booking:
        if self.listing_repository.get_by_id(listing_id) is None:
            raise NotFoundException("Listing not found", code="LISTING_NOT_FOUND")

        requested = self._owned_doc_ids(principal, doc_ids or [])

        with self.transaction():
            booking = self.booking_repository.create(
                student_id=principal.id,
                listing_id=listing_id,
                check_in=check_in,
                check_out=check_out,
                note=(note or "").strip() or None,
                doc_ids=requested,
                docs_updated_at=_now() if requested else None,
                status=BookingStatus.PENDING_PAYMENT.value,
            )
            booking.refresh_status()

        self.logger.info(f"Booking {booking.id} created by student {principal.id}")
        return booking

    def _owned_doc_ids(self, principal: Principal, doc_ids: Sequence[str]) -> List[str]:
        requested = list(dict.fromkeys(doc_ids))
        if requested:
            owned = set(self.document_repository.ids_for_user(principal.id))
            unknown = [doc_id for doc_id in requested if doc_id not in owned]
            if unknown:
                raise ValidationException(
                    "Unknown document ids", code="UNKNOWN_DOCUMENTS", details={"doc_ids": unknown}
                )
        return requested

    @BaseService.measure_operation("update_booking")
    def update_booking(
        self, principal: Principal, booking_id: str, changes: Mapping[str, Any]
    ) -> Booking:
        """
        Apply a partial update from the owning student.

        ``changes`` holds only the fields the caller sent (``check_in``,
        ``check_out``, ``note``, ``doc_ids``). A new document set stamps
        ``docs_updated_at`` and status is re-derived; sticky statuses stay put.
        """
        booking = self.get_owned_booking(principal, booking_id)

        check_in = changes.get("check_in", booking.check_in)
        check_out = changes.get("check_out", booking.check_out)
        if check_out <= check_in:
            raise ValidationException("check_out must be after check_in", code="INVALID_DATES")
        doc_ids = None
        if "doc_ids" in changes:
            doc_ids = self._owned_doc_ids(principal, changes["doc_ids"] or [])

        with self.transaction():
            booking.check_in = check_in
            booking.check_out = check_out
            if "note" in changes:
                booking.note = (changes["note"] or "").strip() or None
            if doc_ids is not None:
                booking.doc_ids = doc_ids
                booking.docs_updated_at = _now()
            booking.refresh_status()
            self.booking_repository.flush()

        self.logger.info(f"Booking {booking.id} updated by student {principal.id}")
        return booking

    def list_bookings(self, principal: Principal) -> List[Booking]:
        return self.booking_repository.list_for_student(principal.id)

    @BaseService.measure_operation("submit_booking")
    def submit(self, principal: Principal, booking_id: str) -> Booking:
        """
        Submit a booking for admin review.

        Requires the application fee to be paid and at least one attached
        document; otherwise nothing changes. Resubmitting a booking already
        under review is a no-op, and decided or cancelled bookings are refused.
        """
        booking = self.get_owned_booking(principal, booking_id)
        if booking.status == BookingStatus.UNDER_REVIEW.value:
            return booking
        if booking.status in _CLOSED_STATUSES:
            raise ValidationException(
                f"A {booking.status} booking cannot be submitted",
                code="INVALID_STATUS",
                details={"status": booking.status},
            )
        if booking.fee_paid_at is None:
            raise ValidationException("Application fee not paid", code="FEE_NOT_PAID")
        if not booking.doc_ids:
            raise ValidationException("Attach at least one document", code="DOCUMENTS_REQUIRED")

        with self.transaction():
            booking.submitted_at = _now()
            booking.status = BookingStatus.UNDER_REVIEW.value
            self.booking_repository.flush()

        self.logger.info(f"Booking {booking.id} submitted for review")
        if self.notification_service:
            self.notification_service.booking_submitted(booking)
        return booking

    # ------------------------------------------------------------------- admin

    @BaseService.measure_operation("admin_decide_booking")
    def admin_decide(self, principal: Principal, booking_id: str, decision: str) -> Booking:
        try:
            status = BookingStatus(str(decision).upper())
        except ValueError:
            status = None
        if status not in DECISION_STATUSES:
            raise ValidationException("Decision must be APPROVED or REJECTED", code="INVALID_DECISION")

        booking = self.booking_repository.get_by_id(booking_id)
        if booking is None:
            raise NotFoundException("Booking not found", code="BOOKING_NOT_FOUND")

        with self.transaction():
            booking.status = status.value
            self.booking_repository.flush()

        self.logger.info(f"Admin {principal.id} set booking {booking.id} to {status.value}")
        if status is BookingStatus.APPROVED and self.notification_service:
            self.notification_service.booking_approved(booking)
        return booking

    # ------------------------------------------------------------------- agent

    @BaseService.measure_operation("agent_confirm_booking")
    def agent_confirm(
        self,
        principal: Principal,
        booking_id: str,
        *,
        lines: Sequence[Mapping[str, Any]],
        currency: str = "USD",
        note: Optional[str] = None,
        expires_at: Optional[datetime] = None,
    ) -> Offer:
        """Send an offer. The booking becomes APPROVED whatever its current status."""
        booking = self.get_booking_for_agent(principal, booking_id)
        normalized = _normalize_lines(lines)

        with self.transaction():
            offer = self.offer_repository.create(
                booking_id=booking.id,
                agent_id=principal.id,
                status=OfferStatus.SENT.value,
                currency=(currency or "USD").upper(),
                note=(note or "").strip() or None,
                lines=normalized,
                sent_at=_now(),
                expires_at=expires_at,
            )
            booking.status = BookingStatus.APPROVED.value
            self.booking_repository.flush()

        self.logger.info(
            f"Offer {offer.id} sent on booking {booking.id} (due now {offer.due_now_cents})"
        )
        if self.notification_service:
            self.notification_service.offer_sent(booking, offer)
        return offer

    @BaseService.measure_operation("agent_reject_booking")
    def agent_reject(
        self, principal: Principal, booking_id: str, reason: Optional[str] = None
    ) -> Booking:
        booking = self.get_booking_for_agent(principal, booking_id)
        with self.transaction():
            booking.status = BookingStatus.REJECTED.value
            self.booking_repository.flush()

        self.logger.info(f"Booking {booking.id} rejected by {principal.id}")
        if self.notification_service:
            self.notification_service.booking_rejected(booking, reason)
        return booking
