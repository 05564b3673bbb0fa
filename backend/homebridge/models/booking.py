# backend/homebridge/models/booking.py
"""
Booking model for the HomeBridge marketplace.

A booking is a student's application to rent a listing for given dates.
Its ``status`` column is a stored projection of the fee/document flags
plus any explicit decision; see ``homebridge.domain.booking_status``.
"""

import logging

from sqlalchemy import (
    JSON,
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import ulid

from homebridge.database import Base
from homebridge.domain.booking_status import BookingStatus, derive_booking_status
from homebridge.models._utils import utcnow

logger = logging.getLogger(__name__)

__all__ = ["Booking", "BookingStatus"]


class Booking(Base):
    """Student application for a listing, moving through the booking state machine."""

    __tablename__ = "bookings"

    id = Column(String(26), primary_key=True, index=True, default=lambda: str(ulid.ULID()))

    student_id = Column(String(26), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    listing_id = Column(String(26), ForeignKey("listings.id", ondelete="CASCADE"), nullable=False)

    # ISO dates as supplied by the client
    check_in = Column(String(10), nullable=False)
    check_out = Column(String(10), nullable=False)
    note = Column(Text, nullable=True)

    # Ordered, de-duplicated StudentDocument ids; always reassign, never mutate in place
    doc_ids = Column(JSONB().with_variant(JSON(), "sqlite"), nullable=False, default=lambda: [])
    docs_updated_at = Column(DateTime(timezone=True), nullable=True)

    # Null means the platform default (settings.student_app_fee_cents)
    application_fee_cents = Column(Integer, nullable=True)
    payment_method = Column(String(10), nullable=True)
    fee_paid_at = Column(DateTime(timezone=True), nullable=True)
    submitted_at = Column(DateTime(timezone=True), nullable=True)

    status = Column(
        String(20), nullable=False, default=BookingStatus.PENDING_PAYMENT.value, index=True
    )

    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    student = relationship("User", foreign_keys=[student_id])
    listing = relationship("Listing")
    offers = relationship(
        "Offer",
        back_populates="booking",
        order_by="Offer.created_at",
        cascade="all, delete-orphan",
    )

    __table_args__ = (
        Index("ix_bookings_student_created", "student_id", "created_at"),
        Index("ix_bookings_listing_created", "listing_id", "created_at"),
        CheckConstraint(
            "status IN ('PENDING_PAYMENT', 'PAYMENT_COMPLETE', 'READY_TO_SUBMIT', "
            "'UNDER_REVIEW', 'APPROVED', 'REJECTED', 'CANCELLED')",
            name="ck_bookings_status",
        ),
    )

    @property
    def document_ids(self) -> list[str]:
        return list(self.doc_ids or [])

    @property
    def is_fee_paid(self) -> bool:
        return self.fee_paid_at is not None

    def refresh_status(self) -> str:
        """Re-derive status from the current flags; returns the (possibly unchanged) value."""
        next_status = derive_booking_status(
            self.status,
            fee_paid=self.is_fee_paid,
            has_documents=bool(self.doc_ids),
        ).value
        if next_status != self.status:
            logger.info(f"Booking {self.id} status {self.status} -> {next_status}")
            self.status = next_status
        return self.status

    def __repr__(self) -> str:
        return f"<Booking {self.id} student={self.student_id} status={self.status}>"
