# backend/homebridge/models/refund_request.py
"""
Refund request model.

At most one PENDING or REFUNDED request may exist per payment. That rule is
enforced when a request is created (lookup), not by a constraint, so that
DECLINED history rows can accumulate.
"""

from datetime import datetime
from enum import Enum
from typing import Optional

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, Index, Integer, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column
import ulid

from homebridge.database import Base
from homebridge.models._utils import utcnow


class RefundStatus(str, Enum):
    PENDING = "PENDING"
    REFUNDED = "REFUNDED"
    DECLINED = "DECLINED"


# A request in one of these states blocks any new request for the same payment
ACTIVE_REFUND_STATUSES = (RefundStatus.PENDING.value, RefundStatus.REFUNDED.value)

MAX_REASON_LENGTH = 1000


class RefundRequest(Base):
    __tablename__ = "refund_requests"

    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    student_id: Mapped[str] = mapped_column(
        String(26), ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    booking_id: Mapped[Optional[str]] = mapped_column(
        String(26), ForeignKey("bookings.id", ondelete="SET NULL")
    )
    payment_id: Mapped[str] = mapped_column(
        String(26), ForeignKey("student_payments.id", ondelete="CASCADE"), nullable=False
    )
    amount_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False, default="USD")
    reason: Mapped[Optional[str]] = mapped_column(Text)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=RefundStatus.PENDING.value, index=True
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False
    )
    processed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    processed_by: Mapped[Optional[str]] = mapped_column(
        String(26), ForeignKey("users.id", ondelete="SET NULL")
    )
    processed_amount_cents: Mapped[Optional[int]] = mapped_column(Integer)
    stripe_refund_id: Mapped[Optional[str]] = mapped_column(String(255))
    processed_note: Mapped[Optional[str]] = mapped_column(Text)

    __table_args__ = (
        Index("ix_refund_requests_payment_created", "payment_id", "created_at"),
        CheckConstraint(
            "status IN ('PENDING', 'REFUNDED', 'DECLINED')", name="ck_refund_requests_status"
        ),
        CheckConstraint("amount_cents > 0", name="ck_refund_requests_amount_positive"),
    )

    def __repr__(self) -> str:
        return f"<RefundRequest(id={self.id}, payment_id={self.payment_id}, status={self.status})>"
