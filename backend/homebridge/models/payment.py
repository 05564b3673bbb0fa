# backend/homebridge/models/payment.py
"""
Payment ledger models.

Rows are written only by the webhook reconciler and never updated. The
unique ``stripe_payment_intent_id`` is what makes duplicate deliveries of
the same Stripe event collapse into a single row.
"""

from datetime import datetime
from enum import Enum
from typing import Optional

from sqlalchemy import DateTime, ForeignKey, Index, Integer, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column
import ulid

from homebridge.database import Base
from homebridge.models._utils import utcnow


class StudentPaymentType(str, Enum):
    APP_FEE = "APP_FEE"
    OFFER_NOW = "OFFER_NOW"


class AgentPaymentType(str, Enum):
    ONBOARDING = "ONBOARDING"


PAYMENT_SUCCEEDED = "succeeded"


class StudentPayment(Base):
    """A succeeded student charge (application fee or offer due-now)."""

    __tablename__ = "student_payments"

    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    student_id: Mapped[str] = mapped_column(
        String(26), ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    booking_id: Mapped[Optional[str]] = mapped_column(
        String(26), ForeignKey("bookings.id", ondelete="SET NULL")
    )
    offer_id: Mapped[Optional[str]] = mapped_column(
        String(26), ForeignKey("offers.id", ondelete="SET NULL")
    )
    type: Mapped[str] = mapped_column(String(20), nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default=PAYMENT_SUCCEEDED)
    amount_cents: Mapped[int] = mapped_column(Integer, nullable=False, comment="Amount in cents")
    currency: Mapped[str] = mapped_column(String(3), nullable=False, default="USD")

    stripe_payment_intent_id: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    stripe_charge_id: Mapped[Optional[str]] = mapped_column(String(255), index=True)
    stripe_checkout_session_id: Mapped[Optional[str]] = mapped_column(String(255))
    card_brand: Mapped[Optional[str]] = mapped_column(String(50))
    card_last4: Mapped[Optional[str]] = mapped_column(String(4))
    receipt_url: Mapped[Optional[str]] = mapped_column(Text)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False
    )

    __table_args__ = (
        Index("ix_student_payments_booking_created", "booking_id", "created_at"),
        Index("ix_student_payments_type_status", "type", "status"),
    )

    def __repr__(self) -> str:
        return (
            f"<StudentPayment(id={self.id}, type={self.type}, amount={self.amount_cents}, "
            f"pi={self.stripe_payment_intent_id})>"
        )


class AgentPayment(Base):
    """A succeeded agent charge (onboarding fee)."""

    __tablename__ = "agent_payments"

    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    agent_id: Mapped[str] = mapped_column(
        String(26), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    type: Mapped[str] = mapped_column(String(20), nullable=False, default=AgentPaymentType.ONBOARDING.value)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default=PAYMENT_SUCCEEDED)
    amount_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False, default="USD")

    stripe_payment_intent_id: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    stripe_charge_id: Mapped[Optional[str]] = mapped_column(String(255))
    stripe_checkout_session_id: Mapped[Optional[str]] = mapped_column(String(255))
    card_brand: Mapped[Optional[str]] = mapped_column(String(50))
    card_last4: Mapped[Optional[str]] = mapped_column(String(4))
    receipt_url: Mapped[Optional[str]] = mapped_column(Text)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False
    )

    def __repr__(self) -> str:
        return f"<AgentPayment(id={self.id}, agent_id={self.agent_id}, type={self.type})>"
