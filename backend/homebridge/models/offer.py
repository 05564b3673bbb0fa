# backend/homebridge/models/offer.py
"""
Offer model.

An agent's proposed terms for an approved booking. A booking may collect
several offers over time; the most recently created one is authoritative
and older rows are kept untouched as history.
"""

from datetime import datetime
from typing import TYPE_CHECKING, Any, Optional

from sqlalchemy import JSON, DateTime, ForeignKey, Index, String, Text, func
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column, relationship
import ulid

from homebridge.database import Base
from homebridge.domain.offer_lines import OfferStatus, due_later_cents, due_now_cents
from homebridge.models._utils import ensure_utc, utcnow

if TYPE_CHECKING:
    from homebridge.models.booking import Booking

__all__ = ["Offer", "OfferStatus"]


class Offer(Base):
    __tablename__ = "offers"

    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    booking_id: Mapped[str] = mapped_column(
        String(26), ForeignKey("bookings.id", ondelete="CASCADE"), nullable=False
    )
    agent_id: Mapped[Optional[str]] = mapped_column(
        String(26), ForeignKey("users.id", ondelete="SET NULL")
    )
    status: Mapped[str] = mapped_column(String(20), nullable=False, default=OfferStatus.SENT.value)
    currency: Mapped[str] = mapped_column(String(3), nullable=False, default="USD")
    note: Mapped[Optional[str]] = mapped_column(Text)
    # [{"description": str, "amountCents": int, "dueType": "NOW" | "LATER"}, ...]
    lines: Mapped[list[dict[str, Any]]] = mapped_column(
        JSONB().with_variant(JSON(), "sqlite"), nullable=False
    )

    sent_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)
    expires_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    accepted_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    declined_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    paid_now_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    pay_method: Mapped[Optional[str]] = mapped_column(String(10))

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False
    )

    booking: Mapped["Booking"] = relationship("Booking", back_populates="offers")

    __table_args__ = (
        Index("ix_offers_booking_status", "booking_id", "status"),
        Index("ix_offers_agent_created", "agent_id", "created_at"),
    )

    @property
    def due_now_cents(self) -> int:
        return due_now_cents(self.lines)

    @property
    def due_later_cents(self) -> int:
        return due_later_cents(self.lines)

    @property
    def total_cents(self) -> int:
        return self.due_now_cents + self.due_later_cents

    def is_past_expiry(self, now: datetime) -> bool:
        return self.expires_at is not None and ensure_utc(self.expires_at) < ensure_utc(now)

    def __repr__(self) -> str:
        return f"<Offer(id={self.id}, booking_id={self.booking_id}, status={self.status})>"
