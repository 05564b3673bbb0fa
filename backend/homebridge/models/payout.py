# backend/homebridge/models/payout.py
"""Agent payout batches and the ledger rows they claim."""

from datetime import datetime
from typing import Optional

from sqlalchemy import DateTime, ForeignKey, Integer, String, Text, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column, relationship
import ulid

from homebridge.database import Base
from homebridge.models._utils import utcnow

PAYOUT_STATUS_PAID = "paid"


class AgentPayout(Base):
    __tablename__ = "agent_payouts"

    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    agent_id: Mapped[str] = mapped_column(
        String(26), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    amount_cents: Mapped[int] = mapped_column(Integer, nullable=False, comment="Gross, before fees")
    currency: Mapped[str] = mapped_column(String(3), nullable=False, default="USD")
    fees_cents: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    net_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    tx_count: Mapped[int] = mapped_column(Integer, nullable=False)
    period_start: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    period_end: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    status: Mapped[str] = mapped_column(String(20), nullable=False, default=PAYOUT_STATUS_PAID)
    external_ref: Mapped[Optional[str]] = mapped_column(String(255), comment="Stripe transfer id")
    note: Mapped[Optional[str]] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False
    )

    items: Mapped[list["AgentPayoutItem"]] = relationship(
        "AgentPayoutItem", back_populates="payout", cascade="all, delete-orphan"
    )

    def __repr__(self) -> str:
        return f"<AgentPayout(id={self.id}, agent_id={self.agent_id}, net={self.net_cents})>"


class AgentPayoutItem(Base):
    __tablename__ = "agent_payout_items"

    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    payout_id: Mapped[str] = mapped_column(
        String(26), ForeignKey("agent_payouts.id", ondelete="CASCADE"), nullable=False, index=True
    )
    payment_id: Mapped[str] = mapped_column(
        String(26), ForeignKey("student_payments.id", ondelete="CASCADE"), nullable=False
    )
    amount_cents: Mapped[int] = mapped_column(Integer, nullable=False)

    payout: Mapped["AgentPayout"] = relationship("AgentPayout", back_populates="items")

    # A ledger row can be paid out at most once
    __table_args__ = (UniqueConstraint("payment_id", name="uq_agent_payout_items_payment"),)
