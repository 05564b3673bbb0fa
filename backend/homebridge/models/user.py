# backend/homebridge/models/user.py
"""
User and agent profile models.

Authentication lives elsewhere; this core only needs identity, role and
contact email, plus the agent's Stripe Connect / onboarding state.
"""

from datetime import datetime
from typing import TYPE_CHECKING, Optional

from sqlalchemy import Boolean, CheckConstraint, DateTime, ForeignKey, Integer, String, func
from sqlalchemy.orm import Mapped, mapped_column, relationship
import ulid

from homebridge.core.enums import RoleName
from homebridge.database import Base
from homebridge.models._utils import utcnow

if TYPE_CHECKING:
    from homebridge.models.listing import Listing


class User(Base):
    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    name: Mapped[Optional[str]] = mapped_column(String(200))
    role: Mapped[str] = mapped_column(String(20), nullable=False, default=RoleName.STUDENT.value)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False
    )

    listings: Mapped[list["Listing"]] = relationship("Listing", back_populates="agent")
    agent_profile: Mapped[Optional["AgentProfile"]] = relationship(
        "AgentProfile", back_populates="user", uselist=False
    )

    __table_args__ = (
        CheckConstraint(
            "role IN ('SUPERADMIN', 'ADMIN', 'AGENT', 'STUDENT')",
            name="ck_users_role",
        ),
    )

    def __repr__(self) -> str:
        return f"<User(id={self.id}, role={self.role})>"


class AgentProfile(Base):
    """Agent-side payment state: connected account flags and onboarding fee."""

    __tablename__ = "agent_profiles"

    user_id: Mapped[str] = mapped_column(
        String(26), ForeignKey("users.id", ondelete="CASCADE"), primary_key=True
    )
    stripe_account_id: Mapped[Optional[str]] = mapped_column(String(255), unique=True, index=True)
    charges_enabled: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    payouts_enabled: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    details_submitted: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    onboarding_paid_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    onboarding_payment_intent_id: Mapped[Optional[str]] = mapped_column(String(255))
    onboarding_amount_cents: Mapped[Optional[int]] = mapped_column(Integer)
    onboarding_currency: Mapped[Optional[str]] = mapped_column(String(3))

    updated_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), onupdate=utcnow)

    user: Mapped["User"] = relationship("User", back_populates="agent_profile")

    def __repr__(self) -> str:
        return f"<AgentProfile(user_id={self.user_id}, account={self.stripe_account_id})>"
