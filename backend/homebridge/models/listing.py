# backend/homebridge/models/listing.py
"""Listing model. Only the fields the booking lifecycle reads are mapped here."""

from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import DateTime, ForeignKey, String, func
from sqlalchemy.orm import Mapped, mapped_column, relationship
import ulid

from homebridge.database import Base
from homebridge.models._utils import utcnow

if TYPE_CHECKING:
    from homebridge.models.user import User


class Listing(Base):
    __tablename__ = "listings"

    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    agent_id: Mapped[str] = mapped_column(
        String(26), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False
    )

    agent: Mapped["User"] = relationship("User", back_populates="listings")

    def __repr__(self) -> str:
        return f"<Listing(id={self.id}, agent_id={self.agent_id})>"
