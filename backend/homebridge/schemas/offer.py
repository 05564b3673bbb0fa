"""Schemas for offers and their line items."""

from __future__ import annotations

from datetime import datetime
from typing import List, Literal, Optional

from pydantic import ConfigDict, Field

from ._strict_base import StrictModel, StrictRequestModel


class OfferLine(StrictModel):
    """One line of an offer. Serialized with the camelCase keys the lines are stored with."""

    model_config = ConfigDict(
        extra="forbid", validate_assignment=True, from_attributes=True, populate_by_name=True
    )

    description: str = Field(default="", max_length=500)
    amount_cents: int = Field(..., alias="amountCents", ge=0)
    due_type: Literal["NOW", "LATER"] = Field(..., alias="dueType")


class AgentConfirmRequest(StrictRequestModel):
    lines: List[OfferLine] = Field(default_factory=list)
    currency: str = Field(default="USD", min_length=3, max_length=3)
    note: Optional[str] = Field(default=None, max_length=2000)
    expires_at: Optional[datetime] = None

    def line_dicts(self) -> list[dict]:
        return [line.model_dump(by_alias=True) for line in self.lines]


class AgentRejectRequest(StrictRequestModel):
    reason: Optional[str] = Field(default=None, max_length=1000)


class OfferResponse(StrictModel):
    id: str
    booking_id: str
    agent_id: Optional[str] = None
    status: str
    currency: str
    note: Optional[str] = None
    lines: List[OfferLine]
    due_now_cents: int
    due_later_cents: int
    total_cents: int
    sent_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None
    accepted_at: Optional[datetime] = None
    declined_at: Optional[datetime] = None
    paid_now_at: Optional[datetime] = None
    pay_method: Optional[str] = None
    created_at: Optional[datetime] = None


class OfferExpireResponse(StrictModel):
    expired: int
