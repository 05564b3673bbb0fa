"""Schemas for agent payouts."""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import Field

from ._strict_base import StrictModel, StrictRequestModel


class PayoutCreateRequest(StrictRequestModel):
    agent_id: Optional[str] = Field(default=None, description="Required for admins")
    payment_ids: Optional[List[str]] = None
    note: Optional[str] = Field(default=None, max_length=1000)
    period_start: Optional[datetime] = None
    period_end: Optional[datetime] = None
    fee_cents: Optional[int] = Field(default=None, ge=0)


class EligiblePaymentResponse(StrictModel):
    id: str
    booking_id: Optional[str] = None
    offer_id: Optional[str] = None
    amount_cents: int
    currency: str
    card_brand: Optional[str] = None
    card_last4: Optional[str] = None
    created_at: Optional[datetime] = None


class PayoutItemResponse(StrictModel):
    id: str
    payment_id: str
    amount_cents: int


class PayoutResponse(StrictModel):
    id: str
    agent_id: str
    amount_cents: int
    currency: str
    fees_cents: int
    net_cents: int
    tx_count: int
    period_start: Optional[datetime] = None
    period_end: Optional[datetime] = None
    status: str
    external_ref: Optional[str] = None
    note: Optional[str] = None
    created_at: Optional[datetime] = None


class PayoutDetailResponse(PayoutResponse):
    items: List[PayoutItemResponse] = Field(default_factory=list)


class PayoutSummaryResponse(StrictModel):
    agent_id: str
    payable_now_cents: int
    eligible_count: int
    paid_last_30_cents: int
    total_paid_cents: int
    payouts_count: int
