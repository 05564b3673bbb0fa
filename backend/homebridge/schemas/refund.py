"""Schemas for refund requests."""

from __future__ import annotations

from datetime import datetime
from typing import Literal, Optional

from pydantic import Field

from ._strict_base import StrictModel, StrictRequestModel


class StudentRefundRequest(StrictRequestModel):
    reason: Optional[str] = Field(default=None, description="Trimmed to 1000 characters")
    amount_cents: Optional[int] = Field(
        default=None, description="Refund amount in cents. Full refund if not provided."
    )


class AdminRefundCreate(StrictRequestModel):
    payment_id: str
    amount_cents: Optional[int] = None
    reason: Optional[str] = None


class AdminRefundUpdate(StrictRequestModel):
    action: Literal["approve", "decline", "mark_refunded"]
    note: Optional[str] = Field(default=None, max_length=1000)
    amount_cents: Optional[int] = Field(
        default=None, description="Only used by mark_refunded; defaults to the requested amount"
    )
    external_ref: Optional[str] = Field(default=None, max_length=255)


class RefundResponse(StrictModel):
    id: str
    student_id: str
    booking_id: Optional[str] = None
    payment_id: str
    amount_cents: int
    currency: str
    reason: Optional[str] = None
    status: str
    created_at: Optional[datetime] = None
    processed_at: Optional[datetime] = None
    processed_by: Optional[str] = None
    processed_amount_cents: Optional[int] = None
    stripe_refund_id: Optional[str] = None
    processed_note: Optional[str] = None
