"""Schemas for student bookings and admin decisions."""

from __future__ import annotations

from datetime import date, datetime
from typing import Any, Dict, List, Literal, Optional

from pydantic import Field, model_validator

from ..models.booking import Booking
from ..models.offer import Offer
from ._strict_base import StrictModel, StrictRequestModel
from .offer import OfferResponse


class BookingCreate(StrictRequestModel):
    listing_id: str = Field(..., min_length=1, max_length=26)
    check_in: date
    check_out: date
    note: Optional[str] = Field(default=None, max_length=2000)
    doc_ids: List[str] = Field(default_factory=list)

    @model_validator(mode="after")
    def _check_dates(self) -> "BookingCreate":
        if self.check_out <= self.check_in:
            raise ValueError("check_out must be after check_in")
        return self


class BookingUpdate(StrictRequestModel):
    """Partial update; only the fields present in the body are applied."""

    check_in: Optional[date] = None
    check_out: Optional[date] = None
    note: Optional[str] = Field(default=None, max_length=2000)
    doc_ids: Optional[List[str]] = None

    @model_validator(mode="after")
    def _check_dates(self) -> "BookingUpdate":
        for key in ("check_in", "check_out"):
            if key in self.model_fields_set and getattr(self, key) is None:
                raise ValueError(f"{key} cannot be cleared")
        if self.check_in and self.check_out and self.check_out <= self.check_in:
            raise ValueError("check_out must be after check_in")
        return self

    def to_changes(self) -> Dict[str, Any]:
        changes = self.model_dump(exclude_unset=True)
        for key in ("check_in", "check_out"):
            if key in changes:
                changes[key] = changes[key].isoformat()
        return changes


class BookingDecisionRequest(StrictRequestModel):
    decision: Literal["APPROVED", "REJECTED"]


class BookingResponse(StrictModel):
    id: str
    student_id: str
    listing_id: str
    check_in: str
    check_out: str
    note: Optional[str] = None
    doc_ids: List[str] = Field(default_factory=list)
    docs_updated_at: Optional[datetime] = None
    application_fee_cents: Optional[int] = None
    payment_method: Optional[str] = None
    fee_paid_at: Optional[datetime] = None
    submitted_at: Optional[datetime] = None
    status: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    offer: Optional[OfferResponse] = None

    @classmethod
    def from_booking(cls, booking: Booking, offer: Optional[Offer] = None) -> "BookingResponse":
        response = cls.model_validate(booking)
        if offer is not None:
            response.offer = OfferResponse.model_validate(offer)
        return response
