"""Booking status derivation shared by every mutation site."""

from __future__ import annotations

from enum import Enum


class BookingStatus(str, Enum):
    """Booking lifecycle statuses (stable wire values)."""

    PENDING_PAYMENT = "PENDING_PAYMENT"
    PAYMENT_COMPLETE = "PAYMENT_COMPLETE"
    READY_TO_SUBMIT = "READY_TO_SUBMIT"
    UNDER_REVIEW = "UNDER_REVIEW"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    CANCELLED = "CANCELLED"


# Reached by submission or an explicit decision; never recomputed from flags.
STICKY_STATUSES: frozenset[BookingStatus] = frozenset(
    {
        BookingStatus.UNDER_REVIEW,
        BookingStatus.APPROVED,
        BookingStatus.REJECTED,
        BookingStatus.CANCELLED,
    }
)

DECISION_STATUSES: frozenset[BookingStatus] = frozenset(
    {BookingStatus.APPROVED, BookingStatus.REJECTED}
)


def derive_booking_status(
    current: BookingStatus | str | None, *, fee_paid: bool, has_documents: bool
) -> BookingStatus:
    """
    Return the status a booking should hold for the given flag snapshot.

    Pure and idempotent: the same (current, fee_paid, has_documents) always
    yields the same result, so concurrent writers converge.
    """
    if current is not None:
        current_status = BookingStatus(current)
        if current_status in STICKY_STATUSES:
            return current_status
    if not fee_paid:
        return BookingStatus.PENDING_PAYMENT
    if has_documents:
        return BookingStatus.READY_TO_SUBMIT
    return BookingStatus.PAYMENT_COMPLETE
