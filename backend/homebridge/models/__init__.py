# backend/homebridge/models/__init__.py
"""
Models package; importing it registers every table on ``Base.metadata``.
"""

from .booking import Booking, BookingStatus
from .listing import Listing
from .offer import Offer, OfferStatus
from .payment import (
    PAYMENT_SUCCEEDED,
    AgentPayment,
    AgentPaymentType,
    StudentPayment,
    StudentPaymentType,
)
from .payout import AgentPayout, AgentPayoutItem
from .refund_request import RefundRequest, RefundStatus
from .student_document import StudentDocument
from .user import AgentProfile, User

__all__ = [
    "AgentPayment",
    "AgentPaymentType",
    "AgentPayout",
    "AgentPayoutItem",
    "AgentProfile",
    "Booking",
    "BookingStatus",
    "Listing",
    "Offer",
    "OfferStatus",
    "PAYMENT_SUCCEEDED",
    "RefundRequest",
    "RefundStatus",
    "StudentDocument",
    "StudentPayment",
    "StudentPaymentType",
    "User",
]
