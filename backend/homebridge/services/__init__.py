"""
Service layer for HomeBridge.

Business logic lives here, between the routes and the repositories.
"""

from .base import BaseService
from .booking_service import BookingService
from .document_service import DocumentService
from .notification_service import NotificationService
from .offer_service import OfferService
from .payment_initiation_service import PaymentInitiationService
from .payout_service import PayoutService
from .refund_service import RefundService
from .stripe_gateway import StripeGateway
from .webhook_reconciler import WebhookReconciler

__all__ = [
    "BaseService",
    "BookingService",
    "DocumentService",
    "NotificationService",
    "OfferService",
    "PaymentInitiationService",
    "PayoutService",
    "RefundService",
    "StripeGateway",
    "WebhookReconciler",
]
