# backend/homebridge/api/dependencies/services.py
"""
Service layer dependencies for dependency injection.

This module provides factory functions that create service instances
with their required dependencies properly injected.
"""

from fastapi import Depends
from sqlalchemy.orm import Session

from ...services.booking_service import BookingService
from ...services.connect_service import ConnectService
from ...services.document_service import DocumentService
from ...services.notification_service import NotificationService
from ...services.offer_service import OfferService
from ...services.payment_initiation_service import PaymentInitiationService
from ...services.payout_service import PayoutService
from ...services.refund_service import RefundService
from ...services.stripe_gateway import StripeGateway
from ...services.webhook_reconciler import WebhookReconciler
from .database import get_db


def get_stripe_gateway() -> StripeGateway:
    return StripeGateway()


def get_notification_service(db: Session = Depends(get_db)) -> NotificationService:
    return NotificationService(db)


def get_booking_service(
    db: Session = Depends(get_db),
    notification_service: NotificationService = Depends(get_notification_service),
) -> BookingService:
    return BookingService(db, notification_service)


def get_document_service(db: Session = Depends(get_db)) -> DocumentService:
    return DocumentService(db)


def get_offer_service(
    db: Session = Depends(get_db),
    booking_service: BookingService = Depends(get_booking_service),
) -> OfferService:
    return OfferService(db, booking_service)


def get_payment_initiation_service(
    db: Session = Depends(get_db),
    gateway: StripeGateway = Depends(get_stripe_gateway),
    booking_service: BookingService = Depends(get_booking_service),
) -> PaymentInitiationService:
    return PaymentInitiationService(db, gateway, booking_service)


def get_refund_service(
    db: Session = Depends(get_db),
    gateway: StripeGateway = Depends(get_stripe_gateway),
    booking_service: BookingService = Depends(get_booking_service),
    notification_service: NotificationService = Depends(get_notification_service),
) -> RefundService:
    return RefundService(db, gateway, booking_service, notification_service)


def get_payout_service(
    db: Session = Depends(get_db),
    gateway: StripeGateway = Depends(get_stripe_gateway),
) -> PayoutService:
    return PayoutService(db, gateway)


def get_connect_service(
    db: Session = Depends(get_db),
    gateway: StripeGateway = Depends(get_stripe_gateway),
) -> ConnectService:
    return ConnectService(db, gateway)


def get_webhook_reconciler(
    db: Session = Depends(get_db),
    gateway: StripeGateway = Depends(get_stripe_gateway),
    offer_service: OfferService = Depends(get_offer_service),
) -> WebhookReconciler:
    return WebhookReconciler(db, gateway, offer_service)
