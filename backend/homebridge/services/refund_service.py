# backend/homebridge/services/refund_service.py
"""
Refund Tracker

Refund requests against ledger payments. Every creation path shares the
same gates (succeeded payment, no PENDING/REFUNDED request yet, amount
within the payment). Admin settlement moves PENDING to REFUNDED or
DECLINED through a conditional update, so a request is settled at most once
whether the admin or the Stripe webhook gets there first.
"""

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy.orm import Session

from ..core.exceptions import NotFoundException, RefundAlreadyRequestedException, ValidationException
from ..models.payment import PAYMENT_SUCCEEDED, StudentPayment
from ..models.refund_request import MAX_REASON_LENGTH, RefundRequest, RefundStatus
from ..principal import Principal
from ..repositories.factory import RepositoryFactory
from .base import BaseService
from .booking_service import BookingService
from .notification_service import NotificationService
from .stripe_gateway import StripeGateway


def _clean_reason(reason: Optional[str]) -> Optional[str]:
    text = (reason or "").strip()
    return text[:MAX_REASON_LENGTH] or None


class RefundService(BaseService):
    def __init__(
        self,
        db: Session,
        gateway: StripeGateway,
        booking_service: Optional[BookingService] = None,
        notification_service: Optional[NotificationService] = None,
    ):
        super().__init__(db)
        self.gateway = gateway
        self.booking_service = booking_service or BookingService(db)
        self.notification_service = notification_service
        self.payment_repository = RepositoryFactory.create_payment_repository(db)
        self.refund_repository = RepositoryFactory.create_refund_repository(db)

    # ---------------------------------------------------------------- creation

    def _check_refundable(self, payment: StudentPayment, amount_cents: Optional[int]) -> int:
        if payment.status != PAYMENT_SUCCEEDED:
            raise ValidationException(
                "Only succeeded payments can be refunded", code="PAYMENT_NOT_SUCCEEDED"
            )
        if self.refund_repository.has_active_request(payment.id):
            raise RefundAlreadyRequestedException(payment.id)

        amount = payment.amount_cents if amount_cents is None else int(amount_cents)
        if amount <= 0:
            raise ValidationException("Refund amount must be positive", code="INVALID_AMOUNT")
        if amount > payment.amount_cents:
            raise ValidationException(
                "Refund amount exceeds the payment amount",
                code="INVALID_AMOUNT",
                details={"max_cents": payment.amount_cents},
            )
        return amount

    def _create_pending(
        self, payment: StudentPayment, amount_cents: Optional[int], reason: Optional[str]
    ) -> RefundRequest:
        amount = self._check_refundable(payment, amount_cents)
        with self.transaction():
            refund = self.refund_repository.create(
                student_id=payment.student_id,
                booking_id=payment.booking_id,
                payment_id=payment.id,
                amount_cents=amount,
                currency=payment.currency,
                reason=_clean_reason(reason),
                status=RefundStatus.PENDING.value,
            )
        self.logger.info(f"Refund request {refund.id} created for payment {payment.id} ({amount})")
        return refund

    @BaseService.measure_operation("request_refund")
    def request_refund(
        self,
        principal: Principal,
        booking_id: str,
        reason: Optional[str] = None,
        amount_cents: Optional[int] = None,
    ) -> RefundRequest:
        """Student asks for a refund of the latest successful payment on their booking."""
        booking = self.booking_service.get_owned_booking(principal, booking_id)
        payment = self.payment_repository.latest_succeeded_for_booking(booking.id)
        if payment is None:
            raise ValidationException("No successful payment to refund.", code="NO_PAYMENT")

        refund = self._create_pending(payment, amount_cents, reason)
        if self.notification_service:
            self.notification_service.refund_requested(refund)
        return refund

    @BaseService.measure_operation("admin_create_refund")
    def admin_create_refund(
        self,
        principal: Principal,
        payment_id: str,
        amount_cents: Optional[int] = None,
        reason: Optional[str] = None,
    ) -> RefundRequest:
        payment = self.payment_repository.get_student_payment(payment_id)
        if payment is None:
            raise NotFoundException("Payment not found", code="PAYMENT_NOT_FOUND")
        return self._create_pending(payment, amount_cents, reason)

    # -------------------------------------------------------------- settlement

    def _get_pending(self, refund_id: str) -> RefundRequest:
        refund = self.refund_repository.get_by_id(refund_id)
        if refund is None:
            raise NotFoundException("Refund request not found", code="REFUND_NOT_FOUND")
        if refund.status != RefundStatus.PENDING.value:
            raise ValidationException(
                f"Refund request is already {refund.status}", code="REFUND_NOT_PENDING"
            )
        return refund

    def _settle(self, refund: RefundRequest, **values) -> RefundRequest:
        with self.transaction():
            updated = self.refund_repository.transition(refund.id, RefundStatus.PENDING, **values)
        if not updated:
            # Settled concurrently (usually by the refund webhook); report what is stored.
            self.db.refresh(refund)
            self.logger.info(f"Refund request {refund.id} was already settled as {refund.status}")
        return refund

    @BaseService.measure_operation("approve_refund")
    def approve_refund(
        self, principal: Principal, refund_id: str, note: Optional[str] = None
    ) -> RefundRequest:
        """
        Issue the refund in Stripe and mark the request REFUNDED.

        A Stripe failure raises PaymentProviderException and leaves the request
        PENDING. The idempotency key is derived from the request id, so a retry
        after a lost response cannot refund twice.
        """
        refund = self._get_pending(refund_id)
        payment = self.payment_repository.get_student_payment(refund.payment_id)
        if payment is None:
            raise NotFoundException("Payment not found", code="PAYMENT_NOT_FOUND")

        stripe_refund_id = self.gateway.create_refund(
            amount_cents=refund.amount_cents,
            charge_id=payment.stripe_charge_id,
            payment_intent_id=payment.stripe_payment_intent_id,
            idempotency_key=f"refund:{refund.id}",
            metadata={"refundRequestId": refund.id, "paymentId": payment.id},
        )
        return self._settle(
            refund,
            status=RefundStatus.REFUNDED.value,
            processed_at=datetime.now(timezone.utc),
            processed_by=principal.id,
            processed_amount_cents=refund.amount_cents,
            stripe_refund_id=stripe_refund_id,
            processed_note=_clean_reason(note),
        )

    @BaseService.measure_operation("decline_refund")
    def decline_refund(
        self, principal: Principal, refund_id: str, note: Optional[str] = None
    ) -> RefundRequest:
        refund = self._get_pending(refund_id)
        return self._settle(
            refund,
            status=RefundStatus.DECLINED.value,
            processed_at=datetime.now(timezone.utc),
            processed_by=principal.id,
            processed_note=_clean_reason(note),
        )

    @BaseService.measure_operation("mark_refunded_manually")
    def mark_refunded_manually(
        self,
        principal: Principal,
        refund_id: str,
        amount_cents: Optional[int] = None,
        external_ref: Optional[str] = None,
        note: Optional[str] = None,
    ) -> RefundRequest:
        """Record a refund that was paid out outside Stripe."""
        refund = self._get_pending(refund_id)
        amount = refund.amount_cents if amount_cents is None else int(amount_cents)
        if amount <= 0:
            raise ValidationException("Refund amount must be positive", code="INVALID_AMOUNT")
        return self._settle(
            refund,
            status=RefundStatus.REFUNDED.value,
            processed_at=datetime.now(timezone.utc),
            processed_by=principal.id,
            processed_amount_cents=amount,
            stripe_refund_id=external_ref,
            processed_note=_clean_reason(note),
        )
