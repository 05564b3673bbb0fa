# backend/homebridge/services/webhook_reconciler.py
"""
Stripe Webhook Reconciler

Turns verified Stripe events into local state. Every handler is written so a
replayed or out-of-order event converges on the same result:

- ledger rows are inserted with insert-or-ignore on the payment intent id
- fee and offer payment timestamps are only ever filled in, never moved
- refund settlement is a no-op once the payment has a REFUNDED request

``handle`` runs one event in its own savepoint. Malformed payloads are
logged and acknowledged; database and Stripe failures propagate so the
provider redelivers the event.
"""

from datetime import datetime, timezone
import logging
from typing import Any, Dict, Mapping, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.enums import PaymentPurpose, PayMethod
from ..core.exceptions import RepositoryException, ServiceException
from ..models.payment import AgentPaymentType, StudentPaymentType
from ..models.refund_request import RefundStatus
from ..repositories.factory import RepositoryFactory
from .base import BaseService
from .offer_service import OfferService
from .stripe_gateway import StripeGateway

logger = logging.getLogger(__name__)

DASHBOARD_REFUND_REASON = "Refunded in Stripe dashboard"


def _get(obj: Any, key: str, default: Any = None) -> Any:
    if isinstance(obj, Mapping):
        value = obj.get(key, default)
        return default if value is None else value
    return default


def extract_card_details(payment_intent: Mapping[str, Any]) -> Dict[str, Any]:
    """
    Pull charge id, card brand/last4 and receipt URL out of a PaymentIntent.

    ``latest_charge`` may be an expanded charge or a bare id; older API
    versions carry the charge in ``charges.data[0]`` instead.
    """
    charge: Optional[Mapping[str, Any]] = None
    charge_id: Optional[str] = None

    latest = _get(payment_intent, "latest_charge")
    if isinstance(latest, str):
        charge_id = latest
    elif isinstance(latest, Mapping):
        charge = latest
        charge_id = _get(latest, "id")

    if charge is None:
        charges = _get(_get(payment_intent, "charges", {}), "data", [])
        if charges:
            charge = charges[0]
            charge_id = charge_id or _get(charge, "id")

    card = _get(_get(charge, "payment_method_details", {}), "card", {})
    return {
        "stripe_charge_id": charge_id,
        "card_brand": _get(card, "brand"),
        "card_last4": _get(card, "last4"),
        "receipt_url": _get(charge, "receipt_url"),
        "amount_cents": int(_get(payment_intent, "amount_received") or _get(payment_intent, "amount", 0)),
        "currency": str(_get(payment_intent, "currency", "usd")).upper(),
    }


class WebhookReconciler(BaseService):
    def __init__(
        self,
        db: Session,
        gateway: StripeGateway,
        offer_service: Optional[OfferService] = None,
    ):
        super().__init__(db)
        self.gateway = gateway
        self.offer_service = offer_service or OfferService(db)
        self.booking_repository = RepositoryFactory.create_booking_repository(db)
        self.offer_repository = RepositoryFactory.create_offer_repository(db)
        self.payment_repository = RepositoryFactory.create_payment_repository(db)
        self.refund_repository = RepositoryFactory.create_refund_repository(db)
        self.agent_profile_repository = RepositoryFactory.create_agent_profile_repository(db)

    # ----------------------------------------------------------------- entry

    def handle(self, event: Mapping[str, Any]) -> bool:
        """
        Process one event inside its own savepoint, then commit.

        A payload the handlers cannot make sense of is rolled back, logged and
        acknowledged. Database and Stripe failures are rolled back and raised
        as ``ServiceException`` so the route answers 5xx and Stripe redelivers.
        """
        event_type = _get(event, "type", "")
        event_id = _get(event, "id")
        try:
            with self.db.begin_nested():
                handled = self.process_event(event)
        except ServiceException as e:
            self.logger.error(f"Transient failure on Stripe event {event_id} ({event_type}): {e.message}")
            raise
        except (SQLAlchemyError, RepositoryException) as e:
            self.logger.error(f"Database failure on Stripe event {event_id} ({event_type}): {str(e)}")
            raise ServiceException("Database operation failed while processing webhook") from e
        except Exception as e:
            self.logger.error(
                f"Error processing Stripe event {event_id} ({event_type}): {str(e)}",
                exc_info=True,
            )
            return False

        try:
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            self.logger.error(f"Commit failed for Stripe event {event_id} ({event_type}): {str(e)}")
            raise ServiceException("Database operation failed while processing webhook") from e
        if handled:
            self.logger.info(f"Successfully processed {event_type} event")
        return handled

    @BaseService.measure_operation("process_webhook_event")
    def process_event(self, event: Mapping[str, Any]) -> bool:
        """Dispatch on event type. Joins the caller's transaction; returns False when ignored."""
        event_type = _get(event, "type", "")
        obj = _get(_get(event, "data", {}), "object", {})
        self.logger.info(f"Processing Stripe webhook event: {event_type}")

        if event_type == "payment_intent.succeeded":
            return self._dispatch_payment(_get(obj, "metadata", {}), obj, session_id=None)

        if event_type == "checkout.session.completed":
            return self._handle_checkout_completed(obj)

        if event_type == "charge.refunded":
            refunds = _get(_get(obj, "refunds", {}), "data", [])
            return self.settle_refund(
                charge_id=_get(obj, "id"),
                payment_intent_id=_get(obj, "payment_intent"),
                amount_cents=int(_get(obj, "amount_refunded", 0)),
                currency=_get(obj, "currency"),
                refund_id=_get(refunds[0], "id") if refunds else None,
            )

        if event_type in ("refund.succeeded", "charge.refund.updated"):
            if _get(obj, "status") != "succeeded":
                self.logger.info(f"Ignoring {event_type} with status {_get(obj, 'status')}")
                return False
            return self.settle_refund(
                charge_id=_get(obj, "charge"),
                payment_intent_id=_get(obj, "payment_intent"),
                amount_cents=int(_get(obj, "amount", 0)),
                currency=_get(obj, "currency"),
                refund_id=_get(obj, "id"),
            )

        if event_type == "account.updated":
            return self._handle_account_updated(obj)

        self.logger.info(f"Unhandled webhook event type: {event_type}")
        return False

    # -------------------------------------------------------------- payments

    def _handle_checkout_completed(self, session: Mapping[str, Any]) -> bool:
        if _get(session, "payment_status") != "paid":
            self.logger.info(f"Checkout session {_get(session, 'id')} not paid yet; ignoring")
            return False
        payment_intent_id = _get(session, "payment_intent")
        if isinstance(payment_intent_id, Mapping):
            payment_intent_id = _get(payment_intent_id, "id")
        if not payment_intent_id:
            self.logger.warning(f"Checkout session {_get(session, 'id')} has no payment intent")
            return False

        payment_intent = self.gateway.retrieve_payment_intent(payment_intent_id)
        metadata = {**dict(_get(payment_intent, "metadata", {})), **dict(_get(session, "metadata", {}))}
        return self._dispatch_payment(metadata, payment_intent, session_id=_get(session, "id"))

    def _dispatch_payment(
        self,
        metadata: Mapping[str, Any],
        payment_intent: Mapping[str, Any],
        session_id: Optional[str],
    ) -> bool:
        tag = _get(metadata, "type")
        if tag == PaymentPurpose.STUDENT_APP_FEE.value:
            return self.finalize_app_fee(metadata, payment_intent, session_id)
        if tag == PaymentPurpose.STUDENT_OFFER_NOW.value:
            return self.finalize_offer_now(metadata, payment_intent, session_id)
        if tag == PaymentPurpose.AGENT_ONBOARDING.value:
            return self.finalize_agent_onboarding(metadata, payment_intent, session_id)
        self.logger.info(f"Ignoring payment {_get(payment_intent, 'id')} with metadata type {tag!r}")
        return False

    def _ledger_values(
        self, payment_intent: Mapping[str, Any], session_id: Optional[str]
    ) -> Dict[str, Any]:
        values = extract_card_details(payment_intent)
        values["stripe_payment_intent_id"] = _get(payment_intent, "id")
        values["stripe_checkout_session_id"] = session_id
        return values

    def finalize_app_fee(
        self, metadata: Mapping[str, Any], payment_intent: Mapping[str, Any], session_id: Optional[str]
    ) -> bool:
        booking_id = _get(metadata, "bookingId")
        if not booking_id:
            self.logger.warning(f"App fee payment {_get(payment_intent, 'id')} has no bookingId")
            return False

        booking = self.booking_repository.mark_fee_paid(
            booking_id, datetime.now(timezone.utc), PayMethod.CARD.value
        )
        if booking is None:
            self.logger.warning(f"App fee paid for unknown booking {booking_id}")
            return False

        self.payment_repository.insert_student_payment(
            student_id=_get(metadata, "userId") or booking.student_id,
            booking_id=booking.id,
            offer_id=None,
            type=StudentPaymentType.APP_FEE.value,
            **self._ledger_values(payment_intent, session_id),
        )
        return True

    def finalize_offer_now(
        self, metadata: Mapping[str, Any], payment_intent: Mapping[str, Any], session_id: Optional[str]
    ) -> bool:
        booking_id = _get(metadata, "bookingId")
        offer = None
        offer_id = _get(metadata, "offerId")
        if offer_id:
            offer = self.offer_repository.get_by_id(offer_id)
        if offer is None and booking_id:
            offer = self.offer_repository.get_latest_for_booking(booking_id)
        if offer is None:
            self.logger.warning(
                f"Offer payment {_get(payment_intent, 'id')} matched no offer (booking {booking_id})"
            )
            return False

        offer = self.offer_service.apply_payment(offer.id, datetime.now(timezone.utc))
        booking = self.booking_repository.get_by_id(offer.booking_id)
        self.payment_repository.insert_student_payment(
            student_id=_get(metadata, "userId") or (booking.student_id if booking else None),
            booking_id=offer.booking_id,
            offer_id=offer.id,
            type=StudentPaymentType.OFFER_NOW.value,
            **self._ledger_values(payment_intent, session_id),
        )
        return True

    def finalize_agent_onboarding(
        self, metadata: Mapping[str, Any], payment_intent: Mapping[str, Any], session_id: Optional[str]
    ) -> bool:
        agent_id = _get(metadata, "userId")
        if not agent_id:
            self.logger.warning(f"Onboarding payment {_get(payment_intent, 'id')} has no userId")
            return False

        values = self._ledger_values(payment_intent, session_id)
        self.payment_repository.insert_agent_payment(
            agent_id=agent_id, type=AgentPaymentType.ONBOARDING.value, **values
        )
        self.agent_profile_repository.mark_onboarding_paid(
            agent_id,
            paid_at=datetime.now(timezone.utc),
            payment_intent_id=values["stripe_payment_intent_id"],
            amount_cents=values["amount_cents"],
            currency=values["currency"],
        )
        return True

    # --------------------------------------------------------------- refunds

    def settle_refund(
        self,
        *,
        charge_id: Optional[str],
        payment_intent_id: Optional[str],
        amount_cents: int,
        currency: Optional[str],
        refund_id: Optional[str],
    ) -> bool:
        """
        Record a refund Stripe reports as done.

        The latest PENDING request is settled; with none, a REFUNDED request
        is synthesized for a refund issued from the Stripe dashboard.
        """
        payment = self.payment_repository.find_by_charge_or_intent(charge_id, payment_intent_id)
        if payment is None:
            self.logger.info(f"Refund for unknown payment (charge={charge_id}, pi={payment_intent_id})")
            return False
        if self.refund_repository.has_refunded(payment.id):
            self.logger.info(f"Payment {payment.id} already refunded; ignoring replay")
            return False

        now = datetime.now(timezone.utc)
        amount = amount_cents or payment.amount_cents
        currency = (currency or payment.currency).upper()
        pending = self.refund_repository.latest_pending_for_payment(payment.id)
        if pending is not None:
            settled = self.refund_repository.transition(
                pending.id,
                RefundStatus.PENDING,
                status=RefundStatus.REFUNDED.value,
                processed_at=now,
                processed_amount_cents=amount,
                currency=currency,
                stripe_refund_id=refund_id,
            )
            if settled:
                self.logger.info(f"Refund request {pending.id} settled by webhook")
            return settled

        refund = self.refund_repository.create(
            student_id=payment.student_id,
            booking_id=payment.booking_id,
            payment_id=payment.id,
            amount_cents=amount,
            currency=currency,
            reason=DASHBOARD_REFUND_REASON,
            status=RefundStatus.REFUNDED.value,
            processed_at=now,
            processed_amount_cents=amount,
            stripe_refund_id=refund_id,
        )
        self.logger.info(f"Recorded out-of-band refund {refund.id} for payment {payment.id}")
        return True

    # -------------------------------------------------------------- accounts

    def _handle_account_updated(self, account: Mapping[str, Any]) -> bool:
        account_id = _get(account, "id")
        if not account_id:
            return False
        updated = self.agent_profile_repository.update_account_flags(
            account_id,
            charges_enabled=_get(account, "charges_enabled", False),
            payouts_enabled=_get(account, "payouts_enabled", False),
            details_submitted=_get(account, "details_submitted", False),
        )
        if not updated:
            self.logger.info(f"account.updated for unknown connected account {account_id}")
        return updated
