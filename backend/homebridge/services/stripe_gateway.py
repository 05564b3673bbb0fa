# backend/homebridge/services/stripe_gateway.py
"""
Thin wrapper over the Stripe SDK.

Every outbound money movement (PaymentIntents, Checkout Sessions, refunds,
Connect transfers), Connect account onboarding and inbound signature
verification go through here, so services can be tested with a mocked
gateway and Stripe failures are translated into ``PaymentProviderException``
in one place.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Dict, Mapping, Optional

import stripe

from ..core.config import Settings, settings as default_settings
from ..core.exceptions import PaymentProviderException, ValidationException

logger = logging.getLogger(__name__)


class StripeGateway:
    def __init__(self, config: Optional[Settings] = None):
        self.settings = config or default_settings
        self.stripe_configured = False
        secret = self.settings.stripe_secret_key.get_secret_value()
        if secret:
            stripe.api_key = secret
            stripe.max_network_retries = 1
            self.stripe_configured = True
        else:
            logger.warning("Stripe secret key not configured - payment calls are disabled")

    @property
    def publishable_key(self) -> str:
        return self.settings.stripe_publishable_key

    @property
    def default_currency(self) -> str:
        return self.settings.stripe_currency

    def _check_stripe_configured(self) -> None:
        if not self.stripe_configured:
            raise ValidationException("Stripe not configured", code="STRIPE_NOT_CONFIGURED")

    # ------------------------------------------------------------------ inbound
    @property
    def webhook_configured(self) -> bool:
        return bool(self.settings.webhook_secrets)

    def construct_event(self, payload: bytes, signature: str) -> Dict[str, Any]:
        """
        Verify the signature against each configured secret and return the parsed event.

        Raises:
            stripe.SignatureVerificationError: no secret matched
        """
        last_error: Optional[stripe.SignatureVerificationError] = None
        for secret in self.settings.webhook_secrets:
            try:
                stripe.Webhook.construct_event(payload, signature, secret)
            except stripe.SignatureVerificationError as exc:
                last_error = exc
                continue
            return json.loads(payload.decode("utf-8"))
        if last_error is not None:
            raise last_error
        raise stripe.SignatureVerificationError("No webhook secret configured", signature)

    # ----------------------------------------------------------------- outbound
    def create_payment_intent(
        self,
        *,
        amount_cents: int,
        currency: str,
        metadata: Mapping[str, str],
        receipt_email: Optional[str] = None,
    ) -> Dict[str, Any]:
        self._check_stripe_configured()
        try:
            intent = stripe.PaymentIntent.create(
                amount=amount_cents,
                currency=currency.lower(),
                automatic_payment_methods={"enabled": True},
                metadata=dict(metadata),
                receipt_email=receipt_email or None,
            )
        except stripe.StripeError as exc:
            logger.error(f"PaymentIntent creation failed: {exc}")
            raise PaymentProviderException("Unable to create PaymentIntent") from exc
        return {"id": intent["id"], "client_secret": intent["client_secret"]}

    def create_checkout_session(
        self,
        *,
        amount_cents: int,
        currency: str,
        product_name: str,
        metadata: Mapping[str, str],
        success_url: str,
        cancel_url: str,
        customer_email: Optional[str] = None,
    ) -> Dict[str, Any]:
        self._check_stripe_configured()
        try:
            session = stripe.checkout.Session.create(
                mode="payment",
                customer_email=customer_email or None,
                line_items=[
                    {
                        "price_data": {
                            "currency": currency.lower(),
                            "unit_amount": amount_cents,
                            "product_data": {"name": product_name},
                        },
                        "quantity": 1,
                    }
                ],
                metadata=dict(metadata),
                # Copy the tag onto the PaymentIntent too so either event path can dispatch
                payment_intent_data={"metadata": dict(metadata)},
                success_url=success_url,
                cancel_url=cancel_url,
            )
        except stripe.StripeError as exc:
            logger.error(f"Checkout Session creation failed: {exc}")
            raise PaymentProviderException("Unable to start Stripe Checkout") from exc
        return {"id": session["id"], "url": session["url"]}

    def retrieve_payment_intent(self, payment_intent_id: str) -> Dict[str, Any]:
        """Fetch a PaymentIntent with its latest charge expanded, as a plain dict."""
        self._check_stripe_configured()
        try:
            payment_intent = stripe.PaymentIntent.retrieve(payment_intent_id, expand=["latest_charge"])
        except stripe.StripeError as exc:
            logger.error(f"PaymentIntent retrieve failed for {payment_intent_id}: {exc}")
            raise PaymentProviderException("Unable to retrieve PaymentIntent") from exc
        # StripeObject renders itself as JSON
        return json.loads(str(payment_intent))

    def create_refund(
        self,
        *,
        amount_cents: int,
        charge_id: Optional[str],
        payment_intent_id: Optional[str],
        idempotency_key: str,
        metadata: Optional[Mapping[str, str]] = None,
    ) -> str:
        """Refund by charge when known, otherwise by payment intent. Returns the refund id."""
        self._check_stripe_configured()
        target: Dict[str, str]
        if charge_id:
            target = {"charge": charge_id}
        elif payment_intent_id:
            target = {"payment_intent": payment_intent_id}
        else:
            raise ValidationException("Payment has no Stripe reference to refund")
        try:
            refund = stripe.Refund.create(
                amount=amount_cents,
                metadata=dict(metadata or {}),
                idempotency_key=idempotency_key,
                **target,
            )
        except stripe.StripeError as exc:
            logger.error(f"Refund creation failed ({target}): {exc}")
            raise PaymentProviderException("Stripe refund failed", details={"target": target}) from exc
        return refund["id"]

    def create_transfer(
        self,
        *,
        amount_cents: int,
        currency: str,
        destination: str,
        idempotency_key: str,
        metadata: Optional[Mapping[str, str]] = None,
    ) -> str:
        self._check_stripe_configured()
        try:
            transfer = stripe.Transfer.create(
                amount=amount_cents,
                currency=currency.lower(),
                destination=destination,
                metadata=dict(metadata or {}),
                idempotency_key=idempotency_key,
            )
        except stripe.StripeError as exc:
            logger.error(f"Transfer to {destination} failed: {exc}")
            raise PaymentProviderException("Stripe transfer failed") from exc
        return transfer["id"]

    # ------------------------------------------------------------------ connect
    def create_connected_account(self, *, agent_id: str, email: Optional[str] = None) -> str:
        """Create an Express account for an agent. Returns the ``acct_...`` id."""
        self._check_stripe_configured()
        try:
            account = stripe.Account.create(
                type="express",
                email=email or None,
                capabilities={
                    "transfers": {"requested": True},
                    "card_payments": {"requested": True},
                },
                metadata={"userId": agent_id},
                idempotency_key=f"connect-account:{agent_id}",
            )
        except stripe.StripeError as exc:
            logger.error(f"Connect account creation failed for agent {agent_id}: {exc}")
            raise PaymentProviderException("Unable to create Stripe account") from exc
        return account["id"]

    def create_account_link(
        self, *, account_id: str, link_type: str, refresh_url: str, return_url: str
    ) -> str:
        self._check_stripe_configured()
        try:
            link = stripe.AccountLink.create(
                account=account_id,
                type=link_type,
                refresh_url=refresh_url,
                return_url=return_url,
            )
        except stripe.StripeError as exc:
            logger.error(f"Account link ({link_type}) failed for {account_id}: {exc}")
            raise PaymentProviderException("Unable to create Stripe onboarding link") from exc
        return link["url"]

    def retrieve_account(self, account_id: str) -> Dict[str, Any]:
        self._check_stripe_configured()
        try:
            account = stripe.Account.retrieve(account_id)
        except stripe.StripeError as exc:
            logger.error(f"Account retrieve failed for {account_id}: {exc}")
            raise PaymentProviderException("Unable to fetch Stripe account status") from exc
        return json.loads(str(account))
