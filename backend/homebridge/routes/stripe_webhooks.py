# backend/homebridge/routes/stripe_webhooks.py
"""
Stripe Webhook Endpoint

The raw body and ``stripe-signature`` header are checked before anything is
parsed. A bad signature is rejected with 400 and nothing is touched. Once
verified, the event is handed to the reconciler. Stripe gets
``{"received": true}`` back unless a database or Stripe failure stopped
the event from being recorded; that answers 500 so Stripe redelivers.
"""

import asyncio
import logging

from fastapi import APIRouter, Depends, HTTPException, Request, status
import stripe

from ..api.dependencies.services import get_stripe_gateway, get_webhook_reconciler
from ..core.exceptions import ServiceException
from ..schemas.payment import WebhookResponse
from ..services.stripe_gateway import StripeGateway
from ..services.webhook_reconciler import WebhookReconciler
from .utils import handle_domain_exception

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/webhooks", tags=["stripe-webhooks"])


@router.post("/stripe", response_model=WebhookResponse)
async def handle_stripe_webhook(
    request: Request,
    gateway: StripeGateway = Depends(get_stripe_gateway),
    reconciler: WebhookReconciler = Depends(get_webhook_reconciler),
) -> WebhookResponse:
    payload = await request.body()

    if not gateway.webhook_configured:
        logger.warning("Stripe webhook received but no webhook secret is configured; ignoring")
        return WebhookResponse(received=True)

    signature = request.headers.get("stripe-signature")
    if not signature:
        logger.warning("Missing Stripe signature header")
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST, detail="Missing stripe-signature header"
        )

    try:
        event = gateway.construct_event(payload, signature)
    except (stripe.SignatureVerificationError, ValueError) as e:
        logger.warning(f"Invalid Stripe webhook signature: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid webhook signature"
        )

    try:
        await asyncio.to_thread(reconciler.handle, event)
    except ServiceException as e:
        handle_domain_exception(e)
    return WebhookResponse(received=True)
