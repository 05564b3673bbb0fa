"""Schemas for payment initiation, Connect onboarding and the Stripe webhook acknowledgement."""

from typing import Optional

from pydantic import ConfigDict, Field

from ._strict_base import StrictModel


class PaymentIntentResponse(StrictModel):
    """Client-side confirmation data for a PaymentIntent."""

    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    client_secret: str = Field(..., serialization_alias="clientSecret")
    publishable_key: str = Field(..., serialization_alias="publishableKey")
    amount_cents: int = Field(..., serialization_alias="amountCents")
    currency: str


class CheckoutSessionResponse(StrictModel):
    url: str



class ConnectStatusResponse(StrictModel):
    """Connect account state; only ``connected`` is set when no account exists yet."""

    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    connected: bool
    payouts_enabled: Optional[bool] = Field(default=None, serialization_alias="payoutsEnabled")
    charges_enabled: Optional[bool] = Field(default=None, serialization_alias="chargesEnabled")
    details_submitted: Optional[bool] = Field(default=None, serialization_alias="detailsSubmitted")
    requirements: Optional[str] = None


class WebhookResponse(StrictModel):
    """Acknowledgement returned to Stripe for every verified delivery."""

    received: bool = True
