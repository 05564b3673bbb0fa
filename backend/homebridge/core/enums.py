# backend/homebridge/core/enums.py
"""
Core enums for the HomeBridge marketplace.

Wire values are stable: clients and Stripe metadata depend on them.
"""

from enum import Enum


class RoleName(str, Enum):
    """Roles carried by authenticated principals."""

    SUPERADMIN = "SUPERADMIN"
    ADMIN = "ADMIN"
    AGENT = "AGENT"
    STUDENT = "STUDENT"


ADMIN_ROLES = frozenset({RoleName.ADMIN.value, RoleName.SUPERADMIN.value})
AGENT_ROLES = frozenset({RoleName.AGENT.value, *ADMIN_ROLES})


class PaymentPurpose(str, Enum):
    """Metadata tag attached to every PaymentIntent / Checkout Session we create."""

    STUDENT_APP_FEE = "student_app_fee"
    STUDENT_OFFER_NOW = "student_offer_now"
    AGENT_ONBOARDING = "agent_onboarding"


class PayMethod(str, Enum):
    CARD = "CARD"
    MPESA = "MPESA"
