# backend/homebridge/services/connect_service.py
"""
Stripe Connect onboarding for agents.

An agent gets one Express account, created on first request and stored on
their profile. Stripe hosts the onboarding and update forms; we only hand
out links to them and cache the account's capability flags.
"""

from typing import Any, Dict, Optional

from sqlalchemy.orm import Session

from ..core.config import Settings, settings as default_settings
from ..core.exceptions import ValidationException
from ..principal import Principal
from ..repositories.factory import RepositoryFactory
from .base import BaseService
from .stripe_gateway import StripeGateway

ONBOARDING_LINK = "account_onboarding"
UPDATE_LINK = "account_update"


def requirements_summary(account: Dict[str, Any]) -> Optional[str]:
    """Comma-joined outstanding requirements: currently due first, else past due."""
    requirements = account.get("requirements") or {}
    for key in ("currently_due", "past_due"):
        due = requirements.get(key) or []
        if due:
            return ", ".join(due)
    return None


class ConnectService(BaseService):
    def __init__(self, db: Session, gateway: StripeGateway, config: Optional[Settings] = None):
        super().__init__(db)
        self.gateway = gateway
        self.settings = config or default_settings
        self.agent_profile_repository = RepositoryFactory.create_agent_profile_repository(db)

    def _account_link(self, account_id: str, link_type: str) -> Dict[str, str]:
        settings_url = f"{self.settings.frontend_url}/dashboard/agent/settings"
        url = self.gateway.create_account_link(
            account_id=account_id,
            link_type=link_type,
            refresh_url=f"{settings_url}?onboarding=retry",
            return_url=f"{settings_url}?onboarding=done",
        )
        return {"url": url}

    @BaseService.measure_operation("connect_start_onboarding")
    def start_onboarding(self, principal: Principal) -> Dict[str, str]:
        """Create the agent's Express account if needed and return an onboarding link."""
        profile = self.agent_profile_repository.get_by_id(principal.id)
        account_id = profile.stripe_account_id if profile is not None else None
        if not account_id:
            account_id = self.gateway.create_connected_account(
                agent_id=principal.id, email=principal.email
            )
            with self.transaction():
                self.agent_profile_repository.link_account(principal.id, account_id)
            self.logger.info(f"Created Stripe account {account_id} for agent {principal.id}")
        return self._account_link(account_id, ONBOARDING_LINK)

    @BaseService.measure_operation("connect_update_link")
    def update_link(self, principal: Principal) -> Dict[str, str]:
        profile = self.agent_profile_repository.get_by_id(principal.id)
        if profile is None or not profile.stripe_account_id:
            raise ValidationException(
                "Stripe account not found. Start onboarding first.", code="STRIPE_ACCOUNT_MISSING"
            )
        return self._account_link(profile.stripe_account_id, UPDATE_LINK)

    @BaseService.measure_operation("connect_account_status")
    def account_status(self, principal: Principal) -> Dict[str, Any]:
        """Live account status from Stripe; the flags are cached on the profile."""
        if not self.settings.stripe_configured:
            return {"connected": False}
        profile = self.agent_profile_repository.get_by_id(principal.id)
        if profile is None or not profile.stripe_account_id:
            return {"connected": False}

        account = self.gateway.retrieve_account(profile.stripe_account_id)
        flags = {
            "payouts_enabled": bool(account.get("payouts_enabled")),
            "charges_enabled": bool(account.get("charges_enabled")),
            "details_submitted": bool(account.get("details_submitted")),
        }
        with self.transaction():
            self.agent_profile_repository.update_account_flags(profile.stripe_account_id, **flags)
        return {"connected": True, **flags, "requirements": requirements_summary(account)}
