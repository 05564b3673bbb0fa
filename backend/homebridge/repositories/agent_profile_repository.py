# backend/homebridge/repositories/agent_profile_repository.py
"""Agent profile data access: Connect account flags and onboarding-fee state."""

from datetime import datetime
from typing import Any, Optional

from sqlalchemy import func, update
from sqlalchemy.orm import Session

from homebridge.models.user import AgentProfile

from .base_repository import BaseRepository


class AgentProfileRepository(BaseRepository[AgentProfile]):
    def __init__(self, db: Session):
        super().__init__(db, AgentProfile)

    def get_or_create(self, agent_id: str) -> AgentProfile:
        profile = self.get_by_id(agent_id)
        if profile is None:
            profile = self.create(user_id=agent_id)
        return profile

    def get_by_account_id(self, stripe_account_id: str) -> Optional[AgentProfile]:
        return self.find_one_by(stripe_account_id=stripe_account_id)

    def link_account(self, agent_id: str, stripe_account_id: str) -> AgentProfile:
        profile = self.get_or_create(agent_id)
        profile.stripe_account_id = stripe_account_id
        self.db.flush()
        return profile

    def update_account_flags(self, stripe_account_id: str, **flags: Any) -> bool:
        profile = self.get_by_account_id(stripe_account_id)
        if profile is None:
            return False
        for key, value in flags.items():
            setattr(profile, key, bool(value))
        self.db.flush()
        return True

    def mark_onboarding_paid(
        self,
        agent_id: str,
        *,
        paid_at: datetime,
        payment_intent_id: str,
        amount_cents: int,
        currency: str,
    ) -> AgentProfile:
        """Set onboarding fields only where still empty."""
        self.get_or_create(agent_id)
        self.db.execute(
            update(AgentProfile)
            .where(AgentProfile.user_id == agent_id)
            .values(
                onboarding_paid_at=func.coalesce(AgentProfile.onboarding_paid_at, paid_at),
                onboarding_payment_intent_id=func.coalesce(
                    AgentProfile.onboarding_payment_intent_id, payment_intent_id
                ),
                onboarding_amount_cents=func.coalesce(
                    AgentProfile.onboarding_amount_cents, amount_cents
                ),
                onboarding_currency=func.coalesce(AgentProfile.onboarding_currency, currency),
            )
            .execution_options(synchronize_session=False)
        )
        return self.db.get(AgentProfile, agent_id, populate_existing=True)
