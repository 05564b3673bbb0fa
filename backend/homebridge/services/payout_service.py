# backend/homebridge/services/payout_service.py
"""
Payout Batcher

Groups an agent's eligible OFFER_NOW ledger rows into one payout. The
Stripe transfer happens first; the header and its items are then written in
a single transaction. The unique constraint on the item's payment id is what
keeps two concurrent batches from claiming the same payment: the loser's
transaction fails as a whole.
"""

from datetime import datetime, timedelta, timezone
import hashlib
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy.orm import Session

from ..core.config import Settings, settings as default_settings
from ..core.exceptions import ForbiddenException, NotFoundException, ValidationException
from ..models.payment import StudentPayment
from ..models.payout import PAYOUT_STATUS_PAID, AgentPayout
from ..principal import Principal
from ..repositories.factory import RepositoryFactory
from .base import BaseService
from .stripe_gateway import StripeGateway

SUMMARY_WINDOW_DAYS = 30


def batch_idempotency_key(payment_ids: Iterable[str]) -> str:
    digest = hashlib.sha256(",".join(sorted(payment_ids)).encode("utf-8")).hexdigest()
    return f"payout:{digest}"


class PayoutService(BaseService):
    def __init__(self, db: Session, gateway: StripeGateway, config: Optional[Settings] = None):
        super().__init__(db)
        self.gateway = gateway
        self.settings = config or default_settings
        self.payout_repository = RepositoryFactory.create_payout_repository(db)
        self.agent_profile_repository = RepositoryFactory.create_agent_profile_repository(db)

    def resolve_agent_id(self, principal: Principal, agent_id: Optional[str] = None) -> str:
        """Agents act on themselves only; admins must name the agent."""
        if principal.is_admin:
            if not agent_id:
                raise ValidationException("agent_id is required", code="AGENT_ID_REQUIRED")
            return agent_id
        if agent_id and agent_id != principal.id:
            raise ForbiddenException("Agents can only view or pay out their own earnings")
        return principal.id

    def compute_fee(self, amount_cents: int, fee_cents: Optional[int] = None) -> int:
        if fee_cents is not None:
            if fee_cents < 0:
                raise ValidationException("fee_cents must not be negative", code="INVALID_FEE")
            return int(fee_cents)
        percentage_fee = round(amount_cents * self.settings.payout_fee_percentage / 100)
        return self.settings.payout_fee_flat_cents + int(percentage_fee)

    # ------------------------------------------------------------------- reads

    def list_eligible_payments(self, principal: Principal, agent_id: Optional[str] = None) -> List[StudentPayment]:
        return self.payout_repository.list_eligible_payments(self.resolve_agent_id(principal, agent_id))

    @BaseService.measure_operation("payout_summary")
    def summary(self, principal: Principal, agent_id: Optional[str] = None) -> Dict[str, Any]:
        agent_id = self.resolve_agent_id(principal, agent_id)
        eligible = self.payout_repository.list_eligible_payments(agent_id)
        since = datetime.now(timezone.utc) - timedelta(days=SUMMARY_WINDOW_DAYS)
        totals = self.payout_repository.paid_totals(agent_id, since)
        return {
            "agent_id": agent_id,
            "payable_now_cents": sum(p.amount_cents for p in eligible),
            "eligible_count": len(eligible),
            "paid_last_30_cents": totals["paid_recent_cents"],
            "total_paid_cents": totals["total_paid_cents"],
            "payouts_count": totals["payouts_count"],
        }

    def list_payouts(self, principal: Principal, agent_id: Optional[str] = None) -> List[AgentPayout]:
        return self.payout_repository.list_for_agent(self.resolve_agent_id(principal, agent_id))

    def get_payout(
        self, principal: Principal, payout_id: str, agent_id: Optional[str] = None
    ) -> AgentPayout:
        payout = self.payout_repository.get_for_agent(
            self.resolve_agent_id(principal, agent_id), payout_id
        )
        if payout is None:
            raise NotFoundException("Payout not found", code="PAYOUT_NOT_FOUND")
        return payout

    # ------------------------------------------------------------------ create

    @BaseService.measure_operation("create_payout")
    def create_payout(
        self,
        principal: Principal,
        agent_id: Optional[str] = None,
        *,
        payment_ids: Optional[List[str]] = None,
        note: Optional[str] = None,
        period_start: Optional[datetime] = None,
        period_end: Optional[datetime] = None,
        fee_cents: Optional[int] = None,
    ) -> AgentPayout:
        """
        Pay out eligible payments to the agent's connected account.

        Requested ids that are not eligible are silently left out. If the
        transfer fails nothing is written; if the write fails the whole batch
        rolls back.
        """
        agent_id = self.resolve_agent_id(principal, agent_id)
        rows = self.payout_repository.list_eligible_payments(agent_id, payment_ids)
        if not rows:
            raise ValidationException("No eligible payments", code="NO_ELIGIBLE_PAYMENTS")

        currencies = {row.currency.upper() for row in rows}
        if len(currencies) > 1:
            raise ValidationException(
                "Payments in one payout must share a currency",
                code="MIXED_CURRENCY",
                details={"currencies": sorted(currencies)},
            )
        currency = currencies.pop()

        amount = sum(row.amount_cents for row in rows)
        fee = self.compute_fee(amount, fee_cents)
        net = amount - fee
        if net <= 0:
            raise ValidationException(
                "Payout net amount must be positive",
                code="NON_POSITIVE_NET",
                details={"amount_cents": amount, "fee_cents": fee},
            )

        profile = self.agent_profile_repository.get_by_id(agent_id)
        if profile is None or not profile.stripe_account_id:
            raise ValidationException(
                "Agent has no connected Stripe account", code="NO_CONNECTED_ACCOUNT"
            )

        included_ids = [row.id for row in rows]
        transfer_id = self.gateway.create_transfer(
            amount_cents=net,
            currency=currency,
            destination=profile.stripe_account_id,
            idempotency_key=batch_idempotency_key(included_ids),
            metadata={"agentId": agent_id, "paymentCount": str(len(rows))},
        )

        with self.transaction():
            payout = self.payout_repository.create_with_items(
                [{"payment_id": row.id, "amount_cents": row.amount_cents} for row in rows],
                agent_id=agent_id,
                amount_cents=amount,
                currency=currency,
                fees_cents=fee,
                net_cents=net,
                tx_count=len(rows),
                period_start=period_start,
                period_end=period_end,
                status=PAYOUT_STATUS_PAID,
                external_ref=transfer_id,
                note=(note or "").strip() or None,
            )

        self.logger.info(
            f"Payout {payout.id} for agent {agent_id}: {len(rows)} payments, net {net} {currency}"
        )
        return payout
