# backend/homebridge/repositories/payout_repository.py
"""
Payout Repository

Eligibility for payout is computed in SQL: OFFER_NOW ledger rows on the
agent's listings that no payout item claims and whose latest refund request
(if any) is neither PENDING nor REFUNDED.
"""

from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy import and_, case, exists, func, or_, select
from sqlalchemy.orm import Session, selectinload

from homebridge.models.booking import Booking
from homebridge.models.listing import Listing
from homebridge.models.payment import PAYMENT_SUCCEEDED, StudentPayment, StudentPaymentType
from homebridge.models.payout import AgentPayout, AgentPayoutItem
from homebridge.models.refund_request import ACTIVE_REFUND_STATUSES, RefundRequest

from .base_repository import BaseRepository


def _latest_refund_status():
    return (
        select(RefundRequest.status)
        .where(RefundRequest.payment_id == StudentPayment.id)
        .order_by(RefundRequest.created_at.desc(), RefundRequest.id.desc())
        .limit(1)
        .correlate(StudentPayment)
        .scalar_subquery()
    )


class PayoutRepository(BaseRepository[AgentPayout]):
    def __init__(self, db: Session):
        super().__init__(db, AgentPayout)

    def list_eligible_payments(
        self, agent_id: str, payment_ids: Optional[Iterable[str]] = None
    ) -> List[StudentPayment]:
        latest_refund = _latest_refund_status()
        already_claimed = exists().where(AgentPayoutItem.payment_id == StudentPayment.id)

        stmt = (
            select(StudentPayment)
            .join(Booking, Booking.id == StudentPayment.booking_id)
            .join(Listing, Listing.id == Booking.listing_id)
            .where(
                and_(
                    Listing.agent_id == agent_id,
                    StudentPayment.type == StudentPaymentType.OFFER_NOW.value,
                    StudentPayment.status == PAYMENT_SUCCEEDED,
                    ~already_claimed,
                    or_(latest_refund.is_(None), latest_refund.not_in(ACTIVE_REFUND_STATUSES)),
                )
            )
            .order_by(StudentPayment.created_at.asc(), StudentPayment.id.asc())
        )
        if payment_ids is not None:
            stmt = stmt.where(StudentPayment.id.in_(list(payment_ids)))
        return list(self.db.execute(stmt).scalars())

    def create_with_items(self, items: List[Dict[str, Any]], **header: Any) -> AgentPayout:
        """Header plus one item per payment, flushed together. The caller owns the transaction."""
        payout = AgentPayout(**header)
        payout.items = [AgentPayoutItem(**item) for item in items]
        self.db.add(payout)
        self.db.flush()
        return payout

    def list_for_agent(self, agent_id: str, limit: int = 50) -> List[AgentPayout]:
        return list(
            self.db.execute(
                select(AgentPayout)
                .where(AgentPayout.agent_id == agent_id)
                .order_by(AgentPayout.created_at.desc())
                .limit(limit)
            ).scalars()
        )

    def get_for_agent(self, agent_id: str, payout_id: str) -> Optional[AgentPayout]:
        return self.db.execute(
            select(AgentPayout)
            .options(selectinload(AgentPayout.items))
            .where(AgentPayout.id == payout_id, AgentPayout.agent_id == agent_id)
        ).scalar_one_or_none()

    def paid_totals(self, agent_id: str, since: datetime) -> Dict[str, int]:
        recent = func.coalesce(
            func.sum(
                case((AgentPayout.created_at >= since, AgentPayout.net_cents), else_=0)
            ),
            0,
        )
        row = self.db.execute(
            select(
                recent.label("paid_recent"),
                func.coalesce(func.sum(AgentPayout.net_cents), 0).label("paid_total"),
                func.count(AgentPayout.id).label("payouts_count"),
            ).where(AgentPayout.agent_id == agent_id)
        ).one()
        return {
            "paid_recent_cents": int(row.paid_recent or 0),
            "total_paid_cents": int(row.paid_total or 0),
            "payouts_count": int(row.payouts_count or 0),
        }
