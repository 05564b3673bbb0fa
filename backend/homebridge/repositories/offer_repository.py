# backend/homebridge/repositories/offer_repository.py
"""Offer Repository. "Active" always means the most recently created offer."""

from datetime import datetime
from typing import List, Optional

from sqlalchemy import func, update
from sqlalchemy.orm import Session

from homebridge.domain.offer_lines import OfferStatus
from homebridge.models.offer import Offer

from .base_repository import BaseRepository


class OfferRepository(BaseRepository[Offer]):
    def __init__(self, db: Session):
        super().__init__(db, Offer)

    def get_latest_for_booking(self, booking_id: str) -> Optional[Offer]:
        return (
            self.db.query(Offer)
            .filter(Offer.booking_id == booking_id)
            .order_by(Offer.created_at.desc(), Offer.id.desc())
            .first()
        )

    def list_for_booking(self, booking_id: str) -> List[Offer]:
        return (
            self.db.query(Offer)
            .filter(Offer.booking_id == booking_id)
            .order_by(Offer.created_at.asc(), Offer.id.asc())
            .all()
        )

    def mark_paid_now(self, offer_id: str, paid_at: datetime, method: str) -> Optional[Offer]:
        """
        Payment success implies acceptance. Timestamps are only ever filled in,
        so a replayed event is a no-op.
        """
        self.db.execute(
            update(Offer)
            .where(Offer.id == offer_id)
            .values(
                paid_now_at=func.coalesce(Offer.paid_now_at, paid_at),
                pay_method=func.coalesce(Offer.pay_method, method),
                status=OfferStatus.ACCEPTED.value,
                accepted_at=func.coalesce(Offer.accepted_at, paid_at),
                updated_at=paid_at,
            )
            .execution_options(synchronize_session=False)
        )
        return self.db.get(Offer, offer_id, populate_existing=True)

    def expire_sent_before(self, now: datetime) -> int:
        result = self.db.execute(
            update(Offer)
            .where(
                Offer.status == OfferStatus.SENT.value,
                Offer.expires_at.is_not(None),
                Offer.expires_at < now,
            )
            .values(status=OfferStatus.EXPIRED.value, updated_at=now)
            .execution_options(synchronize_session=False)
        )
        return int(result.rowcount or 0)
