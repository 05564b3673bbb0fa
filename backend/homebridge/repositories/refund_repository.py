# backend/homebridge/repositories/refund_repository.py
"""
Refund Repository

Status changes go through ``transition``: a single-row conditional update
guarded on the expected current status, so two admins (or an admin and the
webhook) cannot both settle the same request.
"""

from typing import Any, List, Optional

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from homebridge.models.refund_request import ACTIVE_REFUND_STATUSES, RefundRequest, RefundStatus

from .base_repository import BaseRepository


class RefundRepository(BaseRepository[RefundRequest]):
    def __init__(self, db: Session):
        super().__init__(db, RefundRequest)

    def has_active_request(self, payment_id: str) -> bool:
        return (
            self.db.query(RefundRequest.id)
            .filter(
                RefundRequest.payment_id == payment_id,
                RefundRequest.status.in_(ACTIVE_REFUND_STATUSES),
            )
            .first()
            is not None
        )

    def has_refunded(self, payment_id: str) -> bool:
        return self.exists(payment_id=payment_id, status=RefundStatus.REFUNDED.value)

    def latest_pending_for_payment(self, payment_id: str) -> Optional[RefundRequest]:
        return self.db.execute(
            select(RefundRequest)
            .where(
                RefundRequest.payment_id == payment_id,
                RefundRequest.status == RefundStatus.PENDING.value,
            )
            .order_by(RefundRequest.created_at.desc(), RefundRequest.id.desc())
            .limit(1)
        ).scalar_one_or_none()

    def list_for_payment(self, payment_id: str) -> List[RefundRequest]:
        return (
            self.db.query(RefundRequest)
            .filter(RefundRequest.payment_id == payment_id)
            .order_by(RefundRequest.created_at.asc())
            .all()
        )

    def transition(self, refund_id: str, from_status: RefundStatus, **values: Any) -> bool:
        """Apply ``values`` only if the row is still in ``from_status``. Returns True if updated."""
        result = self.db.execute(
            update(RefundRequest)
            .where(RefundRequest.id == refund_id, RefundRequest.status == from_status.value)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        updated = bool(result.rowcount)
        if updated:
            # Pull the committed-by-statement values into the identity map
            self.db.get(RefundRequest, refund_id, populate_existing=True)
        return updated
