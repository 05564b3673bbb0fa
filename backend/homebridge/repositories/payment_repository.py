# backend/homebridge/repositories/payment_repository.py
"""
Payment ledger repository.

Inserts are idempotent on ``stripe_payment_intent_id``: PostgreSQL uses
``ON CONFLICT DO NOTHING`` and SQLite ``INSERT OR IGNORE``. A duplicate
webhook delivery therefore inserts nothing and raises nothing.
"""

from __future__ import annotations

import logging
from typing import Any, List, Optional, Type

from sqlalchemy import insert, or_, select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.orm import Session
import ulid

from homebridge.database.session_utils import get_dialect_name
from homebridge.models.payment import PAYMENT_SUCCEEDED, AgentPayment, StudentPayment

logger = logging.getLogger(__name__)


class PaymentRepository:
    """Data access helpers for student and agent ledger rows."""

    def __init__(self, db: Session):
        self.db = db
        self._dialect = get_dialect_name(db, default="postgresql").lower()

    # ------------------------------------------------------------------ inserts
    def _insert_if_absent(self, model: Type[Any], values: dict[str, Any]) -> bool:
        """Insert a ledger row unless one exists for its payment intent. Returns True if inserted."""
        row = {"id": str(ulid.ULID()), "status": PAYMENT_SUCCEEDED, **values}

        if self._dialect == "postgresql":
            stmt = (
                pg_insert(model)
                .values(**row)
                .on_conflict_do_nothing(index_elements=["stripe_payment_intent_id"])
                .returning(model.id)
            )
            inserted = self.db.execute(stmt).scalar_one_or_none() is not None
        else:
            stmt = insert(model).values(**row)
            if self._dialect == "sqlite":
                stmt = stmt.prefix_with("OR IGNORE")
            result = self.db.execute(stmt)
            inserted = bool(getattr(result, "rowcount", 0))

        if inserted:
            self.db.flush()
            logger.info(
                "Ledger row recorded",
                extra={"table": model.__tablename__, "payment_intent": row["stripe_payment_intent_id"]},
            )
        else:
            logger.info(
                f"Duplicate ledger insert ignored for {row['stripe_payment_intent_id']}"
            )
        return inserted

    def insert_student_payment(self, **values: Any) -> bool:
        return self._insert_if_absent(StudentPayment, values)

    def insert_agent_payment(self, **values: Any) -> bool:
        return self._insert_if_absent(AgentPayment, values)

    # ---------------------------------------------------------------- fetchers
    def get_student_payment(self, payment_id: str) -> Optional[StudentPayment]:
        return self.db.get(StudentPayment, payment_id)

    def get_by_payment_intent(self, payment_intent_id: str) -> Optional[StudentPayment]:
        return self.db.execute(
            select(StudentPayment).where(
                StudentPayment.stripe_payment_intent_id == payment_intent_id
            )
        ).scalar_one_or_none()

    def get_agent_payment_by_intent(self, payment_intent_id: str) -> Optional[AgentPayment]:
        return self.db.execute(
            select(AgentPayment).where(AgentPayment.stripe_payment_intent_id == payment_intent_id)
        ).scalar_one_or_none()

    def find_by_charge_or_intent(
        self, charge_id: Optional[str], payment_intent_id: Optional[str]
    ) -> Optional[StudentPayment]:
        """Locate a ledger row by charge id first, then by payment intent id."""
        clauses = []
        if charge_id:
            clauses.append(StudentPayment.stripe_charge_id == charge_id)
        if payment_intent_id:
            clauses.append(StudentPayment.stripe_payment_intent_id == payment_intent_id)
        if not clauses:
            return None
        candidates = self.db.execute(select(StudentPayment).where(or_(*clauses))).scalars().all()
        for row in candidates:
            if charge_id and row.stripe_charge_id == charge_id:
                return row
        return candidates[0] if candidates else None

    def latest_succeeded_for_booking(self, booking_id: str) -> Optional[StudentPayment]:
        return self.db.execute(
            select(StudentPayment)
            .where(
                StudentPayment.booking_id == booking_id,
                StudentPayment.status == PAYMENT_SUCCEEDED,
            )
            .order_by(StudentPayment.created_at.desc(), StudentPayment.id.desc())
            .limit(1)
        ).scalar_one_or_none()

    def list_for_booking(self, booking_id: str) -> List[StudentPayment]:
        return list(
            self.db.execute(
                select(StudentPayment)
                .where(StudentPayment.booking_id == booking_id)
                .order_by(StudentPayment.created_at.asc())
            ).scalars()
        )
