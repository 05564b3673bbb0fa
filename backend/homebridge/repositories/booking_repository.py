# backend/homebridge/repositories/booking_repository.py
"""
Booking Repository

Data access for bookings. Fee-paid state is written with set-if-unset SQL
(``COALESCE``) so replays of the same payment event can never move a
timestamp.
"""

from datetime import datetime
from typing import List, Optional

from sqlalchemy import func, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, joinedload

from homebridge.core.exceptions import RepositoryException
from homebridge.domain.booking_status import BookingStatus
from homebridge.models.booking import Booking

from .base_repository import BaseRepository


class BookingRepository(BaseRepository[Booking]):
    def __init__(self, db: Session):
        super().__init__(db, Booking)

    def get_with_listing(self, booking_id: str) -> Optional[Booking]:
        return (
            self.db.query(Booking)
            .options(joinedload(Booking.listing))
            .filter(Booking.id == booking_id)
            .first()
        )

    def list_for_student(self, student_id: str) -> List[Booking]:
        return (
            self.db.query(Booking)
            .filter(Booking.student_id == student_id)
            .order_by(Booking.created_at.desc())
            .all()
        )

    def list_open_for_student(
        self, student_id: str, booking_id: Optional[str] = None
    ) -> List[Booking]:
        """Student bookings that document bookkeeping applies to (everything but CANCELLED)."""
        query = self.db.query(Booking).filter(
            Booking.student_id == student_id,
            Booking.status != BookingStatus.CANCELLED.value,
        )
        if booking_id is not None:
            query = query.filter(Booking.id == booking_id)
        return query.order_by(Booking.created_at.asc()).all()

    def mark_fee_paid(self, booking_id: str, paid_at: datetime, method: str) -> Optional[Booking]:
        """
        Record the application fee without overwriting an earlier record, then
        re-derive status from the reloaded flags.
        """
        try:
            self.db.execute(
                update(Booking)
                .where(Booking.id == booking_id)
                .values(
                    fee_paid_at=func.coalesce(Booking.fee_paid_at, paid_at),
                    payment_method=func.coalesce(Booking.payment_method, method),
                )
                .execution_options(synchronize_session=False)
            )
            booking = self.db.get(Booking, booking_id, populate_existing=True)
            if booking is None:
                return None
            booking.refresh_status()
            self.db.flush()
            return booking
        except SQLAlchemyError as e:
            self.logger.error(f"Error marking fee paid for booking {booking_id}: {str(e)}")
            raise RepositoryException(f"Failed to mark fee paid: {str(e)}")
