# backend/homebridge/services/document_service.py
"""
Student document bookkeeping.

Documents are owned by the student, not by a booking: registering a
document attaches it to every open (non-CANCELLED) booking, deleting it
detaches it everywhere, and sync re-merges the full set. Each touched
booking re-derives its status; sticky statuses are left alone.
"""

from datetime import datetime, timezone
from typing import Iterable, List, Mapping, Optional, Sequence

from sqlalchemy.orm import Session

from ..core.exceptions import ForbiddenException, NotFoundException, ValidationException
from ..models.booking import Booking
from ..models.student_document import StudentDocument, guess_category
from ..principal import Principal
from ..repositories.factory import RepositoryFactory
from .base import BaseService


def _merge_unique(existing: Iterable[str], extra: Iterable[str]) -> List[str]:
    return list(dict.fromkeys([*existing, *extra]))


class DocumentService(BaseService):
    def __init__(self, db: Session):
        super().__init__(db)
        self.document_repository = RepositoryFactory.create_document_repository(db)
        self.booking_repository = RepositoryFactory.create_booking_repository(db)

    def list_documents(self, principal: Principal) -> List[StudentDocument]:
        return self.document_repository.list_for_user(principal.id)

    def _apply_doc_ids(self, booking: Booking, doc_ids: List[str], now: datetime) -> None:
        booking.doc_ids = doc_ids
        booking.docs_updated_at = now
        booking.refresh_status()

    @BaseService.measure_operation("register_documents")
    def register_documents(
        self, principal: Principal, documents: Sequence[Mapping[str, object]]
    ) -> List[StudentDocument]:
        """Record uploaded document metadata and attach the new ids to open bookings."""
        if not documents:
            raise ValidationException("No files uploaded", code="NO_DOCUMENTS")

        now = datetime.now(timezone.utc)
        with self.transaction():
            created = []
            for doc in documents:
                filename = str(doc.get("filename") or "Document")
                created.append(
                    self.document_repository.create(
                        user_id=principal.id,
                        filename=filename,
                        mime=doc.get("mime"),
                        size=int(doc.get("size") or 0),
                        url=str(doc["url"]),
                        category=doc.get("category") or guess_category(filename),
                    )
                )
            new_ids = [doc.id for doc in created]
            for booking in self.booking_repository.list_open_for_student(principal.id):
                self._apply_doc_ids(booking, _merge_unique(booking.document_ids, new_ids), now)
            self.booking_repository.flush()

        self.logger.info(f"Registered {len(created)} documents for student {principal.id}")
        return created

    @BaseService.measure_operation("delete_document")
    def delete_document(self, principal: Principal, document_id: str) -> None:
        doc = self.document_repository.get_by_id(document_id)
        if doc is None or doc.user_id != principal.id:
            raise NotFoundException("Document not found", code="DOCUMENT_NOT_FOUND")

        now = datetime.now(timezone.utc)
        with self.transaction():
            self.document_repository.delete(doc.id)
            for booking in self.booking_repository.list_open_for_student(principal.id):
                remaining = [doc_id for doc_id in booking.document_ids if doc_id != document_id]
                self._apply_doc_ids(booking, remaining, now)
            self.booking_repository.flush()

    @BaseService.measure_operation("sync_documents")
    def sync_documents(self, principal: Principal, booking_id: Optional[str] = None) -> int:
        """
        Merge all of the student's document ids into one or all open bookings.

        A named booking must exist and belong to the caller; a CANCELLED one is
        skipped.
        """
        if booking_id is not None:
            booking = self.booking_repository.get_by_id(booking_id)
            if booking is None:
                raise NotFoundException("Booking not found", code="BOOKING_NOT_FOUND")
            if booking.student_id != principal.id:
                raise ForbiddenException("You do not have access to this booking")

        all_ids = self.document_repository.ids_for_user(principal.id)
        bookings = self.booking_repository.list_open_for_student(principal.id, booking_id)

        now = datetime.now(timezone.utc)
        with self.transaction():
            for booking in bookings:
                self._apply_doc_ids(booking, _merge_unique(booking.document_ids, all_ids), now)
            self.booking_repository.flush()
        return len(bookings)
