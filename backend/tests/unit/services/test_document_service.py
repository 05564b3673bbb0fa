import pytest

from homebridge.core.exceptions import ForbiddenException, NotFoundException, ValidationException
from homebridge.domain.booking_status import BookingStatus
from homebridge.models import StudentDocument
from homebridge.services.document_service import DocumentService


@pytest.fixture
def service(unit_db):
    return DocumentService(unit_db)


def _upload(name: str) -> dict:
    return {"filename": name, "url": f"https://files.example.com/{name}", "size": 2048}


class TestRegisterDocuments:
    def test_attaches_to_every_open_booking(self, service, student_principal, make_booking):
        paid = make_booking(fee_paid=True, status=BookingStatus.PAYMENT_COMPLETE)
        unpaid = make_booking()

        docs = service.register_documents(student_principal, [_upload("passport.pdf")])

        assert docs[0].category == "Passport/ID"
        assert paid.doc_ids == [docs[0].id]
        assert unpaid.doc_ids == [docs[0].id]
        assert paid.status == BookingStatus.READY_TO_SUBMIT.value
        assert unpaid.status == BookingStatus.PENDING_PAYMENT.value
        assert paid.docs_updated_at is not None

    def test_sticky_bookings_keep_status(self, service, student_principal, make_booking):
        approved = make_booking(fee_paid=True, status=BookingStatus.APPROVED)

        docs = service.register_documents(student_principal, [_upload("bank_statement.pdf")])

        assert approved.doc_ids == [docs[0].id]
        assert approved.status == BookingStatus.APPROVED.value

    def test_cancelled_bookings_are_untouched(self, service, student_principal, make_booking):
        cancelled = make_booking(fee_paid=True, status=BookingStatus.CANCELLED)

        service.register_documents(student_principal, [_upload("i20.pdf")])

        assert cancelled.doc_ids == []
        assert cancelled.docs_updated_at is None

    def test_merge_keeps_existing_ids_in_order(self, service, student_principal, make_booking):
        booking = make_booking(doc_ids=["existing"])

        docs = service.register_documents(
            student_principal, [_upload("a.pdf"), _upload("visa.pdf")]
        )

        assert booking.doc_ids == ["existing", docs[0].id, docs[1].id]

    def test_empty_upload_rejected(self, service, student_principal):
        with pytest.raises(ValidationException):
            service.register_documents(student_principal, [])


class TestDeleteDocument:
    def test_removes_id_and_rederives_status(
        self, unit_db, service, student, student_principal, make_document, make_booking
    ):
        doc = make_document(student)
        booking = make_booking(
            fee_paid=True, doc_ids=[doc.id], status=BookingStatus.READY_TO_SUBMIT
        )

        service.delete_document(student_principal, doc.id)

        assert booking.doc_ids == []
        assert booking.status == BookingStatus.PAYMENT_COMPLETE.value
        assert unit_db.get(StudentDocument, doc.id) is None

    def test_other_students_document_is_not_found(
        self, service, make_user, make_principal, make_document, student
    ):
        doc = make_document(student)
        other = make_principal(make_user())

        with pytest.raises(NotFoundException):
            service.delete_document(other, doc.id)


class TestSyncDocuments:
    def test_sync_all_open_bookings(
        self, service, student, student_principal, make_document, make_booking
    ):
        doc = make_document(student)
        first = make_booking(fee_paid=True, status=BookingStatus.PAYMENT_COMPLETE)
        second = make_booking()
        cancelled = make_booking(status=BookingStatus.CANCELLED)

        updated = service.sync_documents(student_principal)

        assert updated == 2
        assert first.doc_ids == [doc.id]
        assert first.status == BookingStatus.READY_TO_SUBMIT.value
        assert second.doc_ids == [doc.id]
        assert cancelled.doc_ids == []

    def test_sync_single_booking(
        self, service, student, student_principal, make_document, make_booking
    ):
        make_document(student)
        target = make_booking()
        other = make_booking()

        updated = service.sync_documents(student_principal, booking_id=target.id)

        assert updated == 1
        assert len(target.doc_ids) == 1
        assert other.doc_ids == []

    def test_sync_is_idempotent(
        self, service, student, student_principal, make_document, make_booking
    ):
        doc = make_document(student)
        booking = make_booking(doc_ids=[doc.id])

        service.sync_documents(student_principal)
        service.sync_documents(student_principal)

        assert booking.doc_ids == [doc.id]

    def test_sync_someone_elses_booking_is_forbidden(
        self, service, student, make_user, make_principal, make_document, make_booking
    ):
        make_document(student)
        booking = make_booking()
        stranger = make_principal(make_user())

        with pytest.raises(ForbiddenException):
            service.sync_documents(stranger, booking_id=booking.id)

        assert booking.doc_ids == []

    def test_sync_missing_booking(self, service, student_principal):
        with pytest.raises(NotFoundException) as exc_info:
            service.sync_documents(student_principal, booking_id="01HZZZZZZZZZZZZZZZZZZZZZZZ")

        assert exc_info.value.code == "BOOKING_NOT_FOUND"
