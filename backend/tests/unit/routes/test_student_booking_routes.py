import ulid

from homebridge.domain.booking_status import BookingStatus
from homebridge.models import StudentPayment


def test_create_and_list(client, student, listing, make_document, auth_headers):
    doc = make_document(student)

    response = client.post(
        "/api/student/bookings",
        json={
            "listing_id": listing.id,
            "check_in": "2026-09-01",
            "check_out": "2027-06-30",
            "doc_ids": [doc.id],
        },
        headers=auth_headers(student),
    )

    assert response.status_code == 201
    body = response.json()
    assert body["status"] == "PENDING_PAYMENT"
    assert body["doc_ids"] == [doc.id]

    listed = client.get("/api/student/bookings", headers=auth_headers(student))
    assert [b["id"] for b in listed.json()] == [body["id"]]


def test_create_rejects_inverted_dates(client, student, listing, auth_headers):
    response = client.post(
        "/api/student/bookings",
        json={"listing_id": listing.id, "check_in": "2026-09-01", "check_out": "2026-08-01"},
        headers=auth_headers(student),
    )

    assert response.status_code == 422
    assert response.json()["code"] == "validation_error"


def test_create_rejects_unknown_fields(client, student, listing, auth_headers):
    response = client.post(
        "/api/student/bookings",
        json={
            "listing_id": listing.id,
            "check_in": "2026-09-01",
            "check_out": "2027-06-30",
            "status": "APPROVED",
        },
        headers=auth_headers(student),
    )

    assert response.status_code == 422


def test_get_unknown_booking(client, student, auth_headers):
    response = client.get(f"/api/student/bookings/{ulid.ULID()}", headers=auth_headers(student))

    assert response.status_code == 404
    assert response.json()["code"] == "BOOKING_NOT_FOUND"


def test_get_rejects_malformed_id(client, student, auth_headers):
    response = client.get("/api/student/bookings/not-a-ulid", headers=auth_headers(student))

    assert response.status_code == 422


def test_get_includes_latest_offer(client, student, make_booking, make_offer, auth_headers):
    booking = make_booking(fee_paid=True, status=BookingStatus.APPROVED)
    offer = make_offer(booking)

    body = client.get(f"/api/student/bookings/{booking.id}", headers=auth_headers(student)).json()

    assert body["offer"]["id"] == offer.id
    assert body["offer"]["due_now_cents"] == 100000
    assert body["offer"]["lines"][0]["amountCents"] == 80000


def test_submit_without_fee(client, student, make_booking, auth_headers):
    booking = make_booking(doc_ids=["doc-1"])

    response = client.post(f"/api/student/bookings/{booking.id}/submit", headers=auth_headers(student))

    assert response.status_code == 400
    assert response.json()["code"] == "FEE_NOT_PAID"
    assert response.json()["detail"] == "Application fee not paid"


def test_other_students_booking_is_forbidden(client, make_user, make_booking, auth_headers):
    booking = make_booking()
    stranger = make_user()

    response = client.get(f"/api/student/bookings/{booking.id}", headers=auth_headers(stranger))

    assert response.status_code == 403


def test_app_fee_intent_uses_camel_case(client, gateway, student, make_booking, auth_headers):
    booking = make_booking()
    gateway.create_payment_intent.return_value = {"id": "pi_1", "client_secret": "pi_1_secret"}

    response = client.post(
        f"/api/student/bookings/{booking.id}/pay/app-fee/intent", headers=auth_headers(student)
    )

    assert response.status_code == 200
    body = response.json()
    assert body["clientSecret"] == "pi_1_secret"
    assert body["publishableKey"] == "pk_test_123"
    assert body["currency"] == "USD"


def test_offer_checkout(client, gateway, student, make_booking, make_offer, auth_headers):
    booking = make_booking(fee_paid=True, status=BookingStatus.APPROVED)
    make_offer(booking)
    gateway.create_checkout_session.return_value = {"id": "cs_1", "url": "https://checkout.stripe.com/c/cs_1"}

    response = client.post(
        f"/api/student/bookings/{booking.id}/pay/offer/checkout", headers=auth_headers(student)
    )

    assert response.status_code == 200
    assert response.json() == {"url": "https://checkout.stripe.com/c/cs_1"}


def test_accept_offer(client, student, make_booking, make_offer, auth_headers):
    booking = make_booking(fee_paid=True, status=BookingStatus.APPROVED)
    make_offer(booking)

    accepted = client.post(
        f"/api/student/bookings/{booking.id}/offer/accept", headers=auth_headers(student)
    )
    assert accepted.status_code == 200
    assert accepted.json()["status"] == "ACCEPTED"


def test_refund_request(client, student, make_booking, make_payment, auth_headers):
    booking = make_booking(fee_paid=True, status=BookingStatus.APPROVED)
    payment = make_payment(booking, amount_cents=50000)

    response = client.post(
        f"/api/student/bookings/{booking.id}/refund/request",
        json={"reason": "Visa refused", "amount_cents": 20000},
        headers=auth_headers(student),
    )

    assert response.status_code == 201
    body = response.json()
    assert body["status"] == "PENDING"
    assert body["payment_id"] == payment.id
    assert body["amount_cents"] == 20000

    again = client.post(
        f"/api/student/bookings/{booking.id}/refund/request", json={}, headers=auth_headers(student)
    )
    assert again.status_code == 400
    assert again.json()["code"] == "REFUND_ALREADY_REQUESTED"


def test_refund_without_payment(unit_db, client, student, make_booking, auth_headers):
    booking = make_booking()

    response = client.post(
        f"/api/student/bookings/{booking.id}/refund/request", json={}, headers=auth_headers(student)
    )

    assert response.status_code == 400
    assert response.json()["detail"] == "No successful payment to refund."
    assert unit_db.query(StudentPayment).count() == 0


def test_patch_documents_moves_booking_forward(client, student, make_document, make_booking, auth_headers):
    doc = make_document(student)
    booking = make_booking(fee_paid=True, status=BookingStatus.PAYMENT_COMPLETE)

    response = client.patch(
        f"/api/student/bookings/{booking.id}",
        json={"doc_ids": [doc.id], "note": "Arriving late"},
        headers=auth_headers(student),
    )

    assert response.status_code == 200
    body = response.json()
    assert body["doc_ids"] == [doc.id]
    assert body["note"] == "Arriving late"
    assert body["docs_updated_at"] is not None
    assert body["status"] == "READY_TO_SUBMIT"
    assert body["check_in"] == "2026-09-01"


def test_patch_someone_elses_booking(client, make_user, make_booking, auth_headers):
    booking = make_booking()

    response = client.patch(
        f"/api/student/bookings/{booking.id}",
        json={"note": "hello"},
        headers=auth_headers(make_user()),
    )

    assert response.status_code == 403


def test_patch_rejects_status_field(client, student, make_booking, auth_headers):
    booking = make_booking()

    response = client.patch(
        f"/api/student/bookings/{booking.id}",
        json={"status": "APPROVED"},
        headers=auth_headers(student),
    )

    assert response.status_code == 422
    assert booking.status == BookingStatus.PENDING_PAYMENT.value


def test_submit_cancelled_booking(client, student, make_booking, auth_headers):
    booking = make_booking(fee_paid=True, doc_ids=["doc-1"], status=BookingStatus.CANCELLED)

    response = client.post(f"/api/student/bookings/{booking.id}/submit", headers=auth_headers(student))

    assert response.status_code == 400
    assert response.json()["code"] == "INVALID_STATUS"
