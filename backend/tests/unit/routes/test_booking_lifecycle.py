"""Full student journey: booking, documents, fee, review, offer, payment and refund."""

import json
from unittest.mock import patch

import pytest

from homebridge.api.dependencies.services import get_stripe_gateway
from homebridge.core.config import Settings
from homebridge.models import StudentPayment
from homebridge.services.stripe_gateway import StripeGateway

WEBHOOK_SECRET = "whsec_lifecycle"


@pytest.fixture
def live_gateway(app):
    gateway = StripeGateway(
        Settings(stripe_secret_key="sk_test_lifecycle", stripe_webhook_secret=WEBHOOK_SECRET)
    )
    app.dependency_overrides[get_stripe_gateway] = lambda: gateway
    return gateway


def deliver(client, sign_payload, event_type, obj):
    payload = json.dumps({"id": f"evt_{obj['id']}", "type": event_type, "data": {"object": obj}}).encode()
    response = client.post(
        "/api/webhooks/stripe",
        content=payload,
        headers={"stripe-signature": sign_payload(payload, WEBHOOK_SECRET)},
    )
    assert response.status_code == 200
    return response


def test_booking_to_refund(
    unit_db, client, live_gateway, student, agent, admin, listing, auth_headers, sign_payload
):
    student_headers = auth_headers(student)

    booking = client.post(
        "/api/student/bookings",
        json={"listing_id": listing.id, "check_in": "2026-09-01", "check_out": "2027-06-30"},
        headers=student_headers,
    ).json()
    booking_id = booking["id"]
    assert booking["status"] == "PENDING_PAYMENT"

    docs = client.post(
        "/api/student/docs",
        json={"documents": [{"filename": "passport.pdf", "url": "https://files.example.com/p.pdf", "size": 2048}]},
        headers=student_headers,
    ).json()
    booking = client.get(f"/api/student/bookings/{booking_id}", headers=student_headers).json()
    assert booking["doc_ids"] == [docs[0]["id"]]
    assert booking["status"] == "PENDING_PAYMENT"

    deliver(
        client,
        sign_payload,
        "payment_intent.succeeded",
        {
            "id": "pi_fee_lifecycle",
            "amount": 2500,
            "currency": "usd",
            "metadata": {"type": "student_app_fee", "userId": student.id, "bookingId": booking_id},
            "latest_charge": "ch_fee_lifecycle",
        },
    )
    booking = client.get(f"/api/student/bookings/{booking_id}", headers=student_headers).json()
    assert booking["status"] == "READY_TO_SUBMIT"

    submitted = client.post(f"/api/student/bookings/{booking_id}/submit", headers=student_headers).json()
    assert submitted["status"] == "UNDER_REVIEW"
    assert submitted["submitted_at"] is not None

    offer = client.post(
        f"/api/agent/applications/{booking_id}/confirm",
        json={"lines": [{"description": "First month", "amountCents": 50000, "dueType": "NOW"}]},
        headers=auth_headers(agent),
    ).json()
    assert offer["status"] == "SENT"
    booking = client.get(f"/api/student/bookings/{booking_id}", headers=student_headers).json()
    assert booking["status"] == "APPROVED"

    deliver(
        client,
        sign_payload,
        "payment_intent.succeeded",
        {
            "id": "pi_offer_lifecycle",
            "amount": 50000,
            "currency": "usd",
            "metadata": {
                "type": "student_offer_now",
                "userId": student.id,
                "bookingId": booking_id,
                "offerId": offer["id"],
            },
            "latest_charge": "ch_offer_lifecycle",
        },
    )
    booking = client.get(f"/api/student/bookings/{booking_id}", headers=student_headers).json()
    assert booking["offer"]["status"] == "ACCEPTED"
    assert booking["offer"]["paid_now_at"] is not None
    offer_rows = unit_db.query(StudentPayment).filter_by(booking_id=booking_id, type="OFFER_NOW").all()
    assert len(offer_rows) == 1
    assert offer_rows[0].amount_cents == 50000

    refund = client.post(
        "/api/admin/refunds",
        json={"payment_id": offer_rows[0].id, "amount_cents": 50000},
        headers=auth_headers(admin),
    ).json()
    assert refund["status"] == "PENDING"

    with patch("stripe.Refund.create", return_value={"id": "re_lifecycle"}) as mock_refund:
        approved = client.patch(
            f"/api/admin/refunds/{refund['id']}", json={"action": "approve"}, headers=auth_headers(admin)
        )

    assert approved.status_code == 200
    assert approved.json()["status"] == "REFUNDED"
    assert approved.json()["stripe_refund_id"] == "re_lifecycle"
    assert mock_refund.call_args.kwargs["charge"] == "ch_offer_lifecycle"
    assert mock_refund.call_args.kwargs["amount"] == 50000
