from datetime import datetime, timezone

import pytest

from homebridge.core.config import Settings
from homebridge.core.exceptions import ValidationException
from homebridge.domain.booking_status import BookingStatus
from homebridge.models import AgentProfile, StudentPayment
from homebridge.services.payment_initiation_service import PaymentInitiationService


@pytest.fixture
def config():
    return Settings(
        student_app_fee_cents=2500,
        agent_onboarding_fee_cents=5000,
        frontend_url="https://app.example.com/",
    )


@pytest.fixture
def service(unit_db, gateway, config):
    gateway.create_payment_intent.return_value = {"id": "pi_123", "client_secret": "pi_123_secret"}
    gateway.create_checkout_session.return_value = {"id": "cs_123", "url": "https://checkout.stripe.com/c/cs_123"}
    return PaymentInitiationService(unit_db, gateway, config=config)


class TestAppFee:
    def test_intent(self, unit_db, service, gateway, student_principal, make_booking):
        booking = make_booking()

        result = service.create_app_fee_intent(student_principal, booking.id)

        assert result == {
            "client_secret": "pi_123_secret",
            "publishable_key": "pk_test_123",
            "amount_cents": 2500,
            "currency": "USD",
        }
        gateway.create_payment_intent.assert_called_once_with(
            amount_cents=2500,
            currency="usd",
            metadata={"type": "student_app_fee", "userId": student_principal.id, "bookingId": booking.id},
            receipt_email=student_principal.email,
        )
        assert unit_db.query(StudentPayment).count() == 0
        assert booking.fee_paid_at is None

    def test_booking_fee_override(self, unit_db, service, student_principal, make_booking):
        booking = make_booking()
        booking.application_fee_cents = 9900
        unit_db.flush()

        result = service.create_app_fee_intent(student_principal, booking.id)

        assert result["amount_cents"] == 9900

    def test_already_paid(self, service, gateway, student_principal, make_booking):
        booking = make_booking(fee_paid=True)

        with pytest.raises(ValidationException) as exc_info:
            service.create_app_fee_intent(student_principal, booking.id)

        assert exc_info.value.code == "FEE_ALREADY_PAID"
        gateway.create_payment_intent.assert_not_called()

    def test_checkout(self, service, gateway, student_principal, make_booking):
        booking = make_booking()

        result = service.create_app_fee_checkout(student_principal, booking.id)

        assert result == {"url": "https://checkout.stripe.com/c/cs_123"}
        kwargs = gateway.create_checkout_session.call_args.kwargs
        assert kwargs["amount_cents"] == 2500
        assert kwargs["metadata"]["type"] == "student_app_fee"
        assert kwargs["success_url"] == f"https://app.example.com/dashboard/student/bookings/{booking.id}?paid=1"
        assert kwargs["cancel_url"] == f"https://app.example.com/dashboard/student/bookings/{booking.id}/pay/app-fee"


class TestOfferPayment:
    @pytest.fixture
    def booking(self, make_booking):
        return make_booking(fee_paid=True, doc_ids=["doc-1"], status=BookingStatus.APPROVED)

    def test_intent(self, service, gateway, student_principal, booking, make_offer):
        offer = make_offer(booking)

        result = service.create_offer_intent(student_principal, booking.id)

        assert result["amount_cents"] == 100000
        assert result["currency"] == "USD"
        metadata = gateway.create_payment_intent.call_args.kwargs["metadata"]
        assert metadata == {
            "type": "student_offer_now",
            "userId": student_principal.id,
            "bookingId": booking.id,
            "offerId": offer.id,
        }

    def test_no_offer(self, service, student_principal, booking):
        with pytest.raises(ValidationException) as exc_info:
            service.create_offer_intent(student_principal, booking.id)
        assert exc_info.value.message == "No payable amount due now"

    def test_nothing_due_now(self, service, student_principal, booking, make_offer):
        make_offer(booking, lines=[{"description": "Rent", "amountCents": 50000, "dueType": "LATER"}])

        with pytest.raises(ValidationException) as exc_info:
            service.create_offer_checkout(student_principal, booking.id)
        assert exc_info.value.code == "NOTHING_DUE"

    def test_already_paid(self, service, student_principal, booking, make_offer):
        make_offer(booking, paid_now_at=datetime.now(timezone.utc))

        with pytest.raises(ValidationException) as exc_info:
            service.create_offer_intent(student_principal, booking.id)
        assert exc_info.value.code == "OFFER_PAID"

    def test_checkout(self, service, gateway, student_principal, booking, make_offer):
        offer = make_offer(booking)

        result = service.create_offer_checkout(student_principal, booking.id)

        assert result == {"url": "https://checkout.stripe.com/c/cs_123"}
        kwargs = gateway.create_checkout_session.call_args.kwargs
        assert kwargs["amount_cents"] == offer.due_now_cents
        assert kwargs["currency"] == "USD"
        assert kwargs["metadata"]["offerId"] == offer.id
        assert kwargs["success_url"].endswith(f"/bookings/{booking.id}?offerPaid=1")


class TestOnboarding:
    def test_intent(self, service, gateway, agent_principal):
        result = service.create_onboarding_intent(agent_principal)

        assert result["amount_cents"] == 5000
        gateway.create_payment_intent.assert_called_once_with(
            amount_cents=5000,
            currency="usd",
            metadata={"type": "agent_onboarding", "userId": agent_principal.id},
            receipt_email=agent_principal.email,
        )

    def test_already_paid(self, unit_db, service, gateway, agent, agent_principal):
        unit_db.add(AgentProfile(user_id=agent.id, onboarding_paid_at=datetime.now(timezone.utc)))
        unit_db.flush()

        with pytest.raises(ValidationException) as exc_info:
            service.create_onboarding_intent(agent_principal)

        assert exc_info.value.code == "ONBOARDING_PAID"
        gateway.create_payment_intent.assert_not_called()

    def test_checkout(self, service, gateway, agent_principal):
        result = service.create_onboarding_checkout(agent_principal)

        assert result == {"url": "https://checkout.stripe.com/c/cs_123"}
        kwargs = gateway.create_checkout_session.call_args.kwargs
        assert kwargs["amount_cents"] == 5000
        assert kwargs["product_name"] == "Agent Onboarding Fee"
        assert kwargs["metadata"] == {"type": "agent_onboarding", "userId": agent_principal.id}
        assert kwargs["success_url"] == "https://app.example.com/dashboard/agent/settings?paid=1"
        assert kwargs["cancel_url"] == "https://app.example.com/dashboard/agent/settings?canceled=1"

    def test_checkout_already_paid(self, unit_db, service, gateway, agent, agent_principal):
        unit_db.add(AgentProfile(user_id=agent.id, onboarding_paid_at=datetime.now(timezone.utc)))
        unit_db.flush()

        with pytest.raises(ValidationException) as exc_info:
            service.create_onboarding_checkout(agent_principal)

        assert exc_info.value.code == "ONBOARDING_PAID"
        gateway.create_checkout_session.assert_not_called()
