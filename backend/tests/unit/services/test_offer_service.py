from datetime import datetime, timedelta, timezone

import pytest

from homebridge.core.exceptions import ValidationException
from homebridge.domain.booking_status import BookingStatus
from homebridge.domain.offer_lines import OfferStatus
from homebridge.models._utils import ensure_utc
from homebridge.services.offer_service import OfferService


@pytest.fixture
def service(unit_db):
    return OfferService(unit_db)


@pytest.fixture
def approved_booking(make_booking):
    return make_booking(fee_paid=True, doc_ids=["doc-1"], status=BookingStatus.APPROVED)


def _now():
    return datetime.now(timezone.utc)


class TestAccept:
    def test_no_offer(self, service, student_principal, approved_booking):
        with pytest.raises(ValidationException) as exc_info:
            service.accept(student_principal, approved_booking.id)
        assert exc_info.value.message == "No offer to accept."

    def test_accepts_sent_offer(self, service, student_principal, approved_booking, make_offer):
        offer = make_offer(approved_booking)

        result = service.accept(student_principal, approved_booking.id)

        assert result.id == offer.id
        assert result.status == OfferStatus.ACCEPTED.value
        assert result.accepted_at is not None

    def test_accepting_twice_keeps_first_timestamp(
        self, service, student_principal, approved_booking, make_offer
    ):
        make_offer(approved_booking)
        first = service.accept(student_principal, approved_booking.id)
        accepted_at = first.accepted_at

        second = service.accept(student_principal, approved_booking.id, now=_now() + timedelta(hours=1))

        assert second.accepted_at == accepted_at

    @pytest.mark.parametrize(
        "status", [OfferStatus.DECLINED, OfferStatus.CANCELLED, OfferStatus.EXPIRED]
    )
    def test_closed_offer_cannot_be_accepted(
        self, service, student_principal, approved_booking, make_offer, status
    ):
        offer = make_offer(approved_booking, status=status)

        with pytest.raises(ValidationException) as exc_info:
            service.accept(student_principal, approved_booking.id)

        assert exc_info.value.message == "Offer is no longer open"
        assert offer.status == status.value

    def test_past_expiry_marks_expired(
        self, service, student_principal, approved_booking, make_offer
    ):
        offer = make_offer(approved_booking, expires_at=_now() - timedelta(minutes=5))

        with pytest.raises(ValidationException):
            service.accept(student_principal, approved_booking.id)

        assert offer.status == OfferStatus.EXPIRED.value
        assert offer.accepted_at is None

    def test_only_latest_offer_is_touched(
        self, service, student_principal, approved_booking, make_offer
    ):
        older = make_offer(approved_booking, created_at=_now() - timedelta(days=2))
        newer = make_offer(approved_booking)

        service.accept(student_principal, approved_booking.id)

        assert newer.status == OfferStatus.ACCEPTED.value
        assert older.status == OfferStatus.SENT.value


class TestDecline:
    def test_no_offer(self, service, student_principal, approved_booking):
        with pytest.raises(ValidationException) as exc_info:
            service.decline(student_principal, approved_booking.id)
        assert exc_info.value.message == "No offer to decline."

    def test_declines_sent_offer(self, service, student_principal, approved_booking, make_offer):
        make_offer(approved_booking)

        result = service.decline(student_principal, approved_booking.id)

        assert result.status == OfferStatus.DECLINED.value
        assert result.declined_at is not None

    def test_closed_offer_is_noop(self, service, student_principal, approved_booking, make_offer):
        offer = make_offer(approved_booking, status=OfferStatus.EXPIRED)

        result = service.decline(student_principal, approved_booking.id)

        assert result.status == OfferStatus.EXPIRED.value
        assert offer.declined_at is None

    def test_unpaid_accepted_offer_may_be_declined(
        self, service, student_principal, approved_booking, make_offer
    ):
        make_offer(approved_booking, status=OfferStatus.ACCEPTED)

        result = service.decline(student_principal, approved_booking.id)

        assert result.status == OfferStatus.DECLINED.value

    def test_paid_offer_cannot_be_declined(
        self, service, student_principal, approved_booking, make_offer
    ):
        offer = make_offer(approved_booking, status=OfferStatus.ACCEPTED, paid_now_at=_now())

        with pytest.raises(ValidationException) as exc_info:
            service.decline(student_principal, approved_booking.id)

        assert exc_info.value.code == "OFFER_PAID"
        assert offer.status == OfferStatus.ACCEPTED.value


class TestApplyPayment:
    def test_payment_implies_acceptance_even_when_expired(
        self, unit_db, service, approved_booking, make_offer
    ):
        offer = make_offer(approved_booking, status=OfferStatus.EXPIRED)
        paid_at = _now()

        result = service.apply_payment(offer.id, paid_at)
        unit_db.commit()

        assert result.status == OfferStatus.ACCEPTED.value
        assert ensure_utc(result.paid_now_at) == paid_at
        assert ensure_utc(result.accepted_at) == paid_at
        assert result.pay_method == "CARD"

    def test_replay_does_not_move_timestamps(self, unit_db, service, approved_booking, make_offer):
        offer = make_offer(approved_booking)
        first_paid = _now()
        service.apply_payment(offer.id, first_paid)

        result = service.apply_payment(offer.id, first_paid + timedelta(minutes=10), "MPESA")

        assert ensure_utc(result.paid_now_at) == first_paid
        assert ensure_utc(result.accepted_at) == first_paid
        assert result.pay_method == "CARD"

    def test_existing_acceptance_time_is_kept(self, unit_db, service, approved_booking, make_offer):
        offer = make_offer(approved_booking)
        accepted = _now() - timedelta(days=1)
        offer.status = OfferStatus.ACCEPTED.value
        offer.accepted_at = accepted
        unit_db.flush()

        result = service.apply_payment(offer.id, _now())

        assert ensure_utc(result.accepted_at) == accepted


class TestExpireSweep:
    def test_only_past_due_sent_offers_expire(
        self, unit_db, service, approved_booking, make_booking, make_offer
    ):
        past = _now() - timedelta(hours=1)
        stale = make_offer(approved_booking, expires_at=past)
        other_booking = make_booking(status=BookingStatus.APPROVED)
        fresh = make_offer(other_booking, expires_at=_now() + timedelta(days=1))
        third_booking = make_booking(status=BookingStatus.APPROVED)
        accepted = make_offer(third_booking, status=OfferStatus.ACCEPTED, expires_at=past)
        fourth_booking = make_booking(status=BookingStatus.APPROVED)
        open_ended = make_offer(fourth_booking)

        expired = service.expire_stale_offers()

        for offer in (stale, fresh, accepted, open_ended):
            unit_db.refresh(offer)
        assert expired == 1
        assert stale.status == OfferStatus.EXPIRED.value
        assert fresh.status == OfferStatus.SENT.value
        assert accepted.status == OfferStatus.ACCEPTED.value
        assert open_ended.status == OfferStatus.SENT.value
