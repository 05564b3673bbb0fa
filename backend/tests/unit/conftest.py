from datetime import datetime, timezone
import hashlib
import hmac
import time
from typing import Any, Callable, Optional
from unittest.mock import MagicMock

import pytest
from sqlalchemy import create_engine, event
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool
import ulid

from homebridge.core.enums import RoleName
from homebridge.database import Base
from homebridge.domain.booking_status import BookingStatus
from homebridge.domain.offer_lines import OfferStatus

# Import models so Base.metadata is populated for create_all.
import homebridge.models  # noqa: F401
from homebridge.models import (
    AgentProfile,
    Booking,
    Listing,
    Offer,
    StudentDocument,
    StudentPayment,
    User,
)
from homebridge.models.payment import PAYMENT_SUCCEEDED, StudentPaymentType
from homebridge.principal import Principal
from homebridge.services.stripe_gateway import StripeGateway


def new_id() -> str:
    return str(ulid.ULID())


@pytest.fixture(scope="session")
def _unit_engine():
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        future=True,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )

    # pysqlite defers BEGIN on its own; take over so SAVEPOINTs nest correctly.
    @event.listens_for(engine, "connect")
    def _disable_pysqlite_begin(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _emit_begin(conn):
        conn.exec_driver_sql("BEGIN")

    Base.metadata.create_all(engine)
    yield engine
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture(scope="function")
def unit_db(_unit_engine) -> Session:
    """
    Provide a session bound to one outer transaction that is rolled back after
    the test. Service commits only release a savepoint.
    """
    connection = _unit_engine.connect()
    transaction = connection.begin()
    SessionLocal = sessionmaker(
        bind=connection,
        autoflush=False,
        expire_on_commit=False,
        join_transaction_mode="create_savepoint",
        future=True,
    )
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        transaction.rollback()
        connection.close()


# --------------------------------------------------------------------- factories


@pytest.fixture
def make_user(unit_db) -> Callable[..., User]:
    def _make(role: RoleName = RoleName.STUDENT, **overrides: Any) -> User:
        user_id = overrides.pop("id", new_id())
        user = User(
            id=user_id,
            email=overrides.pop("email", f"{user_id.lower()}@example.com"),
            name=overrides.pop("name", "Test User"),
            role=role.value,
            **overrides,
        )
        unit_db.add(user)
        unit_db.flush()
        return user

    return _make


@pytest.fixture
def student(make_user) -> User:
    return make_user(RoleName.STUDENT)


@pytest.fixture
def agent(make_user) -> User:
    return make_user(RoleName.AGENT)


@pytest.fixture
def admin(make_user) -> User:
    return make_user(RoleName.ADMIN)


def principal_for(user: User) -> Principal:
    return Principal(id=user.id, role=user.role, email=user.email)


@pytest.fixture
def student_principal(student) -> Principal:
    return principal_for(student)


@pytest.fixture
def agent_principal(agent) -> Principal:
    return principal_for(agent)


@pytest.fixture
def admin_principal(admin) -> Principal:
    return principal_for(admin)


@pytest.fixture
def listing(unit_db, agent) -> Listing:
    item = Listing(id=new_id(), agent_id=agent.id, title="Studio near campus")
    unit_db.add(item)
    unit_db.flush()
    return item


@pytest.fixture
def make_document(unit_db) -> Callable[..., StudentDocument]:
    def _make(user: User, filename: str = "passport.pdf") -> StudentDocument:
        doc = StudentDocument(
            id=new_id(),
            user_id=user.id,
            filename=filename,
            mime="application/pdf",
            size=1024,
            url=f"https://files.example.com/{filename}",
            category="Passport/ID",
        )
        unit_db.add(doc)
        unit_db.flush()
        return doc

    return _make


@pytest.fixture
def make_booking(unit_db, student, listing) -> Callable[..., Booking]:
    def _make(
        *,
        owner: Optional[User] = None,
        status: BookingStatus = BookingStatus.PENDING_PAYMENT,
        fee_paid: bool = False,
        doc_ids: Optional[list[str]] = None,
        listing_id: Optional[str] = None,
    ) -> Booking:
        booking = Booking(
            id=new_id(),
            student_id=(owner or student).id,
            listing_id=listing_id or listing.id,
            check_in="2026-09-01",
            check_out="2027-06-30",
            doc_ids=list(doc_ids or []),
            fee_paid_at=datetime.now(timezone.utc) if fee_paid else None,
            payment_method="CARD" if fee_paid else None,
            status=status.value,
        )
        unit_db.add(booking)
        unit_db.flush()
        return booking

    return _make


DEFAULT_LINES = [
    {"description": "First month rent", "amountCents": 80000, "dueType": "NOW"},
    {"description": "Deposit", "amountCents": 20000, "dueType": "NOW"},
    {"description": "Remaining rent", "amountCents": 640000, "dueType": "LATER"},
]


@pytest.fixture
def make_offer(unit_db, agent) -> Callable[..., Offer]:
    def _make(
        booking: Booking,
        *,
        status: OfferStatus = OfferStatus.SENT,
        lines: Optional[list[dict]] = None,
        expires_at: Optional[datetime] = None,
        created_at: Optional[datetime] = None,
        paid_now_at: Optional[datetime] = None,
    ) -> Offer:
        offer = Offer(
            id=new_id(),
            booking_id=booking.id,
            agent_id=agent.id,
            status=status.value,
            currency="USD",
            lines=list(lines if lines is not None else DEFAULT_LINES),
            expires_at=expires_at,
            paid_now_at=paid_now_at,
        )
        if created_at is not None:
            offer.created_at = created_at
        unit_db.add(offer)
        unit_db.flush()
        return offer

    return _make


@pytest.fixture
def make_payment(unit_db) -> Callable[..., StudentPayment]:
    def _make(
        booking: Booking,
        *,
        type: StudentPaymentType = StudentPaymentType.OFFER_NOW,
        amount_cents: int = 100000,
        currency: str = "USD",
        offer: Optional[Offer] = None,
        charge_id: Optional[str] = None,
        status: str = PAYMENT_SUCCEEDED,
    ) -> StudentPayment:
        payment = StudentPayment(
            id=new_id(),
            student_id=booking.student_id,
            booking_id=booking.id,
            offer_id=offer.id if offer else None,
            type=type.value,
            status=status,
            amount_cents=amount_cents,
            currency=currency,
            stripe_payment_intent_id=f"pi_{new_id()}",
            stripe_charge_id=charge_id if charge_id is not None else f"ch_{new_id()}",
        )
        unit_db.add(payment)
        unit_db.flush()
        return payment

    return _make


@pytest.fixture
def connected_agent(unit_db, agent) -> AgentProfile:
    profile = AgentProfile(user_id=agent.id, stripe_account_id=f"acct_{new_id()}")
    unit_db.add(profile)
    unit_db.flush()
    return profile


@pytest.fixture
def gateway() -> MagicMock:
    """Stripe gateway double; individual tests set return values / side effects."""
    mock = MagicMock(spec=StripeGateway)
    mock.publishable_key = "pk_test_123"
    mock.default_currency = "usd"
    mock.webhook_configured = True
    return mock


@pytest.fixture
def make_principal() -> Callable[[User], Principal]:
    return principal_for


def stripe_signature(payload: bytes, secret: str, timestamp: Optional[int] = None) -> str:
    """Build a ``Stripe-Signature`` header the way Stripe signs webhook deliveries."""
    timestamp = int(time.time()) if timestamp is None else timestamp
    signed = f"{timestamp}.{payload.decode('utf-8')}".encode("utf-8")
    digest = hmac.new(secret.encode("utf-8"), signed, hashlib.sha256).hexdigest()
    return f"t={timestamp},v1={digest}"


@pytest.fixture
def sign_payload() -> Callable[..., str]:
    return stripe_signature
