# backend/homebridge/repositories/factory.py
"""
Repository Factory

Single place where services obtain their repositories. Imports are deferred
so a service module only pulls in the repositories it actually asks for.
"""

from typing import TYPE_CHECKING, Type, TypeVar

from sqlalchemy.orm import Session

from .base_repository import BaseRepository

if TYPE_CHECKING:
    from .agent_profile_repository import AgentProfileRepository
    from .booking_repository import BookingRepository
    from .document_repository import DocumentRepository
    from .offer_repository import OfferRepository
    from .payment_repository import PaymentRepository
    from .payout_repository import PayoutRepository
    from .refund_repository import RefundRepository

M = TypeVar("M")


class RepositoryFactory:
    @staticmethod
    def create_base_repository(db: Session, model: Type[M]) -> BaseRepository[M]:
        """Plain key/criteria access for models without a dedicated repository (e.g. Listing)."""
        return BaseRepository(db, model)

    @staticmethod
    def create_booking_repository(db: Session) -> "BookingRepository":
        from .booking_repository import BookingRepository

        return BookingRepository(db)

    @staticmethod
    def create_offer_repository(db: Session) -> "OfferRepository":
        from .offer_repository import OfferRepository

        return OfferRepository(db)

    @staticmethod
    def create_payment_repository(db: Session) -> "PaymentRepository":
        """Ledger access: idempotent inserts plus lookups by charge / intent."""
        from .payment_repository import PaymentRepository

        return PaymentRepository(db)

    @staticmethod
    def create_refund_repository(db: Session) -> "RefundRepository":
        from .refund_repository import RefundRepository

        return RefundRepository(db)

    @staticmethod
    def create_payout_repository(db: Session) -> "PayoutRepository":
        from .payout_repository import PayoutRepository

        return PayoutRepository(db)

    @staticmethod
    def create_document_repository(db: Session) -> "DocumentRepository":
        from .document_repository import DocumentRepository

        return DocumentRepository(db)

    @staticmethod
    def create_agent_profile_repository(db: Session) -> "AgentProfileRepository":
        from .agent_profile_repository import AgentProfileRepository

        return AgentProfileRepository(db)
