"""
Domain exceptions for the HomeBridge backend.

Services raise these with a business-facing message and a stable ``code``;
routes turn them into HTTP errors via ``to_http_exception`` and the error
handlers render the problem+json body.
"""

from typing import Any, Dict, Optional

from fastapi import HTTPException, status


class DomainException(Exception):
    """Base class: message, machine-readable code and optional details."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.message = message
        self.code = code or self.__class__.__name__
        self.details = details or {}
        super().__init__(self.message)

    def to_http_exception(self) -> HTTPException:
        return HTTPException(
            status_code=self.status_code,
            detail={
                "message": self.message,
                "code": self.code,
                "details": self.details,
            },
        )


class ValidationException(DomainException):
    """Precondition or input rule failed (400)."""

    status_code = status.HTTP_400_BAD_REQUEST


class ForbiddenException(DomainException):
    """Caller may not act on this resource (403)."""

    status_code = status.HTTP_403_FORBIDDEN


class NotFoundException(DomainException):
    status_code = status.HTTP_404_NOT_FOUND


class ServiceException(DomainException):
    """Infrastructure failure inside a service, e.g. a failed commit."""

    def to_http_exception(self) -> HTTPException:
        return HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={
                "message": self.message or "An error occurred processing your request",
                "code": self.code,
                "details": self.details,
            },
        )


class PaymentProviderException(ServiceException):
    """A Stripe call failed; no local state was changed."""

    def __init__(
        self,
        message: str = "Payment provider request failed",
        *,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, code="PAYMENT_PROVIDER_ERROR", details=details)


class RefundAlreadyRequestedException(ValidationException):
    """The payment already has a PENDING or REFUNDED refund request."""

    def __init__(self, payment_id: str):
        super().__init__(
            message="A refund has already been requested or processed.",
            code="REFUND_ALREADY_REQUESTED",
            details={"payment_id": payment_id},
        )


class RepositoryException(Exception):
    """Data access failed (query error or constraint violation)."""
