# backend/homebridge/services/notification_service.py
"""
Notification Service for HomeBridge

Sends transactional email through the Resend API. Every send is best
effort: a disabled provider, a missing recipient or a provider error is
logged and never reaches the caller, so the state change that triggered
the email is never rolled back because of it.
"""

from html import escape
import logging
from typing import Optional

import resend
from sqlalchemy.orm import Session

from ..core.config import Settings, settings as default_settings
from ..models.booking import Booking
from ..models.listing import Listing
from ..models.offer import Offer
from ..models.refund_request import RefundRequest
from ..models.user import User
from .base import BaseService

logger = logging.getLogger(__name__)


def _booking_ref(booking_id: str) -> str:
    return f"BK-{booking_id[-8:].upper()}"


def _money(cents: int, currency: str) -> str:
    return f"{currency.upper()} {cents / 100:,.2f}"


class NotificationService(BaseService):
    def __init__(self, db: Session, config: Optional[Settings] = None):
        super().__init__(db)
        self.settings = config or default_settings
        if self.settings.resend_api_key:
            resend.api_key = self.settings.resend_api_key

    @property
    def enabled(self) -> bool:
        return bool(self.settings.email_enabled and self.settings.resend_api_key)

    def send_email(self, to_email: Optional[str], subject: str, html_content: str) -> bool:
        """Send one email; returns False instead of raising on any failure."""
        if not to_email:
            self.logger.info(f"Skipping email '{subject}': no recipient")
            return False
        if not self.enabled:
            self.logger.debug(f"Email disabled; would send '{subject}' to {to_email}")
            return False
        try:
            resend.Emails.send(
                {
                    "from": self.settings.from_email,
                    "to": to_email,
                    "subject": subject,
                    "html": html_content,
                }
            )
        except Exception as e:
            self.logger.warning(f"Failed to send email to {to_email}: {type(e).__name__}: {e}")
            return False
        self.logger.info(f"Email sent successfully to {to_email} - Subject: {subject}")
        return True

    def _user_email(self, user_id: Optional[str]) -> Optional[str]:
        if not user_id:
            return None
        user = self.db.get(User, user_id)
        return user.email if user else None

    def _listing(self, booking: Booking) -> Optional[Listing]:
        return self.db.get(Listing, booking.listing_id)

    def _link(self, path: str) -> str:
        return f"{self.settings.frontend_url}{path}"

    # ------------------------------------------------------------------ events

    def booking_submitted(self, booking: Booking) -> bool:
        ref = _booking_ref(booking.id)
        html = (
            f"<p>Booking <strong>{ref}</strong> was submitted for review.</p>"
            f"<p>Check-in {escape(booking.check_in)}, check-out {escape(booking.check_out)}.</p>"
            f'<p><a href="{self._link(f"/admin/bookings/{booking.id}")}">Open in admin</a></p>'
        )
        return self.send_email(self.settings.admin_email, f"New application {ref}", html)

    def booking_approved(self, booking: Booking) -> bool:
        listing = self._listing(booking)
        ref = _booking_ref(booking.id)
        title = escape(listing.title) if listing else "your listing"
        html = (
            f"<p>Application {ref} for {title} was approved by the HomeBridge team.</p>"
            f'<p><a href="{self._link(f"/dashboard/agent/applications/{booking.id}")}">'
            "Review and send an offer</a></p>"
        )
        agent_email = self._user_email(listing.agent_id if listing else None)
        return self.send_email(agent_email, f"Application {ref} approved", html)

    def offer_sent(self, booking: Booking, offer: Offer) -> bool:
        ref = _booking_ref(booking.id)
        html = (
            f"<p>You have a new offer for booking {ref}.</p>"
            f"<p>Due now: {_money(offer.due_now_cents, offer.currency)}<br>"
            f"Due later: {_money(offer.due_later_cents, offer.currency)}</p>"
            f'<p><a href="{self._link(f"/dashboard/student/bookings/{booking.id}")}">View offer</a></p>'
        )
        return self.send_email(self._user_email(booking.student_id), f"Offer for {ref}", html)

    def booking_rejected(self, booking: Booking, reason: Optional[str] = None) -> bool:
        ref = _booking_ref(booking.id)
        html = f"<p>Unfortunately your application {ref} was not accepted.</p>"
        if reason:
            html += f"<p>Reason: {escape(reason)}</p>"
        return self.send_email(self._user_email(booking.student_id), f"Update on {ref}", html)

    def refund_requested(self, refund: RefundRequest) -> bool:
        html = (
            f"<p>Refund requested for payment {refund.payment_id}: "
            f"{_money(refund.amount_cents, refund.currency)}.</p>"
        )
        if refund.reason:
            html += f"<p>Reason: {escape(refund.reason)}</p>"
        return self.send_email(self.settings.admin_email, "Refund requested", html)
