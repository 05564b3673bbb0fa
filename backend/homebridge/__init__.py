"""HomeBridge marketplace backend: bookings, offers, payments, refunds and payouts."""

__version__ = "0.4.0"
