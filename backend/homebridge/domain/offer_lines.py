"""Offer line items and their due-now / due-later totals."""

from __future__ import annotations

from enum import Enum
from typing import Any, Iterable, Mapping


class OfferStatus(str, Enum):
    SENT = "SENT"
    ACCEPTED = "ACCEPTED"
    DECLINED = "DECLINED"
    EXPIRED = "EXPIRED"
    CANCELLED = "CANCELLED"


CLOSED_OFFER_STATUSES = frozenset(
    {OfferStatus.DECLINED, OfferStatus.CANCELLED, OfferStatus.EXPIRED}
)


class DueType(str, Enum):
    NOW = "NOW"
    LATER = "LATER"


def _amount(line: Mapping[str, Any]) -> int:
    return int(line.get("amountCents") or 0)


def due_now_cents(lines: Iterable[Mapping[str, Any]] | None) -> int:
    """Sum of lines collectible through the offer payment flow."""
    return sum(_amount(line) for line in lines or () if line.get("dueType") == DueType.NOW.value)


def due_later_cents(lines: Iterable[Mapping[str, Any]] | None) -> int:
    return sum(_amount(line) for line in lines or () if line.get("dueType") != DueType.NOW.value)
