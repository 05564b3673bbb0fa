# backend/homebridge/models/student_document.py
"""
Student document metadata.

File bytes live in the external document store; bookings only reference
document ids.
"""

from datetime import datetime
import re
from typing import Optional

from sqlalchemy import DateTime, ForeignKey, Index, Integer, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column
import ulid

from homebridge.database import Base
from homebridge.models._utils import utcnow

_CATEGORY_PATTERNS = (
    (re.compile(r"passport|(?<![a-z])id(?![a-z])|identity|national"), "Passport/ID"),
    (re.compile(r"admission|offer|acceptance"), "Admission Letter"),
    (re.compile(r"i-20|sevis"), "I-20/SEVIS"),
    (re.compile(r"bank|statement|sponsor|financial"), "Financial/Bank"),
    (re.compile(r"visa|permit"), "Visa/Permit"),
)


def guess_category(filename: str) -> str:
    """Best-effort category from the original filename."""
    lowered = (filename or "").lower()
    for pattern, category in _CATEGORY_PATTERNS:
        if pattern.search(lowered):
            return category
    return "Other"


class StudentDocument(Base):
    __tablename__ = "student_documents"

    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    user_id: Mapped[str] = mapped_column(
        String(26), ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    filename: Mapped[str] = mapped_column(String(255), nullable=False)
    mime: Mapped[Optional[str]] = mapped_column(String(100))
    size: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    url: Mapped[str] = mapped_column(Text, nullable=False)
    category: Mapped[Optional[str]] = mapped_column(String(50))
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False
    )

    __table_args__ = (Index("ix_student_documents_user_created", "user_id", "created_at"),)

    def __repr__(self) -> str:
        return f"<StudentDocument(id={self.id}, user_id={self.user_id})>"
