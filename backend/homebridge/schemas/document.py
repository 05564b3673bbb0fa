"""Schemas for student documents."""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import Field

from ._strict_base import StrictModel, StrictRequestModel


class DocumentIn(StrictRequestModel):
    """Metadata for a file the document store has already accepted."""

    filename: str = Field(..., min_length=1, max_length=255)
    url: str = Field(..., min_length=1)
    mime: Optional[str] = Field(default=None, max_length=100)
    size: int = Field(default=0, ge=0)
    category: Optional[str] = Field(default=None, max_length=50)


class DocumentRegisterRequest(StrictRequestModel):
    documents: List[DocumentIn]


class DocumentSyncRequest(StrictRequestModel):
    booking_id: Optional[str] = None


class DocumentSyncResponse(StrictModel):
    updated: int


class DocumentResponse(StrictModel):
    id: str
    filename: str
    mime: Optional[str] = None
    size: int
    url: str
    category: Optional[str] = None
    created_at: Optional[datetime] = None
