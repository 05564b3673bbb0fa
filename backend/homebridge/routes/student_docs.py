# backend/homebridge/routes/student_docs.py
"""Student document routes. Files live in the document store; only metadata is kept here."""

import asyncio
from typing import Annotated, List

from fastapi import APIRouter, Depends, Path, Response, status

from ..api.dependencies.auth import require_student
from ..api.dependencies.services import get_document_service
from ..core.exceptions import DomainException
from ..principal import Principal
from ..schemas.document import (
    DocumentRegisterRequest,
    DocumentResponse,
    DocumentSyncRequest,
    DocumentSyncResponse,
)
from ..services.document_service import DocumentService
from .utils import ULID_PATH_PATTERN, handle_domain_exception

router = APIRouter(prefix="/student/docs", tags=["student-documents"])


@router.get("", response_model=List[DocumentResponse])
async def list_documents(
    principal: Principal = Depends(require_student),
    service: DocumentService = Depends(get_document_service),
) -> List[DocumentResponse]:
    docs = await asyncio.to_thread(service.list_documents, principal)
    return [DocumentResponse.model_validate(doc) for doc in docs]


@router.post("", response_model=List[DocumentResponse], status_code=status.HTTP_201_CREATED)
async def register_documents(
    payload: DocumentRegisterRequest,
    principal: Principal = Depends(require_student),
    service: DocumentService = Depends(get_document_service),
) -> List[DocumentResponse]:
    try:
        docs = await asyncio.to_thread(
            service.register_documents,
            principal,
            [doc.model_dump() for doc in payload.documents],
        )
    except DomainException as e:
        handle_domain_exception(e)
    return [DocumentResponse.model_validate(doc) for doc in docs]


@router.post("/sync", response_model=DocumentSyncResponse)
async def sync_documents(
    payload: DocumentSyncRequest,
    principal: Principal = Depends(require_student),
    service: DocumentService = Depends(get_document_service),
) -> DocumentSyncResponse:
    try:
        updated = await asyncio.to_thread(service.sync_documents, principal, payload.booking_id)
    except DomainException as e:
        handle_domain_exception(e)
    return DocumentSyncResponse(updated=updated)


@router.delete("/{document_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_document(
    document_id: Annotated[str, Path(description="Document ULID", pattern=ULID_PATH_PATTERN)],
    principal: Principal = Depends(require_student),
    service: DocumentService = Depends(get_document_service),
) -> Response:
    try:
        await asyncio.to_thread(service.delete_document, principal, document_id)
    except DomainException as e:
        handle_domain_exception(e)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
