# backend/homebridge/repositories/document_repository.py
from typing import List

from sqlalchemy.orm import Session

from homebridge.models.student_document import StudentDocument

from .base_repository import BaseRepository


class DocumentRepository(BaseRepository[StudentDocument]):
    def __init__(self, db: Session):
        super().__init__(db, StudentDocument)

    def list_for_user(self, user_id: str) -> List[StudentDocument]:
        return (
            self.db.query(StudentDocument)
            .filter(StudentDocument.user_id == user_id)
            .order_by(StudentDocument.created_at.asc(), StudentDocument.id.asc())
            .all()
        )

    def ids_for_user(self, user_id: str) -> List[str]:
        return [doc.id for doc in self.list_for_user(user_id)]
