"""Document repository for database operations."""

import uuid
from typing import List

from ..exceptions import DocumentNotFoundError
from ..models import Document
from .base import BaseRepository
from .version_repository import content_hash


class DocumentRepository(BaseRepository[Document]):
    """Repository for document rows."""

    model_class = Document
    not_found_error = DocumentNotFoundError

    def create(self, owner_id: str, title: str, content: str) -> Document:
        document = Document(
            id=str(uuid.uuid4()),
            owner_id=owner_id,
            title=title,
            content=content,
            content_hash=content_hash(content),
        )
        self.db.add(document)
        self.db.flush()
        return document

    def set_content(self, document: Document, content: str) -> Document:
        """Overwrite content. Callers append the matching version in the same transaction."""
        document.content = content
        document.content_hash = content_hash(content)
        self.db.flush()
        return document

    def list_for_owner(self, owner_id: str, limit: int = 50) -> List[Document]:
        return (
            self.db.query(Document)
            .filter(Document.owner_id == owner_id)
            .order_by(Document.updated_at.desc())
            .limit(limit)
            .all()
        )
