"""Document service: creation, manual edits, and version history reads.

Every content change appends a version in the same transaction, so the
document always equals its latest version.
"""

import logging
from typing import List, Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from ..exceptions import ConflictError, ForbiddenError, StorageFailureError, ValidationError
from ..models import Document, Version, VersionSource
from ..repositories import DocumentRepository, VersionRepository

logger = logging.getLogger(__name__)


class DocumentService:
    """Business logic for documents and their version store."""

    def __init__(self, db: Session):
        self.db = db
        self.documents = DocumentRepository(db)
        self.versions = VersionRepository(db)

    def create_document(self, owner_id: str, title: str, content: str) -> Document:
        """Create a document together with its version 1."""
        if not title.strip():
            raise ValidationError("Title cannot be empty", field="title")
        if not content.strip():
            raise ValidationError("Content cannot be empty", field="content")

        document = self.documents.create(owner_id=owner_id, title=title.strip(), content=content)
        self.versions.append(
            document.id, content, VersionSource.MANUAL,
            created_by=owner_id, summary="Initial version",
        )
        self.db.commit()
        self.db.refresh(document)
        logger.info(f"Created document {document.id} for {owner_id}")
        return document

    def get_document(self, document_id: str) -> Document:
        return self.documents.get_by_id(document_id)

    def list_documents(self, owner_id: str, limit: int = 50) -> List[Document]:
        return self.documents.list_for_owner(owner_id, limit)

    def update_content(
        self,
        document_id: str,
        requester_id: str,
        content: str,
        summary: Optional[str] = None,
    ) -> Version:
        """Manual edit by the owner. Appends a ``manual`` version."""
        if not content.strip():
            raise ValidationError("Content cannot be empty", field="content")

        document = self.documents.get_by_id(document_id, for_update=True)
        if document.owner_id != requester_id:
            raise ForbiddenError("Only the document owner can edit it")

        try:
            self.documents.set_content(document, content)
            version = self.versions.append(
                document.id, content, VersionSource.MANUAL,
                created_by=requester_id, summary=summary or "Manual edit",
            )
            self.db.commit()
        except IntegrityError as e:
            # Another writer took the next version number first.
            self.db.rollback()
            raise ConflictError(
                "Document changed concurrently; retry the edit",
                details={"document_id": document_id},
            ) from e
        except SQLAlchemyError as e:
            self.db.rollback()
            raise StorageFailureError("Could not save the edit", original_error=e) from e

        self.db.refresh(version)
        logger.info(f"Document {document.id} manually edited to v{version.version_number}")
        return version

    def list_versions(self, document_id: str, skip: int = 0, limit: int = 100) -> List[Version]:
        self.documents.get_by_id(document_id)
        return self.versions.list_for_document(document_id, skip, limit)

    def get_version(self, document_id: str, version_number: int) -> Version:
        self.documents.get_by_id(document_id)
        return self.versions.get_by_number(document_id, version_number)
