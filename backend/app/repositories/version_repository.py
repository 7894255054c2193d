"""Version store: append-only, gapless per-document snapshots."""

import hashlib
import uuid
from typing import List, Optional

from sqlalchemy import func

from ..exceptions import VersionNotFoundError
from ..models import Version, VersionSource
from .base import BaseRepository


def content_hash(content: str) -> str:
    """SHA256 of document content, used for change detection."""
    return hashlib.sha256(content.encode()).hexdigest()


class VersionRepository(BaseRepository[Version]):
    """Repository for version reads and appends.

    ``append`` must run inside the transaction that also rewrites the
    document, after the document row has been locked, so that the
    ``max(version_number)`` read cannot race another writer.
    """

    model_class = Version
    not_found_error = VersionNotFoundError

    def current_number(self, document_id: str) -> int:
        """Highest version number for a document (0 if none exist)."""
        result = (
            self.db.query(func.max(Version.version_number))
            .filter(Version.document_id == document_id)
            .scalar()
        )
        return result or 0

    def append(
        self,
        document_id: str,
        content: str,
        source: VersionSource,
        *,
        created_by: Optional[str] = None,
        originating_comment_id: Optional[str] = None,
        summary: Optional[str] = None,
    ) -> Version:
        """Insert the next version (max + 1) for a document."""
        version = Version(
            id=str(uuid.uuid4()),
            document_id=document_id,
            version_number=self.current_number(document_id) + 1,
            content=content,
            content_hash=content_hash(content),
            source=source,
            originating_comment_id=originating_comment_id,
            summary=summary,
            created_by=created_by,
        )
        self.db.add(version)
        self.db.flush()
        return version

    def list_for_document(self, document_id: str, skip: int = 0, limit: int = 100) -> List[Version]:
        """Versions of a document in ascending version order."""
        return (
            self.db.query(Version)
            .filter(Version.document_id == document_id)
            .order_by(Version.version_number.asc())
            .offset(skip)
            .limit(limit)
            .all()
        )

    def get_by_number(self, document_id: str, version_number: int) -> Version:
        version = (
            self.db.query(Version)
            .filter(
                Version.document_id == document_id,
                Version.version_number == version_number,
            )
            .first()
        )
        if version is None:
            raise VersionNotFoundError(f"{document_id}@{version_number}")
        return version
