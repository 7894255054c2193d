"""Version model."""

from sqlalchemy import (
    Column, DateTime, Enum, ForeignKey, Index, Integer, String, Text,
    UniqueConstraint, event,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from ..database import Base
from ..exceptions import StorageFailureError
from .states import VersionSource


class Version(Base):
    """Append-only snapshots of a document's full content.

    version_number is gapless from 1 per document. The unique constraint is
    the last line of defence against two commits picking the same number.
    """

    __tablename__ = "document_versions"
    __table_args__ = (
        UniqueConstraint("document_id", "version_number", name="uq_document_versions_number"),
        Index("ix_document_versions_created_at", "created_at"),
    )

    # Primary key (UUID format)
    id = Column(String(50), primary_key=True)

    document_id = Column(
        String(50), ForeignKey("documents.id", ondelete="CASCADE"), nullable=False
    )
    version_number = Column(Integer, nullable=False)

    # Content
    content = Column(Text, nullable=False)
    content_hash = Column(String(64), nullable=False)

    # Provenance
    source = Column(
        Enum(VersionSource, native_enum=False, length=30,
             values_callable=lambda e: [m.value for m in e]),
        nullable=False,
    )
    originating_comment_id = Column(
        String(50), ForeignKey("comments.id", ondelete="SET NULL"), nullable=True
    )
    summary = Column(Text, nullable=True)
    created_by = Column(String(100), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())

    # Relationship
    document = relationship("Document", back_populates="versions")


@event.listens_for(Version, "before_update")
def _reject_version_update(mapper, connection, target):
    raise StorageFailureError(
        f"Version {target.version_number} of document {target.document_id} is immutable"
    )
