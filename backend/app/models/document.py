"""Document model."""

from sqlalchemy import Column, Index, String, Text, DateTime
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from ..database import Base


class Document(Base):
    """Plan documents under review.

    ``content`` always mirrors the highest-numbered row in
    ``document_versions``; it is only rewritten together with a new version.
    """

    __tablename__ = "documents"
    __table_args__ = (
        Index("ix_documents_owner_id", "owner_id"),
        Index("ix_documents_updated_at", "updated_at"),
    )

    # Primary key (UUID format)
    id = Column(String(50), primary_key=True)

    owner_id = Column(String(100), nullable=False)
    title = Column(String(500), nullable=False)

    # Content
    content = Column(Text, nullable=False)
    content_hash = Column(String(64), nullable=False)  # SHA256 of content

    # Timestamps
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    # Relationships
    versions = relationship(
        "Version",
        back_populates="document",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="Version.version_number",
    )
    comments = relationship(
        "Comment",
        back_populates="document",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    @property
    def line_count(self) -> int:
        return len(self.content.splitlines())
