"""Comment and discussion models."""

from sqlalchemy import (
    CheckConstraint, Column, DateTime, Enum, ForeignKey, Index, Integer,
    String, Text,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from ..database import Base
from .states import CommentStatus


class Comment(Base):
    """
    Line-anchored feedback on a document.

    The anchor keeps a verbatim snapshot of the selected lines so the
    comment stays readable after the document changes. The snapshot is not
    a promise that the text is still present.

    Status transitions: pending -> debating -> accepted | rejected
    (pending may go straight to accepted or rejected).
    """

    __tablename__ = "comments"
    __table_args__ = (
        CheckConstraint(
            "anchor_start_line > 0 AND anchor_end_line >= anchor_start_line",
            name="ck_comments_line_range",
        ),
        Index("ix_comments_document_id", "document_id"),
        Index("ix_comments_status", "status"),
    )

    # Primary key (UUID format)
    id = Column(String(50), primary_key=True)

    document_id = Column(
        String(50), ForeignKey("documents.id", ondelete="CASCADE"), nullable=False
    )
    author_id = Column(String(100), nullable=False)
    body = Column(Text, nullable=False)

    # Anchor (1-based, inclusive)
    anchor_start_line = Column(Integer, nullable=False)
    anchor_end_line = Column(Integer, nullable=False)
    anchor_text = Column(Text, nullable=False)
    document_version_at_creation = Column(Integer, nullable=False)

    # Resolution
    status = Column(
        Enum(CommentStatus, native_enum=False, length=20,
             values_callable=lambda e: [m.value for m in e]),
        nullable=False,
        default=CommentStatus.PENDING,
    )
    resolved_at = Column(DateTime(timezone=True), nullable=True)
    resolved_by = Column(String(100), nullable=True)

    # Timestamps
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    # Relationships
    document = relationship("Document", back_populates="comments")
    messages = relationship(
        "DiscussionMessage",
        back_populates="comment",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by=lambda: [DiscussionMessage.created_at, DiscussionMessage.id],
    )
    jobs = relationship(
        "IntegrationJob",
        back_populates="comment",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )


class DiscussionMessage(Base):
    """Append-only discussion thread entry attached to a comment."""

    __tablename__ = "discussion_messages"
    __table_args__ = (
        Index("ix_discussion_messages_comment_id", "comment_id", "created_at"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    comment_id = Column(
        String(50), ForeignKey("comments.id", ondelete="CASCADE"), nullable=False
    )
    author_id = Column(String(100), nullable=False)
    message = Column(Text, nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False)

    comment = relationship("Comment", back_populates="messages")
