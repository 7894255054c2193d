"""Integration job model for tracking AI rewrites triggered by accepted comments."""

from sqlalchemy import Column, String, Text, Integer, DateTime, Enum, ForeignKey, Index, text
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from ..database import Base
from .states import JobStatus, LIVE_JOB_STATUSES

_LIVE_PREDICATE = text(
    "status IN ({})".format(", ".join(f"'{s}'" for s in LIVE_JOB_STATUSES))
)


class IntegrationJob(Base):
    """
    One attempt to have the generation API rewrite a document from a comment.

    Status transitions: pending -> processing -> completed | failed
    At most one job per comment may be live (pending or processing); the
    partial unique index below enforces it.
    """

    __tablename__ = "integration_jobs"
    __table_args__ = (
        Index(
            "uq_integration_jobs_live_comment",
            "comment_id",
            unique=True,
            sqlite_where=_LIVE_PREDICATE,
            postgresql_where=_LIVE_PREDICATE,
        ),
        Index("ix_integration_jobs_status_created", "status", "created_at"),
        Index("ix_integration_jobs_document_id", "document_id"),
    )

    # Primary key (UUID format)
    id = Column(String(50), primary_key=True)

    comment_id = Column(
        String(50), ForeignKey("comments.id", ondelete="CASCADE"), nullable=False
    )
    document_id = Column(
        String(50), ForeignKey("documents.id", ondelete="CASCADE"), nullable=False
    )
    requester_id = Column(String(100), nullable=False)

    # Job lifecycle
    status = Column(
        Enum(JobStatus, native_enum=False, length=20,
             values_callable=lambda e: [m.value for m in e]),
        nullable=False,
        default=JobStatus.PENDING,
    )
    error_message = Column(Text, nullable=True)

    # Document version the model was shown, and the version the job produced
    base_version = Column(Integer, nullable=True)
    result_version = Column(Integer, nullable=True)

    # Generation API usage
    model_used = Column(String(100), nullable=True)
    prompt_tokens = Column(Integer, nullable=True)
    completion_tokens = Column(Integer, nullable=True)

    # Timestamps
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    started_at = Column(DateTime(timezone=True), nullable=True)
    completed_at = Column(DateTime(timezone=True), nullable=True)

    comment = relationship("Comment", back_populates="jobs")
