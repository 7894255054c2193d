"""Integration job repository.

Status writes that can race (claiming, requeueing) are conditional UPDATEs
so two workers can never both move the same row.
"""

import uuid
from datetime import datetime
from typing import List, Optional

from ..exceptions import JobNotFoundError
from ..models import IntegrationJob, JobStatus
from .base import BaseRepository


class JobRepository(BaseRepository[IntegrationJob]):
    """Repository for integration job rows."""

    model_class = IntegrationJob
    not_found_error = JobNotFoundError

    def create(self, comment_id: str, document_id: str, requester_id: str) -> IntegrationJob:
        """Insert a pending job. The live-job unique index may raise IntegrityError on flush."""
        job = IntegrationJob(
            id=str(uuid.uuid4()),
            comment_id=comment_id,
            document_id=document_id,
            requester_id=requester_id,
            status=JobStatus.PENDING,
        )
        self.db.add(job)
        self.db.flush()
        return job

    def get_live_for_comment(self, comment_id: str) -> Optional[IntegrationJob]:
        return (
            self.db.query(IntegrationJob)
            .filter(
                IntegrationJob.comment_id == comment_id,
                IntegrationJob.status.in_([JobStatus.PENDING, JobStatus.PROCESSING]),
            )
            .first()
        )

    def list_for_comment(self, comment_id: str, limit: int = 20) -> List[IntegrationJob]:
        return (
            self.db.query(IntegrationJob)
            .filter(IntegrationJob.comment_id == comment_id)
            .order_by(IntegrationJob.created_at.desc())
            .limit(limit)
            .all()
        )

    def claim(self, job_id: str, now: datetime) -> bool:
        """Move a job pending -> processing. Returns False if someone else got it first."""
        updated = (
            self.db.query(IntegrationJob)
            .filter(IntegrationJob.id == job_id, IntegrationJob.status == JobStatus.PENDING)
            .update(
                {IntegrationJob.status: JobStatus.PROCESSING, IntegrationJob.started_at: now},
                synchronize_session=False,
            )
        )
        return updated == 1

    def next_pending_id(self) -> Optional[str]:
        """Oldest pending job id, or None."""
        row = (
            self.db.query(IntegrationJob.id)
            .filter(IntegrationJob.status == JobStatus.PENDING)
            .order_by(IntegrationJob.created_at.asc())
            .first()
        )
        return row[0] if row else None

    def pending_ids(self) -> List[str]:
        """All pending job ids, oldest first."""
        rows = (
            self.db.query(IntegrationJob.id)
            .filter(IntegrationJob.status == JobStatus.PENDING)
            .order_by(IntegrationJob.created_at.asc())
            .all()
        )
        return [row[0] for row in rows]

    def requeue_stale(self, started_before: datetime) -> int:
        """Return processing jobs that stopped making progress to the queue."""
        return (
            self.db.query(IntegrationJob)
            .filter(
                IntegrationJob.status == JobStatus.PROCESSING,
                IntegrationJob.started_at < started_before,
            )
            .update(
                {IntegrationJob.status: JobStatus.PENDING, IntegrationJob.started_at: None},
                synchronize_session=False,
            )
        )
