"""Read-only job status lookups for polling clients."""

from typing import List

from sqlalchemy.orm import Session

from ..exceptions import ForbiddenError
from ..models import IntegrationJob
from ..repositories import CommentRepository, JobRepository


class JobStatusService:
    """Answers "where is my job?" for the user who queued it."""

    def __init__(self, db: Session):
        self.db = db
        self.jobs = JobRepository(db)

    def get_job(self, job_id: str, requester_id: str) -> IntegrationJob:
        """Fetch a job. Only the user who queued it may read it."""
        job = self.jobs.get_by_id(job_id)
        if job.requester_id != requester_id:
            raise ForbiddenError(f"You do not have permission to view job {job_id}")
        return job

    def list_for_comment(self, comment_id: str, limit: int = 20) -> List[IntegrationJob]:
        CommentRepository(self.db).get_by_id(comment_id)
        return self.jobs.list_for_comment(comment_id, limit)
