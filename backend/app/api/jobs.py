"""Integration job status endpoint, polled by clients."""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..core.auth import AuthContext, require_auth
from ..core.config import settings
from ..database import get_db
from ..models import IntegrationJob, JobStatus
from ..schemas import JobStatusResponse
from ..services import JobStatusService

router = APIRouter(prefix="/api/jobs", tags=["jobs"])


def to_status_response(job: IntegrationJob) -> JobStatusResponse:
    """Job row plus the client-facing label and polling hint."""
    status = JobStatus(job.status)
    return JobStatusResponse(
        id=job.id,
        comment_id=job.comment_id,
        document_id=job.document_id,
        status=status,
        label=status.label,
        error_message=job.error_message,
        base_version=job.base_version,
        result_version=job.result_version,
        created_at=job.created_at,
        started_at=job.started_at,
        completed_at=job.completed_at,
        poll_after_seconds=None if status.is_terminal else settings.job_poll_hint_seconds,
    )


@router.get("/{job_id}", response_model=JobStatusResponse)
def get_job(
    job_id: str,
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(require_auth),
):
    """Current status of a job queued by the caller.

    Clients poll until ``status`` is ``completed`` or ``failed``.
    """
    return to_status_response(JobStatusService(db).get_job(job_id, auth.user_id))
