"""Integration job schemas."""

from pydantic import BaseModel
from datetime import datetime
from typing import Optional

from ..models.states import JobStatus


class AcceptResponse(BaseModel):
    """Returned immediately by accept; poll the job for the outcome."""
    job_id: str
    status: JobStatus
    message: str


class JobStatusResponse(BaseModel):
    """Schema for integration job status."""
    id: str
    comment_id: str
    document_id: str
    status: JobStatus
    label: str  # queued | processing | completed | failed
    error_message: Optional[str] = None
    base_version: Optional[int] = None
    result_version: Optional[int] = None
    created_at: datetime
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    # Suggested delay before the next poll; None once the job is terminal.
    poll_after_seconds: Optional[float] = None
