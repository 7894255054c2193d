"""Comment resolution endpoints: discuss, accept, reject."""

import logging
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from typing import List, Optional

from ..core.auth import AuthContext, require_auth
from ..database import get_db
from ..schemas import (
    AcceptResponse,
    CommentResponse,
    DiscussionMessageCreate,
    DiscussionMessageResponse,
    JobStatusResponse,
    RejectResponse,
)
from ..services import CommentService, JobCoordinator, JobDispatcher, JobStatusService
from .deps import get_coordinator, get_dispatcher
from .jobs import to_status_response

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/comments", tags=["comments"])


@router.get("/{comment_id}", response_model=CommentResponse)
def get_comment(
    comment_id: str,
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(require_auth),
):
    return CommentService(db).get_comment(comment_id)


@router.post("/{comment_id}/accept", response_model=AcceptResponse, status_code=202)
def accept_comment(
    comment_id: str,
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(require_auth),
    coordinator: JobCoordinator = Depends(get_coordinator),
    dispatcher: Optional[JobDispatcher] = Depends(get_dispatcher),
):
    """Queue an AI integration of the comment. Returns immediately with the job id.

    The comment becomes ``accepted`` only when the job completes; poll
    ``GET /api/jobs/{job_id}`` for the outcome.
    """
    job = CommentService(db).accept(comment_id, auth.user_id, coordinator)
    if dispatcher is not None:
        dispatcher.submit(job.id)
    logger.info(f"Comment {comment_id} accepted by {auth.user_id}, job {job.id} queued")
    return AcceptResponse(
        job_id=job.id,
        status=job.status,
        message="Integration queued",
    )


@router.post("/{comment_id}/reject", response_model=RejectResponse)
def reject_comment(
    comment_id: str,
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(require_auth),
):
    comment = CommentService(db).reject(comment_id, auth.user_id)
    return RejectResponse(ok=True, comment=CommentResponse.model_validate(comment))


@router.post(
    "/{comment_id}/discussion", response_model=DiscussionMessageResponse, status_code=201
)
def add_discussion_message(
    comment_id: str,
    request: DiscussionMessageCreate,
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(require_auth),
):
    """Append to the comment's discussion. A pending comment moves to debating."""
    return CommentService(db).add_discussion_message(comment_id, auth.user_id, request.message)


@router.get("/{comment_id}/discussion", response_model=List[DiscussionMessageResponse])
def list_discussion(
    comment_id: str,
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(require_auth),
):
    return CommentService(db).list_messages(comment_id)


@router.get("/{comment_id}/jobs", response_model=List[JobStatusResponse])
def list_comment_jobs(
    comment_id: str,
    limit: int = Query(20, ge=1, le=100),
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(require_auth),
):
    """Integration attempts for a comment, newest first."""
    return [to_status_response(job) for job in JobStatusService(db).list_for_comment(comment_id, limit)]
