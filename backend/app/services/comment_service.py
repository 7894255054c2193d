"""Comment resolution: anchoring, discussion, reject, and accept.

Accept does not change the comment. It validates the request, charges the
caller's rate limit and queues an integration job; the comment becomes
accepted only when that job commits. Reject is synchronous.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Callable, List, Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.config import Settings, settings as default_settings
from ..exceptions import (
    ConflictError,
    ForbiddenError,
    InvalidStateError,
    RateLimitedError,
    StorageFailureError,
    ValidationError,
)
from ..models import Comment, CommentStatus, DiscussionMessage, Document, IntegrationJob
from ..models.states import advance_comment
from ..repositories import CommentRepository, DocumentRepository, JobRepository, VersionRepository
from .job_coordinator import JobCoordinator
from .rate_limiter import RateLimiter

logger = logging.getLogger(__name__)

# Rate-limited action name for accept requests.
ACCEPT_ACTION = "ai_integration"


class CommentService:
    """Business logic for comments and their resolution state machine."""

    def __init__(
        self,
        db: Session,
        config: Optional[Settings] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.db = db
        self.config = config or default_settings
        self.clock = clock or (lambda: datetime.now(timezone.utc))
        self.comments = CommentRepository(db)
        self.documents = DocumentRepository(db)
        self.jobs = JobRepository(db)

    # ----- anchoring -------------------------------------------------------

    def create_comment(
        self,
        document_id: str,
        author_id: str,
        start_line: int,
        end_line: int,
        body: str,
    ) -> Comment:
        """Attach a comment to lines ``start_line..end_line`` (1-based, inclusive).

        The selected lines are snapshotted so the comment remains readable
        after later versions move or remove them.
        """
        if not body.strip():
            raise ValidationError("Comment body cannot be empty", field="body")

        document = self.documents.get_by_id(document_id)
        lines = document.content.splitlines()
        if start_line < 1 or end_line < start_line:
            raise ValidationError("Invalid line range", field="start_line")
        if end_line > len(lines):
            raise ValidationError(
                f"Line range {start_line}-{end_line} exceeds document length ({len(lines)} lines)",
                field="end_line",
            )

        comment = self.comments.create(
            document_id=document.id,
            author_id=author_id,
            body=body,
            start_line=start_line,
            end_line=end_line,
            anchor_text="\n".join(lines[start_line - 1:end_line]),
            document_version=VersionRepository(self.db).current_number(document.id),
        )
        self.db.commit()
        self.db.refresh(comment)
        logger.info(f"Comment {comment.id} added to document {document.id} by {author_id}")
        return comment

    def get_comment(self, comment_id: str) -> Comment:
        return self.comments.get_by_id(comment_id)

    def list_comments(
        self, document_id: str, status: Optional[CommentStatus] = None
    ) -> List[Comment]:
        self.documents.get_by_id(document_id)
        return self.comments.list_for_document(document_id, status)

    # ----- discussion ------------------------------------------------------

    def add_discussion_message(
        self, comment_id: str, author_id: str, message: str
    ) -> DiscussionMessage:
        """Append a message; a pending comment moves to debating.

        Debating and terminal comments keep their status. Messages are
        accepted on terminal comments too, but never re-open them.
        """
        if not message.strip():
            raise ValidationError("Message cannot be empty", field="message")

        comment = self.comments.get_by_id(comment_id)
        entry = self.comments.add_message(comment.id, author_id, message, self.clock())
        if comment.status == CommentStatus.PENDING:
            comment.status = advance_comment(comment.status, CommentStatus.DEBATING)
            logger.info(f"Comment {comment.id} moved to debating")
        self.db.commit()
        self.db.refresh(entry)
        return entry

    def list_messages(self, comment_id: str) -> List[DiscussionMessage]:
        self.comments.get_by_id(comment_id)
        return self.comments.list_messages(comment_id)

    # ----- resolution ------------------------------------------------------

    def reject(self, comment_id: str, requester_id: str) -> Comment:
        """Owner rejects a non-terminal comment. No job involved."""
        comment = self.comments.get_by_id(comment_id)
        self._require_owner(comment.document_id, requester_id, "reject")

        comment.status = advance_comment(comment.status, CommentStatus.REJECTED)
        comment.resolved_at = self.clock()
        comment.resolved_by = requester_id
        self.db.commit()
        self.db.refresh(comment)

        logger.info(f"Comment {comment.id} rejected by {requester_id}")
        return comment

    def accept(
        self, comment_id: str, requester_id: str, coordinator: JobCoordinator
    ) -> IntegrationJob:
        """Queue an integration job for a comment.

        Raises:
            ForbiddenError: requester does not own the document.
            InvalidStateError: the comment is already accepted or rejected.
            ConflictError: a pending or processing job exists for the comment.
            RateLimitedError: the requester's accept window is exhausted.
        """
        comment = self.comments.get_by_id(comment_id)
        self._require_owner(comment.document_id, requester_id, "accept")

        status = CommentStatus(comment.status)
        if status.is_terminal:
            raise InvalidStateError("comment", status.value, CommentStatus.ACCEPTED.value)

        live = self.jobs.get_live_for_comment(comment.id)
        if live is not None:
            raise _live_job_conflict(comment.id, live.id)

        limiter = RateLimiter(self.db)
        window = timedelta(seconds=self.config.accept_rate_window_seconds)
        now = self.clock()
        if not limiter.try_consume(
            requester_id, ACCEPT_ACTION, self.config.accept_rate_limit, window, now=now
        ):
            retry_after = limiter.retry_after(requester_id, ACCEPT_ACTION, window, now=now)
            self.db.rollback()
            raise RateLimitedError(ACCEPT_ACTION, retry_after)

        try:
            job = coordinator.enqueue(self.db, comment, requester_id)
            self.db.commit()
        except IntegrityError as e:
            # Lost the race against a concurrent accept; the limiter increment
            # is rolled back with the insert.
            self.db.rollback()
            live = self.jobs.get_live_for_comment(comment_id)
            raise _live_job_conflict(comment_id, live.id if live else None) from e
        except SQLAlchemyError as e:
            self.db.rollback()
            raise StorageFailureError("Could not queue integration job", original_error=e) from e

        self.db.refresh(job)
        return job

    def _require_owner(self, document_id: str, requester_id: str, action: str) -> Document:
        document = self.documents.get_by_id(document_id)
        if document.owner_id != requester_id:
            raise ForbiddenError(f"Only the document owner can {action} comments")
        return document


def _live_job_conflict(comment_id: str, job_id: Optional[str]) -> ConflictError:
    return ConflictError(
        f"Comment {comment_id} already has an integration job in progress",
        details={"comment_id": comment_id, "job_id": job_id},
    )
