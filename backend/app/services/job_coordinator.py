"""Owns the integration job lifecycle, from queued row to committed version.

Jobs are created by ``CommentService.accept`` (pending), claimed by a
dispatcher thread or by ``worker.py`` (processing), and end either
completed, with the document, version, comment and job written in one
transaction, or failed, with nothing but the job row touched.

Each ``process`` call opens its own session. No transaction is held while
the generation API is being called.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable, List, Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from ..core.config import Settings, settings as default_settings
from ..core.logging_config import bind_job
from ..database import SessionLocal
from ..exceptions import ConflictError, ReviewException, UpstreamFailureError
from ..models import Comment, CommentStatus, IntegrationJob, JobStatus, Version, VersionSource
from ..models.states import advance_comment, advance_job
from ..repositories import CommentRepository, DocumentRepository, JobRepository, VersionRepository
from .integration_client import IntegrationClient, IntegrationResult
from .notification_service import LoggingNotifier, Notifier, notify_safely
from .prompts import format_feedback

logger = logging.getLogger(__name__)

# Attempts for the commit transaction when the version-number unique
# constraint fires because another job committed first.
COMMIT_ATTEMPTS = 3

# Longest error text stored on a job row.
MAX_ERROR_CHARS = 2000

SUMMARY_FEEDBACK_CHARS = 80


def build_summary(start_line: int, end_line: int, feedback: str) -> str:
    """Short version-history line: the anchored range plus truncated feedback."""
    text = " ".join(feedback.split())
    if len(text) > SUMMARY_FEEDBACK_CHARS:
        text = text[:SUMMARY_FEEDBACK_CHARS - 3].rstrip() + "..."
    span = f"Line {start_line}" if start_line == end_line else f"Lines {start_line}-{end_line}"
    return f"{span}: {text}"


@dataclass(frozen=True)
class _JobContext:
    """Everything read from the database before the generation call."""
    document_id: str
    comment_id: str
    requester_id: str
    document_text: str
    base_version: int
    excerpt: str
    start_line: int
    end_line: int
    feedback: str
    summary: str
    source: VersionSource


class JobCoordinator:
    """Creates, runs and settles integration jobs.

    Args:
        session_factory: Factory for the per-job sessions.
        client: Generation API adapter.
        notifier: Told about every terminal job outcome.
        config: Settings (fresh-base check, stale job threshold).
        clock: Returns the current UTC time (injectable for testing).
    """

    def __init__(
        self,
        session_factory: sessionmaker = SessionLocal,
        client: Optional[IntegrationClient] = None,
        notifier: Optional[Notifier] = None,
        config: Optional[Settings] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.session_factory = session_factory
        self.config = config or default_settings
        self.client = client or IntegrationClient(self.config)
        self.notifier = notifier or LoggingNotifier()
        self.clock = clock or (lambda: datetime.now(timezone.utc))

    # ----- creation (caller's transaction) ---------------------------------

    def enqueue(self, db: Session, comment: Comment, requester_id: str) -> IntegrationJob:
        """Insert a pending job for *comment* inside the caller's transaction.

        The partial unique index on live jobs raises IntegrityError at flush
        if another live job exists; the caller turns that into a Conflict.
        """
        job = JobRepository(db).create(
            comment_id=comment.id,
            document_id=comment.document_id,
            requester_id=requester_id,
        )
        logger.info(
            f"Enqueued integration job {job.id} for comment {comment.id}",
            extra={"job_id": job.id, "comment_id": comment.id, "document_id": comment.document_id},
        )
        return job

    # ----- processing (own session) ----------------------------------------

    def process(self, job_id: str) -> Optional[JobStatus]:
        """Claim and run one job.

        Returns:
            The terminal status reached, or None if the job was not pending
            (already claimed elsewhere, or finished).
        """
        db = self.session_factory()
        try:
            if not JobRepository(db).claim(job_id, self.clock()):
                db.rollback()
                logger.info(f"Job {job_id} is not pending, skipping")
                return None
            db.commit()
        finally:
            db.close()
        return self.run_claimed(job_id)

    def process_next(self) -> Optional[JobStatus]:
        """Claim the oldest pending job and run it. Returns None when the queue is empty."""
        job_id = self.claim_next()
        if job_id is None:
            return None
        return self.run_claimed(job_id)

    def claim_next(self) -> Optional[str]:
        """Move the oldest pending job to processing and return its id."""
        db = self.session_factory()
        try:
            jobs = JobRepository(db)
            while True:
                job_id = jobs.next_pending_id()
                if job_id is None:
                    db.rollback()
                    return None
                if jobs.claim(job_id, self.clock()):
                    db.commit()
                    return job_id
                # Lost the race to another worker; look again.
                db.rollback()
        finally:
            db.close()

    def run_claimed(self, job_id: str) -> JobStatus:
        """Run a job this process has already claimed, in a fresh session."""
        db = self.session_factory()
        with bind_job(job_id):
            try:
                return self._run_pipeline(db, job_id)
            except Exception as e:
                logger.exception(f"Job {job_id} crashed")
                return self._fail(db, job_id, f"Internal error: {e}")
            finally:
                db.close()

    def requeue_stale(self) -> int:
        """Return processing jobs older than ``stale_job_seconds`` to the queue."""
        cutoff = self.clock() - timedelta(seconds=self.config.stale_job_seconds)
        db = self.session_factory()
        try:
            count = JobRepository(db).requeue_stale(cutoff)
            db.commit()
            if count:
                logger.warning(f"Re-queued {count} stale processing job(s)")
            return count
        finally:
            db.close()

    def pending_job_ids(self) -> List[str]:
        db = self.session_factory()
        try:
            return JobRepository(db).pending_ids()
        finally:
            db.close()

    # ----- pipeline steps --------------------------------------------------

    def _run_pipeline(self, db: Session, job_id: str) -> JobStatus:
        logger.info(f"Processing job {job_id}")

        try:
            context = self._load_context(db, job_id)
        except (ReviewException, SQLAlchemyError) as e:
            return self._fail(db, job_id, _describe(e))

        try:
            result = self.client.integrate(
                context.document_text,
                context.excerpt,
                context.feedback,
                start_line=context.start_line,
                end_line=context.end_line,
            )
        except UpstreamFailureError as e:
            return self._fail(db, job_id, e.message, context)

        for attempt in range(1, COMMIT_ATTEMPTS + 1):
            try:
                version = self._commit(db, job_id, context, result)
                db.commit()
                break
            except IntegrityError as e:
                db.rollback()
                logger.warning(
                    f"Commit for job {job_id} collided (attempt {attempt}/{COMMIT_ATTEMPTS}): {e}"
                )
                if attempt == COMMIT_ATTEMPTS:
                    return self._fail(db, job_id, f"Storage failure: {e.orig}", context)
            except (ReviewException, SQLAlchemyError) as e:
                db.rollback()
                return self._fail(db, job_id, _describe(e), context)

        logger.info(
            f"Job {job_id} completed: document {context.document_id} is now v{version.version_number}",
            extra={"job_id": job_id, "document_id": context.document_id,
                   "version": version.version_number},
        )
        notify_safely(
            self.notifier,
            context.requester_id,
            "Comment integrated",
            f"Version {version.version_number} was created from your accepted comment.",
            _link(context),
        )
        return JobStatus.COMPLETED

    def _load_context(self, db: Session, job_id: str) -> _JobContext:
        jobs = JobRepository(db)
        comments = CommentRepository(db)
        job = jobs.get_by_id(job_id)
        document = DocumentRepository(db).get_by_id(job.document_id)
        comment = comments.get_by_id(job.comment_id)

        if CommentStatus(comment.status).is_terminal:
            raise ConflictError(
                f"Comment {comment.id} was {CommentStatus(comment.status).value} before the job ran",
                details={"comment_id": comment.id},
            )

        transcript = [(m.author_id, m.message) for m in comments.list_messages(comment.id)]
        base_version = VersionRepository(db).current_number(document.id)

        job.base_version = base_version
        db.commit()

        return _JobContext(
            document_id=document.id,
            comment_id=comment.id,
            requester_id=job.requester_id,
            document_text=document.content,
            base_version=base_version,
            excerpt=comment.anchor_text,
            start_line=comment.anchor_start_line,
            end_line=comment.anchor_end_line,
            feedback=format_feedback(comment.body, transcript),
            summary=build_summary(comment.anchor_start_line, comment.anchor_end_line, comment.body),
            source=VersionSource.AI_FROM_DISCUSSION if transcript else VersionSource.AI_FROM_COMMENT,
        )

    def _commit(
        self, db: Session, job_id: str, context: _JobContext, result: IntegrationResult
    ) -> Version:
        """Apply a successful rewrite. Flushes only; the caller commits or rolls back."""
        documents = DocumentRepository(db)
        versions = VersionRepository(db)

        # Row lock serialises version-number allocation per document.
        document = documents.get_by_id(context.document_id, for_update=True)
        current = versions.current_number(document.id)
        if self.config.integration_require_fresh_base and current != context.base_version:
            raise ConflictError(
                f"Document changed while the job ran (v{context.base_version} -> v{current}); "
                "accept the comment again to retry",
                details={"base_version": context.base_version, "current_version": current},
            )

        now = self.clock()
        comment = CommentRepository(db).get_by_id(context.comment_id, for_update=True)
        comment.status = advance_comment(comment.status, CommentStatus.ACCEPTED)
        comment.resolved_at = now
        comment.resolved_by = context.requester_id

        documents.set_content(document, result.text)
        version = versions.append(
            document.id,
            result.text,
            context.source,
            created_by=context.requester_id,
            originating_comment_id=comment.id,
            summary=context.summary,
        )

        job = JobRepository(db).get_by_id(job_id)
        job.status = advance_job(job.status, JobStatus.COMPLETED)
        job.completed_at = now
        job.result_version = version.version_number
        job.model_used = result.model
        job.prompt_tokens = result.prompt_tokens
        job.completion_tokens = result.completion_tokens
        job.error_message = None
        db.flush()
        return version

    def _fail(
        self,
        db: Session,
        job_id: str,
        message: str,
        context: Optional[_JobContext] = None,
    ) -> JobStatus:
        """Mark the job failed in a fresh transaction. Nothing else is written."""
        message = message[-MAX_ERROR_CHARS:]
        try:
            db.rollback()
            job = JobRepository(db).get_by_id(job_id)
            job.status = advance_job(job.status, JobStatus.FAILED)
            job.error_message = message
            job.completed_at = self.clock()
            db.commit()
        except (ReviewException, SQLAlchemyError) as e:
            db.rollback()
            logger.error(f"Could not record failure of job {job_id}: {e}")
            raise

        logger.warning(f"Job {job_id} failed: {message[:200]}", extra={"job_id": job_id})
        if context is not None:
            notify_safely(
                self.notifier,
                context.requester_id,
                "Comment integration failed",
                message,
                _link(context),
            )
        return JobStatus.FAILED


def _describe(error: Exception) -> str:
    if isinstance(error, ReviewException):
        return error.message
    return f"Storage failure: {error}"


def _link(context: _JobContext) -> str:
    return f"/plans/{context.document_id}?comment={context.comment_id}"
