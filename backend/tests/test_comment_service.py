"""Unit tests for CommentService: anchoring, discussion, reject and accept."""

from datetime import datetime, timedelta, timezone

import pytest

from app.exceptions import (
    ConflictError,
    ForbiddenError,
    InvalidStateError,
    RateLimitedError,
    ValidationError,
)
from app.models import CommentStatus, IntegrationJob, JobStatus
from app.services import CommentService
from tests.conftest import OWNER, REVIEWER, make_comment, make_plan


class TestCreateComment:

    def test_snapshots_anchored_lines(self, db):
        doc = make_plan(db, "one\ntwo\nthree\nfour\n")
        comment = make_comment(db, doc, start_line=2, end_line=3)
        assert comment.anchor_text == "two\nthree"
        assert comment.document_version_at_creation == 1
        assert comment.status == CommentStatus.PENDING

    def test_range_past_end_of_document(self, db):
        doc = make_plan(db)
        with pytest.raises(ValidationError) as exc_info:
            make_comment(db, doc, start_line=3, end_line=4)
        assert exc_info.value.details["field"] == "end_line"

    def test_inverted_range(self, db):
        doc = make_plan(db)
        with pytest.raises(ValidationError):
            make_comment(db, doc, start_line=3, end_line=2)

    def test_blank_body(self, db):
        doc = make_plan(db)
        with pytest.raises(ValidationError):
            make_comment(db, doc, body="   ")


class TestDiscussion:

    def test_first_message_moves_pending_to_debating(self, db):
        comment = make_comment(db, make_plan(db))
        CommentService(db).add_discussion_message(comment.id, OWNER, "Why B2?")
        db.refresh(comment)
        assert comment.status == CommentStatus.DEBATING

    def test_debating_stays_debating(self, db):
        comment = make_comment(db, make_plan(db))
        service = CommentService(db)
        service.add_discussion_message(comment.id, OWNER, "Why B2?")
        service.add_discussion_message(comment.id, REVIEWER, "Consistency")
        db.refresh(comment)
        assert comment.status == CommentStatus.DEBATING

    def test_messages_on_rejected_comment_do_not_reopen_it(self, db):
        comment = make_comment(db, make_plan(db))
        service = CommentService(db)
        service.reject(comment.id, OWNER)
        service.add_discussion_message(comment.id, REVIEWER, "But why?")
        db.refresh(comment)
        assert comment.status == CommentStatus.REJECTED

    def test_messages_are_chronological(self, db):
        base = datetime(2026, 3, 1, tzinfo=timezone.utc)
        ticks = iter(base + timedelta(seconds=i) for i in range(10))
        comment = make_comment(db, make_plan(db))
        service = CommentService(db, clock=lambda: next(ticks))
        for text in ("first", "second", "third"):
            service.add_discussion_message(comment.id, REVIEWER, text)
        assert [m.message for m in service.list_messages(comment.id)] == ["first", "second", "third"]


class TestReject:

    def test_owner_rejects(self, db):
        comment = make_comment(db, make_plan(db))
        rejected = CommentService(db).reject(comment.id, OWNER)
        assert rejected.status == CommentStatus.REJECTED
        assert rejected.resolved_by == OWNER
        assert rejected.resolved_at is not None

    def test_reject_twice(self, db):
        comment = make_comment(db, make_plan(db))
        service = CommentService(db)
        service.reject(comment.id, OWNER)
        with pytest.raises(InvalidStateError):
            service.reject(comment.id, OWNER)

    def test_non_owner_cannot_reject(self, db):
        comment = make_comment(db, make_plan(db))
        with pytest.raises(ForbiddenError):
            CommentService(db).reject(comment.id, REVIEWER)
        db.refresh(comment)
        assert comment.status == CommentStatus.PENDING


class TestAccept:

    def test_queues_job_without_touching_comment(self, db, config, coordinator):
        comment = make_comment(db, make_plan(db))
        job = CommentService(db, config).accept(comment.id, OWNER, coordinator)
        assert job.status == JobStatus.PENDING
        assert job.requester_id == OWNER
        db.refresh(comment)
        assert comment.status == CommentStatus.PENDING

    def test_non_owner_is_forbidden(self, db, config, coordinator):
        comment = make_comment(db, make_plan(db))
        with pytest.raises(ForbiddenError):
            CommentService(db, config).accept(comment.id, REVIEWER, coordinator)

    def test_second_accept_conflicts_while_job_is_live(self, db, config, coordinator):
        comment = make_comment(db, make_plan(db))
        service = CommentService(db, config)
        first = service.accept(comment.id, OWNER, coordinator)
        with pytest.raises(ConflictError) as exc_info:
            service.accept(comment.id, OWNER, coordinator)
        assert exc_info.value.details["job_id"] == first.id
        assert db.query(IntegrationJob).count() == 1

    def test_rejected_comment_cannot_be_accepted(self, db, config, coordinator):
        comment = make_comment(db, make_plan(db))
        service = CommentService(db, config)
        service.reject(comment.id, OWNER)
        with pytest.raises(InvalidStateError):
            service.accept(comment.id, OWNER, coordinator)

    def test_rate_limit_applies_per_owner(self, db, config, coordinator):
        config.accept_rate_limit = 2
        doc = make_plan(db)
        comments = [make_comment(db, doc, body=f"note {i}") for i in range(3)]
        service = CommentService(db, config)
        service.accept(comments[0].id, OWNER, coordinator)
        service.accept(comments[1].id, OWNER, coordinator)
        with pytest.raises(RateLimitedError) as exc_info:
            service.accept(comments[2].id, OWNER, coordinator)
        assert exc_info.value.details["retry_after"] > 0
        assert db.query(IntegrationJob).count() == 2

    def test_conflict_does_not_consume_quota(self, db, config, coordinator):
        config.accept_rate_limit = 1
        doc = make_plan(db)
        first = make_comment(db, doc, body="first")
        service = CommentService(db, config)
        service.accept(first.id, OWNER, coordinator)
        with pytest.raises(ConflictError):
            service.accept(first.id, OWNER, coordinator)
        # The window was already full; the conflict is reported before the limiter runs.
        second = make_comment(db, doc, body="second")
        with pytest.raises(RateLimitedError):
            service.accept(second.id, OWNER, coordinator)
