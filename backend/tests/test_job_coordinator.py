"""Tests for the integration job pipeline, end to end against SQLite.

The generation API is faked; everything else (claiming, the commit
transaction, failure recording, notifications) runs for real.
"""

import logging
from concurrent.futures import Future, ThreadPoolExecutor
from datetime import datetime, timedelta, timezone

from fastapi.testclient import TestClient
from sqlalchemy.exc import IntegrityError, OperationalError

import worker
from app.core.config import settings
from app.main import app
from app.models import CommentStatus, Document, IntegrationJob, JobStatus, Version, VersionSource
from app.repositories import JobRepository, VersionRepository
from app.services import CommentService, DocumentService, JobDispatcher
from app.services.job_coordinator import COMMIT_ATTEMPTS, build_summary
from app.services.job_dispatcher import log_job_outcome
from tests.conftest import (
    OWNER,
    REVIEWER,
    FakeCompletion,
    RecordingNotifier,
    make_comment,
    make_coordinator,
    make_plan,
)


def _accept(db, config, coordinator, comment):
    job = CommentService(db, config).accept(comment.id, OWNER, coordinator)
    return job.id


def _versions(db, document_id):
    db.expire_all()
    return (
        db.query(Version)
        .filter(Version.document_id == document_id)
        .order_by(Version.version_number)
        .all()
    )


class TestSuccessfulIntegration:

    def test_rewrites_document_and_accepts_comment(self, db, config, coordinator, notifier):
        doc = make_plan(db)
        comment = make_comment(db, doc)
        job_id = _accept(db, config, coordinator, comment)

        assert coordinator.process(job_id) == JobStatus.COMPLETED

        db.expire_all()
        assert db.get(Document, doc.id).content == "A\nB2\nC\n"
        versions = _versions(db, doc.id)
        assert [v.version_number for v in versions] == [1, 2]
        assert versions[1].source == VersionSource.AI_FROM_COMMENT
        assert versions[1].originating_comment_id == comment.id
        assert versions[1].content == "A\nB2\nC\n"
        assert versions[1].summary == "Line 2: Change B to B2"

        job = db.get(IntegrationJob, job_id)
        assert job.status == JobStatus.COMPLETED
        assert job.base_version == 1
        assert job.result_version == 2
        assert job.model_used == "test/model"
        assert job.completed_at is not None

        comment = CommentService(db).get_comment(comment.id)
        assert comment.status == CommentStatus.ACCEPTED
        assert comment.resolved_by == OWNER

        assert len(notifier.sent) == 1
        user_id, title, _, link = notifier.sent[0]
        assert user_id == OWNER
        assert title == "Comment integrated"
        assert link == f"/plans/{doc.id}?comment={comment.id}"

    def test_discussion_changes_source_and_feedback(self, db, config, coordinator, completion):
        doc = make_plan(db)
        comment = make_comment(db, doc)
        CommentService(db).add_discussion_message(comment.id, OWNER, "B2 or B3?")
        CommentService(db).add_discussion_message(comment.id, REVIEWER, "B2 please")
        job_id = _accept(db, config, coordinator, comment)

        coordinator.process(job_id)

        assert _versions(db, doc.id)[-1].source == VersionSource.AI_FROM_DISCUSSION
        prompt = completion.calls[0]["messages"][1]["content"]
        assert "B2 or B3?" in prompt
        assert "B2 please" in prompt

    def test_process_is_a_no_op_for_claimed_jobs(self, db, config, coordinator, completion):
        comment = make_comment(db, make_plan(db))
        job_id = _accept(db, config, coordinator, comment)
        coordinator.process(job_id)

        assert coordinator.process(job_id) is None
        assert len(completion.calls) == 1


class TestFailedIntegration:

    def test_upstream_timeouts_fail_job_only(self, db, config, notifier):
        completion = FakeCompletion(TimeoutError("timed out"))
        coordinator = make_coordinator(config, completion, notifier)
        doc = make_plan(db)
        comment = make_comment(db, doc)
        job_id = _accept(db, config, coordinator, comment)

        assert coordinator.process(job_id) == JobStatus.FAILED
        assert len(completion.calls) == 2

        db.expire_all()
        job = db.get(IntegrationJob, job_id)
        assert job.status == JobStatus.FAILED
        assert "after 2 attempts" in job.error_message
        assert db.get(Document, doc.id).content == "A\nB\nC\n"
        assert len(_versions(db, doc.id)) == 1
        assert CommentService(db).get_comment(comment.id).status == CommentStatus.PENDING
        assert notifier.sent[0][1] == "Comment integration failed"

    def test_failed_job_can_be_retried(self, db, config, notifier):
        completion = FakeCompletion(TimeoutError("down"), TimeoutError("down"), "A\nB2\nC\n")
        coordinator = make_coordinator(config, completion, notifier)
        comment = make_comment(db, make_plan(db))

        first = _accept(db, config, coordinator, comment)
        assert coordinator.process(first) == JobStatus.FAILED
        second = _accept(db, config, coordinator, comment)
        assert coordinator.process(second) == JobStatus.COMPLETED

    def test_document_edited_while_job_ran(self, db, config, notifier):
        doc = make_plan(db)

        def edit_then_answer(**kwargs):
            DocumentService(db).update_content(doc.id, OWNER, "A\nB\nC\nD\n")
            return FakeCompletion("A\nB2\nC\n")(**kwargs)

        coordinator = make_coordinator(config, edit_then_answer, notifier)
        comment = make_comment(db, doc)
        job_id = _accept(db, config, coordinator, comment)

        assert coordinator.process(job_id) == JobStatus.FAILED

        db.expire_all()
        job = db.get(IntegrationJob, job_id)
        assert "Document changed" in job.error_message
        assert db.get(Document, doc.id).content == "A\nB\nC\nD\n"
        assert [v.source for v in _versions(db, doc.id)] == [VersionSource.MANUAL, VersionSource.MANUAL]
        assert CommentService(db).get_comment(comment.id).status == CommentStatus.PENDING

    def test_stale_base_allowed_when_check_disabled(self, db, config, notifier):
        config.integration_require_fresh_base = False
        doc = make_plan(db)

        def edit_then_answer(**kwargs):
            DocumentService(db).update_content(doc.id, OWNER, "A\nB\nC\nD\n")
            return FakeCompletion("A\nB2\nC\n")(**kwargs)

        coordinator = make_coordinator(config, edit_then_answer, notifier)
        job_id = _accept(db, config, coordinator, make_comment(db, doc))

        assert coordinator.process(job_id) == JobStatus.COMPLETED
        assert [v.version_number for v in _versions(db, doc.id)] == [1, 2, 3]

    def test_comment_rejected_before_job_ran(self, db, config, coordinator, completion):
        comment = make_comment(db, make_plan(db))
        job_id = _accept(db, config, coordinator, comment)
        CommentService(db).reject(comment.id, OWNER)

        assert coordinator.process(job_id) == JobStatus.FAILED
        assert completion.calls == []

    def test_notifier_failure_does_not_undo_commit(self, db, config, completion):
        coordinator = make_coordinator(config, completion, RecordingNotifier(fail=True))
        doc = make_plan(db)
        job_id = _accept(db, config, coordinator, make_comment(db, doc))

        assert coordinator.process(job_id) == JobStatus.COMPLETED
        db.expire_all()
        assert db.get(Document, doc.id).content == "A\nB2\nC\n"


class TestQueue:

    def test_claim_next_takes_oldest_pending(self, db, config, coordinator):
        doc = make_plan(db, "one\ntwo\nthree\n")
        job_id = _accept(db, config, coordinator, make_comment(db, doc, 1, 1, "first"))

        assert coordinator.claim_next() == job_id
        assert coordinator.claim_next() is None

    def test_process_next_on_empty_queue(self, coordinator):
        assert coordinator.process_next() is None

    def test_requeue_stale_processing_jobs(self, db, config, coordinator):
        comment = make_comment(db, make_plan(db))
        job_id = _accept(db, config, coordinator, comment)
        coordinator.claim_next()

        coordinator.clock = lambda: datetime.now(timezone.utc) + timedelta(
            seconds=config.stale_job_seconds + 1
        )
        assert coordinator.requeue_stale() == 1
        db.expire_all()
        assert db.get(IntegrationJob, job_id).status == JobStatus.PENDING

    def test_dispatcher_runs_submitted_job(self, db, config, coordinator):
        comment = make_comment(db, make_plan(db))
        job_id = _accept(db, config, coordinator, comment)
        dispatcher = JobDispatcher(coordinator, max_workers=1)
        try:
            assert dispatcher.submit(job_id).result(timeout=30) == JobStatus.COMPLETED
        finally:
            dispatcher.shutdown()

    def test_recover_runs_jobs_left_by_previous_process(self, db, config, coordinator):
        doc = make_plan(db, "one\ntwo\nthree\n")
        stuck = _accept(db, config, coordinator, make_comment(db, doc, 1, 1, "first"))
        assert coordinator.claim_next() == stuck
        queued = _accept(db, config, coordinator, make_comment(db, doc, 3, 3, "third"))
        coordinator.clock = lambda: datetime.now(timezone.utc) + timedelta(
            seconds=config.stale_job_seconds + 1
        )

        dispatcher = JobDispatcher(coordinator, max_workers=1)
        try:
            futures = dispatcher.recover()
            outcomes = [f.result(timeout=30) for f in futures]
        finally:
            dispatcher.shutdown()

        assert len(outcomes) == 2
        db.expire_all()
        for job_id in (queued, stuck):
            assert db.get(IntegrationJob, job_id).status in (JobStatus.COMPLETED, JobStatus.FAILED)

    def test_recover_with_empty_queue(self, coordinator):
        dispatcher = JobDispatcher(coordinator, max_workers=1)
        try:
            assert dispatcher.recover() == []
        finally:
            dispatcher.shutdown()

    def test_app_startup_runs_pending_jobs(self, db, config, coordinator, monkeypatch):
        comment = make_comment(db, make_plan(db))
        job_id = _accept(db, config, coordinator, comment)
        monkeypatch.setattr(settings, "worker_dispatch_in_process", True)
        monkeypatch.setattr("app.main.JobCoordinator", lambda: coordinator)

        # Shutdown waits for the dispatcher, so the job has settled on exit.
        with TestClient(app):
            pass

        db.expire_all()
        assert db.get(IntegrationJob, job_id).status == JobStatus.COMPLETED
        assert CommentService(db).get_comment(comment.id).status == CommentStatus.ACCEPTED


class TestJobOutcomeLogging:

    def test_task_exception_is_logged(self, caplog):
        future = Future()
        future.set_exception(RuntimeError("session factory exploded"))
        with caplog.at_level(logging.ERROR, logger="app.services.job_dispatcher"):
            log_job_outcome("job-42", future)
        assert "job-42" in caplog.text
        assert "session factory exploded" in caplog.text

    def test_worker_logs_crashed_job(self, caplog):
        class Crashing:
            def run_claimed(self, job_id):
                raise RuntimeError("lost connection")

        with caplog.at_level(logging.ERROR, logger="app.services.job_dispatcher"):
            with ThreadPoolExecutor(max_workers=1) as pool:
                worker.submit_claimed(pool, Crashing(), "job-7")
        assert "job-7" in caplog.text
        assert "lost connection" in caplog.text


class TestStorageFailures:

    def test_job_row_write_fails_after_version_flush(self, db, config, notifier, monkeypatch):
        coordinator = make_coordinator(config, FakeCompletion("A\nB2\nC\n"), notifier)
        doc = make_plan(db)
        comment = make_comment(db, doc)
        job_id = _accept(db, config, coordinator, comment)

        calls = []
        original = JobRepository.get_by_id

        def flaky(self, *args, **kwargs):
            calls.append(args)
            if len(calls) == 2:
                raise OperationalError("UPDATE integration_jobs", {}, Exception("disk I/O error"))
            return original(self, *args, **kwargs)

        monkeypatch.setattr(JobRepository, "get_by_id", flaky)
        assert coordinator.process(job_id) == JobStatus.FAILED
        monkeypatch.undo()

        db.expire_all()
        job = db.get(IntegrationJob, job_id)
        assert job.status == JobStatus.FAILED
        assert "Storage failure" in job.error_message
        assert db.get(Document, doc.id).content == "A\nB\nC\n"
        assert len(_versions(db, doc.id)) == 1
        assert CommentService(db).get_comment(comment.id).status == CommentStatus.PENDING

    def test_version_collisions_exhaust_commit_attempts(self, db, config, notifier, monkeypatch):
        completion = FakeCompletion("A\nB2\nC\n")
        coordinator = make_coordinator(config, completion, notifier)
        doc = make_plan(db)
        comment = make_comment(db, doc)
        job_id = _accept(db, config, coordinator, comment)

        appends = []

        def taken(self, *args, **kwargs):
            appends.append(args)
            raise IntegrityError("INSERT INTO document_versions", {}, Exception("UNIQUE constraint failed"))

        monkeypatch.setattr(VersionRepository, "append", taken)
        assert coordinator.process(job_id) == JobStatus.FAILED
        monkeypatch.undo()

        assert len(appends) == COMMIT_ATTEMPTS
        assert len(completion.calls) == 1
        db.expire_all()
        job = db.get(IntegrationJob, job_id)
        assert job.status == JobStatus.FAILED
        assert "Storage failure" in job.error_message
        assert db.get(Document, doc.id).content == "A\nB\nC\n"
        assert len(_versions(db, doc.id)) == 1
        assert CommentService(db).get_comment(comment.id).status == CommentStatus.PENDING
        assert notifier.sent[-1][1] == "Comment integration failed"


class TestConcurrentJobs:

    def test_versions_stay_gapless(self, db, config, coordinator):
        doc = make_plan(db, "one\ntwo\nthree\n")
        job_ids = [
            _accept(db, config, coordinator, make_comment(db, doc, line, line, f"edit {line}"))
            for line in (1, 2, 3)
        ]

        with ThreadPoolExecutor(max_workers=3) as pool:
            outcomes = list(pool.map(coordinator.process, job_ids))

        assert all(outcome in (JobStatus.COMPLETED, JobStatus.FAILED) for outcome in outcomes)
        versions = _versions(db, doc.id)
        assert [v.version_number for v in versions] == list(range(1, len(versions) + 1))
        assert db.get(Document, doc.id).content == versions[-1].content
        assert len(versions) == 1 + outcomes.count(JobStatus.COMPLETED)


class TestBuildSummary:

    def test_single_line(self):
        assert build_summary(4, 4, "Tighten wording") == "Line 4: Tighten wording"

    def test_range_and_truncation(self):
        summary = build_summary(2, 5, "word " * 40)
        assert summary.startswith("Lines 2-5: ")
        assert summary.endswith("...")
        assert len(summary) <= len("Lines 2-5: ") + 80


class TestOutputValidation:

    def test_runaway_output_fails_job_without_commit(self, db, config, notifier):
        completion = FakeCompletion("B2 " * 50)
        coordinator = make_coordinator(config, completion, notifier)
        doc = make_plan(db)
        job_id = _accept(db, config, coordinator, make_comment(db, doc))

        assert coordinator.process(job_id) == JobStatus.FAILED
        assert len(completion.calls) == 1

        db.expire_all()
        assert "too long" in db.get(IntegrationJob, job_id).error_message
        assert db.get(Document, doc.id).content == "A\nB\nC\n"
        assert len(_versions(db, doc.id)) == 1
