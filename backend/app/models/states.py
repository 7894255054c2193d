"""Closed status enums and their transition tables.

Comments and integration jobs each have their own state machine. The two
are coupled only at commit time, when a completed job accepts its comment.
Every status change goes through ``advance_comment`` / ``advance_job`` so an
illegal move raises ``InvalidStateError`` instead of silently writing a
string.
"""

from enum import Enum
from typing import Dict, FrozenSet

from ..exceptions import InvalidStateError


class CommentStatus(str, Enum):
    PENDING = "pending"
    DEBATING = "debating"
    ACCEPTED = "accepted"
    REJECTED = "rejected"

    @property
    def is_terminal(self) -> bool:
        return self in (CommentStatus.ACCEPTED, CommentStatus.REJECTED)


class JobStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (JobStatus.COMPLETED, JobStatus.FAILED)

    @property
    def is_live(self) -> bool:
        return not self.is_terminal

    @property
    def label(self) -> str:
        """Wording shown by polling clients."""
        return _JOB_LABELS[self]


class VersionSource(str, Enum):
    MANUAL = "manual"
    AI_FROM_COMMENT = "ai_from_comment"
    AI_FROM_DISCUSSION = "ai_from_discussion"


_JOB_LABELS: Dict[JobStatus, str] = {
    JobStatus.PENDING: "queued",
    JobStatus.PROCESSING: "processing",
    JobStatus.COMPLETED: "completed",
    JobStatus.FAILED: "failed",
}

_COMMENT_TRANSITIONS: Dict[CommentStatus, FrozenSet[CommentStatus]] = {
    CommentStatus.PENDING: frozenset({
        CommentStatus.DEBATING, CommentStatus.ACCEPTED, CommentStatus.REJECTED,
    }),
    CommentStatus.DEBATING: frozenset({CommentStatus.ACCEPTED, CommentStatus.REJECTED}),
    CommentStatus.ACCEPTED: frozenset(),
    CommentStatus.REJECTED: frozenset(),
}

# A pending job can fail without ever being claimed (e.g. its comment was
# deleted), so pending -> failed is legal.
_JOB_TRANSITIONS: Dict[JobStatus, FrozenSet[JobStatus]] = {
    JobStatus.PENDING: frozenset({JobStatus.PROCESSING, JobStatus.FAILED}),
    JobStatus.PROCESSING: frozenset({JobStatus.COMPLETED, JobStatus.FAILED, JobStatus.PENDING}),
    JobStatus.COMPLETED: frozenset(),
    JobStatus.FAILED: frozenset(),
}

# Statuses stored in the partial unique index on integration_jobs.
LIVE_JOB_STATUSES = (JobStatus.PENDING.value, JobStatus.PROCESSING.value)


def can_advance_comment(current: CommentStatus, target: CommentStatus) -> bool:
    return target in _COMMENT_TRANSITIONS[CommentStatus(current)]


def advance_comment(current: CommentStatus, target: CommentStatus) -> CommentStatus:
    """Return *target* if the comment may move there, else raise."""
    current = CommentStatus(current)
    target = CommentStatus(target)
    if target not in _COMMENT_TRANSITIONS[current]:
        raise InvalidStateError("comment", current.value, target.value)
    return target


def advance_job(current: JobStatus, target: JobStatus) -> JobStatus:
    """Return *target* if the job may move there, else raise."""
    current = JobStatus(current)
    target = JobStatus(target)
    if target not in _JOB_TRANSITIONS[current]:
        raise InvalidStateError("job", current.value, target.value)
    return target
