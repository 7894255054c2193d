"""Database models."""

from .states import CommentStatus, JobStatus, VersionSource
from .document import Document
from .version import Version
from .comment import Comment, DiscussionMessage
from .integration_job import IntegrationJob
from .rate_limit import RateLimitWindow

__all__ = [
    "CommentStatus", "JobStatus", "VersionSource",
    "Document", "Version",
    "Comment", "DiscussionMessage",
    "IntegrationJob",
    "RateLimitWindow",
]
