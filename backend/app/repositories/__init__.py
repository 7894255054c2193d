"""Data access repositories."""

from .base import BaseRepository
from .document_repository import DocumentRepository
from .version_repository import VersionRepository
from .comment_repository import CommentRepository
from .job_repository import JobRepository

__all__ = [
    "BaseRepository",
    "DocumentRepository",
    "VersionRepository",
    "CommentRepository",
    "JobRepository",
]
