"""Pydantic schemas for API validation."""

from .document import DocumentCreate, DocumentContentUpdate, DocumentResponse
from .version import VersionSummary, VersionResponse
from .comment import (
    CommentCreate,
    CommentResponse,
    RejectResponse,
    DiscussionMessageCreate,
    DiscussionMessageResponse,
)
from .job import AcceptResponse, JobStatusResponse

__all__ = [
    "DocumentCreate",
    "DocumentContentUpdate",
    "DocumentResponse",
    "VersionSummary",
    "VersionResponse",
    "CommentCreate",
    "CommentResponse",
    "RejectResponse",
    "DiscussionMessageCreate",
    "DiscussionMessageResponse",
    "AcceptResponse",
    "JobStatusResponse",
]
