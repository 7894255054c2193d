"""Business logic services."""

from .document_service import DocumentService
from .comment_service import CommentService
from .job_coordinator import JobCoordinator
from .job_dispatcher import JobDispatcher
from .job_status_service import JobStatusService
from .integration_client import IntegrationClient
from .rate_limiter import RateLimiter

__all__ = [
    "DocumentService",
    "CommentService",
    "JobCoordinator",
    "JobDispatcher",
    "JobStatusService",
    "IntegrationClient",
    "RateLimiter",
]
