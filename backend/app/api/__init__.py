"""API routes."""

from .documents import router as documents_router
from .versions import router as versions_router
from .comments import router as comments_router
from .jobs import router as jobs_router

__all__ = [
    "documents_router",
    "versions_router",
    "comments_router",
    "jobs_router",
]
