"""Shared FastAPI dependencies for the integration pipeline."""

from typing import Optional

from fastapi import Request

from ..services import JobCoordinator, JobDispatcher


def get_coordinator(request: Request) -> JobCoordinator:
    """Job coordinator created at startup."""
    return request.app.state.coordinator


def get_dispatcher(request: Request) -> Optional[JobDispatcher]:
    """In-process dispatcher, or None when jobs are left to worker.py."""
    return getattr(request.app.state, "dispatcher", None)
