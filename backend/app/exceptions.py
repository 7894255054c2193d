"""Custom exception hierarchy for the plan review service."""

from enum import Enum
from typing import Optional, Dict, Any


class ErrorCode(str, Enum):
    """Standardized error codes for API responses."""

    # Lookup errors
    DOCUMENT_NOT_FOUND = "DOCUMENT_NOT_FOUND"
    VERSION_NOT_FOUND = "VERSION_NOT_FOUND"
    COMMENT_NOT_FOUND = "COMMENT_NOT_FOUND"
    JOB_NOT_FOUND = "JOB_NOT_FOUND"

    # Validation errors
    VALIDATION_ERROR = "VALIDATION_ERROR"

    # Auth & rate limiting
    UNAUTHORIZED = "UNAUTHORIZED"
    FORBIDDEN = "FORBIDDEN"
    RATE_LIMITED = "RATE_LIMITED"

    # State machine / concurrency errors
    INVALID_STATE = "INVALID_STATE"
    CONFLICT = "CONFLICT"

    # Background pipeline errors
    UPSTREAM_FAILURE = "UPSTREAM_FAILURE"
    STORAGE_FAILURE = "STORAGE_FAILURE"

    # Generic errors
    INTERNAL_ERROR = "INTERNAL_ERROR"


class ReviewException(Exception):
    """
    Base exception for all plan review errors.

    Provides structured error responses with:
    - Human-readable message
    - Machine-readable error code
    - HTTP status code
    - Optional additional details
    """

    def __init__(
        self,
        message: str,
        error_code: ErrorCode,
        status_code: int = 500,
        details: Optional[Dict[str, Any]] = None
    ):
        """
        Initialize exception.

        Args:
            message: Human-readable error message
            error_code: Machine-readable error code
            status_code: HTTP status code to return
            details: Optional additional context/details
        """
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.status_code = status_code
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        """
        Convert exception to dictionary for JSON response.

        Returns:
            Dictionary with error, message, and details fields
        """
        return {
            "error": self.error_code.value,
            "message": self.message,
            "details": self.details
        }


class DocumentNotFoundError(ReviewException):
    """Document not found in database."""

    def __init__(self, doc_id: str):
        super().__init__(
            f"Document not found: {doc_id}",
            ErrorCode.DOCUMENT_NOT_FOUND,
            status_code=404,
            details={"doc_id": doc_id}
        )


class VersionNotFoundError(ReviewException):
    """Version not found in database."""

    def __init__(self, version_id: str):
        super().__init__(
            f"Version not found: {version_id}",
            ErrorCode.VERSION_NOT_FOUND,
            status_code=404,
            details={"version_id": version_id}
        )


class CommentNotFoundError(ReviewException):
    """Comment not found in database."""

    def __init__(self, comment_id: str):
        super().__init__(
            f"Comment not found: {comment_id}",
            ErrorCode.COMMENT_NOT_FOUND,
            status_code=404,
            details={"comment_id": comment_id}
        )


class JobNotFoundError(ReviewException):
    """Integration job not found in database."""

    def __init__(self, job_id: str):
        super().__init__(
            f"Job not found: {job_id}",
            ErrorCode.JOB_NOT_FOUND,
            status_code=404,
            details={"job_id": job_id}
        )


class ValidationError(ReviewException):
    """Validation failed for user input."""

    def __init__(self, message: str, field: Optional[str] = None):
        details = {"field": field} if field else {}
        super().__init__(
            message,
            ErrorCode.VALIDATION_ERROR,
            status_code=400,
            details=details
        )


class AuthenticationError(ReviewException):
    """Request lacks valid authentication credentials."""

    def __init__(self, message: str = "Invalid or missing authentication token"):
        super().__init__(
            message,
            ErrorCode.UNAUTHORIZED,
            status_code=401,
        )


class ForbiddenError(ReviewException):
    """Authenticated user lacks permission for the requested action."""

    def __init__(self, message: str = "You do not have permission to perform this action"):
        super().__init__(
            message,
            ErrorCode.FORBIDDEN,
            status_code=403,
        )


class InvalidStateError(ReviewException):
    """Action is not valid for the entity's current state."""

    def __init__(self, entity: str, current: str, target: str):
        super().__init__(
            f"Cannot move {entity} from '{current}' to '{target}'",
            ErrorCode.INVALID_STATE,
            status_code=409,
            details={"entity": entity, "current": current, "target": target}
        )


class RateLimitedError(ReviewException):
    """The caller exhausted its window for an expensive action."""

    def __init__(self, action: str, retry_after: float = 0.0):
        super().__init__(
            f"Rate limit exceeded for '{action}'",
            ErrorCode.RATE_LIMITED,
            status_code=429,
            details={"action": action, "retry_after": round(retry_after, 1)}
        )


class ConflictError(ReviewException):
    """Operation conflicts with a concurrent job or modification."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message,
            ErrorCode.CONFLICT,
            status_code=409,
            details=details
        )


class UpstreamFailureError(ReviewException):
    """The generation API failed or returned an unusable response."""

    def __init__(self, message: str, attempts: int = 0):
        super().__init__(
            message,
            ErrorCode.UPSTREAM_FAILURE,
            status_code=502,
            details={"attempts": attempts}
        )


class StorageFailureError(ReviewException):
    """Database operation failed. Safe to retry."""

    def __init__(self, message: str, original_error: Optional[Exception] = None):
        details = {}
        if original_error:
            details["original_error"] = str(original_error)

        super().__init__(
            message,
            ErrorCode.STORAGE_FAILURE,
            status_code=503,
            details=details
        )
