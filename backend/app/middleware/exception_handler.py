"""Exception handler middleware for structured error responses."""

import logging
from fastapi import Request
from fastapi.responses import JSONResponse
from ..exceptions import ErrorCode, ReviewException

logger = logging.getLogger(__name__)


async def review_exception_handler(request: Request, exc: ReviewException) -> JSONResponse:
    """
    Convert a ReviewException into the standard JSON error body.

    Client errors (4xx) are logged at INFO, server-side failures at ERROR.
    Rate-limited responses carry a ``Retry-After`` header.
    """
    log = logger.error if exc.status_code >= 500 else logger.info
    log(
        f"{exc.error_code.value}: {exc.message}",
        extra={
            "error_code": exc.error_code.value,
            "path": request.url.path,
            "method": request.method,
            "details": exc.details,
            "status_code": exc.status_code
        }
    )

    headers = {}
    if exc.error_code == ErrorCode.RATE_LIMITED:
        headers["Retry-After"] = str(int(exc.details.get("retry_after", 0)) + 1)

    return JSONResponse(
        status_code=exc.status_code,
        content=exc.to_dict(),
        headers=headers or None,
    )
