"""Translate service errors into HTTP responses."""

import logging
from typing import NoReturn

from fastapi import HTTPException

from backend.app.errors import RateLimitError, ServiceError, UpstreamError

logger = logging.getLogger(__name__)


def raise_http_error(error: ServiceError) -> NoReturn:
    """Raise the HTTPException for a service error.

    Only the caller-safe message is exposed; upstream status and detail stay
    in the logs.
    """
    headers: dict[str, str] | None = None

    if isinstance(error, RateLimitError):
        headers = {"Retry-After": str(error.retry_after_seconds)}
    elif isinstance(error, UpstreamError):
        logger.error(
            f"{type(error).__name__}: upstream status {error.status}",
            extra={"structured": {"detail": error.detail, "status": error.status}},
        )
    elif error.status_code >= 500:
        logger.error(f"{type(error).__name__}: {error}")

    raise HTTPException(status_code=error.status_code, detail=error.message, headers=headers) from error
