"""
Service Exceptions

Base error type raised by the service layer and the helper routers use to
turn it into an HTTP response.
"""

import logging
from typing import NoReturn

from fastapi import HTTPException, status

logger = logging.getLogger(__name__)


class ServiceError(Exception):
    """Base exception for service-layer errors."""

    def __init__(self, message: str, error_code: str, status_code: int = 400):
        self.message = message
        self.error_code = error_code
        self.status_code = status_code
        super().__init__(message)


class ValidationError(ServiceError):
    """Raised for missing or malformed input the schemas cannot catch."""

    def __init__(self, message: str, error_code: str = "VALIDATION_ERROR"):
        super().__init__(message=message, error_code=error_code, status_code=400)


class NotFoundError(ServiceError):
    """Raised when a requested resource does not exist."""

    def __init__(self, message: str, error_code: str):
        super().__init__(message=message, error_code=error_code, status_code=404)


class ConflictError(ServiceError):
    """Raised when a request conflicts with the current resource state."""

    def __init__(self, message: str, error_code: str):
        super().__init__(message=message, error_code=error_code, status_code=409)


def raise_service_error(e: ServiceError) -> NoReturn:
    """Convert a service error to an HTTPException."""
    headers = None
    retry_after = getattr(e, "retry_after_seconds", None)
    if retry_after is not None:
        headers = {"Retry-After": str(retry_after)}
    raise HTTPException(
        status_code=e.status_code,
        detail={
            "error": e.error_code,
            "message": e.message,
        },
        headers=headers,
    ) from e


def raise_internal_error(e: Exception, context: str) -> NoReturn:
    """Log an unexpected exception and raise an opaque 500."""
    logger.exception(f"Error {context}: {e}")
    raise HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail={
            "error": "INTERNAL_ERROR",
            "message": "An unexpected error occurred.",
        },
    ) from e
