"""Backend session management and error classification."""

from .s3_client import (
    NOT_FOUND_CODES,
    BackendSession,
    backend_error,
    error_code,
    is_not_found,
)

__all__ = [
    "NOT_FOUND_CODES",
    "BackendSession",
    "backend_error",
    "error_code",
    "is_not_found",
]
