"""Core utilities and shared components for bucketstore."""

from .config import Settings, settings
from .exceptions import (
    BackendError,
    BucketStoreError,
    ConfigurationError,
    LocalIOError,
    ObjectNotFoundError,
    TransferCancelledError,
    ValidationError,
    ZeroByteObjectError,
)
from .observability import get_logger, get_tracer, operation_context

__all__ = [
    "Settings",
    "settings",
    "BackendError",
    "BucketStoreError",
    "ConfigurationError",
    "LocalIOError",
    "ObjectNotFoundError",
    "TransferCancelledError",
    "ValidationError",
    "ZeroByteObjectError",
    "get_logger",
    "get_tracer",
    "operation_context",
]
