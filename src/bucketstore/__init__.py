"""A client for moving byte blobs and local files to and from one bucket.

This package wraps an S3-compatible object store behind a small, closed set
of operations bound to a single bucket: streaming uploads from files and
buffers, downloads to files, memory and temp files, existence checks and
recursive prefix listing.

Key Features:
    - One client, one endpoint, one bucket
    - TLS and SigV4 static-credential signing, always on
    - Typed stat results separating "absent" from "failed"
    - Deadline/cancellation tokens on every operation
    - CLI interface

Recommended Usage:
    >>> from bucketstore import new_client_with_bucket
    >>> client = new_client_with_bucket(
    ...     "minio.internal:9000", "access", "secret", "datasets"
    ... )
    >>> client.put_object_bytes("notes/hello.txt", b"hello")
    >>> client.get_object_bytes("notes/hello.txt")
    b'hello'
"""

__version__ = "0.1.0"

from .core.exceptions import (
    BackendError,
    BucketStoreError,
    ConfigurationError,
    LocalIOError,
    ObjectNotFoundError,
    TransferCancelledError,
    ValidationError,
    ZeroByteObjectError,
)
from .deadline import Deadline
from .schemas import (
    ObjectFound,
    ObjectInfo,
    ObjectNotFound,
    ObjectStatError,
    StatResult,
    StoreClientConfig,
    TransferOptions,
)
from .store_client import StoreClient, new_client_with_bucket

__all__ = [
    # Client
    "StoreClient",
    "new_client_with_bucket",
    "Deadline",
    # Configuration and results
    "StoreClientConfig",
    "TransferOptions",
    "ObjectInfo",
    "ObjectFound",
    "ObjectNotFound",
    "ObjectStatError",
    "StatResult",
    # Errors
    "BucketStoreError",
    "ValidationError",
    "ConfigurationError",
    "LocalIOError",
    "BackendError",
    "ObjectNotFoundError",
    "ZeroByteObjectError",
    "TransferCancelledError",
]
