"""Exception hierarchy for bucketstore."""

from typing import Optional


class BucketStoreError(Exception):
    """Base exception for all bucketstore errors.

    Carries the name of the client operation and the stage within it that
    failed, so ``str(error)`` reads like ``download_obj.copy: disk full``.
    """

    def __init__(
        self,
        message: str,
        operation: Optional[str] = None,
        stage: Optional[str] = None,
    ):
        self.message = message
        self.operation = operation
        self.stage = stage
        super().__init__(self._format())

    def _format(self) -> str:
        if self.operation and self.stage:
            return f"{self.operation}.{self.stage}: {self.message}"
        if self.operation:
            return f"{self.operation}: {self.message}"
        return self.message


class ValidationError(BucketStoreError):
    """Raised when an argument fails validation."""

    pass


class ConfigurationError(BucketStoreError):
    """Raised when the client or its transport session cannot be built."""

    pass


class LocalIOError(BucketStoreError):
    """Raised when a local filesystem operation fails."""

    pass


class BackendError(BucketStoreError):
    """Raised when the object-storage backend rejects or fails a request."""

    def __init__(
        self,
        message: str,
        operation: Optional[str] = None,
        stage: Optional[str] = None,
        code: Optional[str] = None,
    ):
        self.code = code
        super().__init__(message, operation=operation, stage=stage)


class ObjectNotFoundError(BackendError):
    """Raised when the backend reports that no object exists at a key."""

    pass


class ZeroByteObjectError(BucketStoreError):
    """Raised when a download to file completes but wrote nothing."""

    pass


class TransferCancelledError(BucketStoreError):
    """Raised when an operation's deadline expires or it is cancelled."""

    pass
