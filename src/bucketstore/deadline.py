"""Deadlines and cancellation for client operations."""

import threading
import time
from typing import Optional

from bucketstore.core.exceptions import TransferCancelledError


class Deadline:
    """A timeout and a cancel flag, checked at every transfer boundary.

    Operations check the deadline before each backend request, between list
    pages and between chunks of every stream copy. A transfer interrupted
    this way leaves the remote object and any local file in whatever state
    the last completed step produced.

    Example:
        deadline = Deadline.after(30)
        client.download_obj("reports/q3.csv", "/data/q3.csv", deadline=deadline)

        # From another thread
        deadline.cancel()
    """

    def __init__(self, timeout: Optional[float] = None):
        self._expires_at = None if timeout is None else time.monotonic() + timeout
        self._cancelled = threading.Event()

    @classmethod
    def after(cls, seconds: float) -> "Deadline":
        return cls(timeout=seconds)

    def cancel(self) -> None:
        self._cancelled.set()

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    def remaining(self) -> Optional[float]:
        """Seconds left, or None when there is no timeout."""
        if self._expires_at is None:
            return None
        return max(0.0, self._expires_at - time.monotonic())

    @property
    def expired(self) -> bool:
        remaining = self.remaining()
        return remaining is not None and remaining <= 0

    def check(self, operation: str, stage: str) -> None:
        """Raise TransferCancelledError if cancelled or past the deadline."""
        if self.cancelled:
            raise TransferCancelledError("operation cancelled", operation, stage)
        if self.expired:
            raise TransferCancelledError("deadline exceeded", operation, stage)


def check_deadline(deadline: Optional[Deadline], operation: str, stage: str) -> None:
    if deadline is not None:
        deadline.check(operation, stage)
