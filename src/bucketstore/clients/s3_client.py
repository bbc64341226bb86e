"""S3 transport session and backend error classification.

This module owns everything that touches boto3 directly: building the S3
client for a :class:`~bucketstore.schemas.StoreClientConfig` and turning
botocore exceptions into the bucketstore exception hierarchy.

Transport:
    TLS is always on, requests are signed with SigV4 using the static
    credential pair, and addressing is path-style so that S3-compatible
    services (MinIO, Ceph RGW and the like) work without DNS wildcards.
    Building the client performs no network round trip.

Not-found classification:
    Whether a key is absent is decided from the structured error code in
    the backend response, never from the message text. HEAD requests carry
    no body, so S3 reports them with the bare status code ``404``.
"""

from typing import Any, Optional

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from bucketstore.core import get_logger, settings
from bucketstore.core.exceptions import (
    BackendError,
    ConfigurationError,
    ObjectNotFoundError,
)
from bucketstore.schemas import StoreClientConfig

logger = get_logger(__name__)

NOT_FOUND_CODES = frozenset({"404", "NoSuchKey", "NotFound"})


class BackendSession:
    """Owns the boto3 S3 client used by one StoreClient."""

    def __init__(self, config: StoreClientConfig):
        """Build the S3 client.

        Args:
            config: Validated client configuration

        Raises:
            ConfigurationError: If botocore rejects the endpoint or credentials
        """
        self.config = config
        self.region_name = config.region_name or settings.region_name
        self._client: Any = self._create_client()
        logger.info(
            "Backend session created",
            endpoint=config.endpoint,
            region=self.region_name,
        )

    @property
    def client(self) -> Any:
        if self._client is None:
            raise ConfigurationError("backend session is closed")
        return self._client

    @property
    def closed(self) -> bool:
        return self._client is None

    def _create_client(self) -> Any:
        transport = Config(
            signature_version="s3v4",
            s3={"addressing_style": "path"},
            connect_timeout=settings.connect_timeout,
            read_timeout=settings.read_timeout,
            max_pool_connections=settings.max_pool_connections,
        )
        try:
            session = boto3.Session(
                aws_access_key_id=self.config.access_key,
                aws_secret_access_key=self.config.secret_key,
                region_name=self.region_name,
            )
            return session.client(
                "s3",
                endpoint_url=self.config.endpoint_url,
                use_ssl=True,
                config=transport,
            )
        except (BotoCoreError, ValueError) as e:
            raise ConfigurationError(
                f"cannot build transport session for '{self.config.endpoint}': {e}",
                operation="new_client_with_bucket",
                stage="session",
            ) from e

    def close(self) -> None:
        """Release pooled connections. Safe to call more than once."""
        if self._client is None:
            return
        self._client.close()
        self._client = None
        logger.debug("Backend session closed", endpoint=self.config.endpoint)


def error_code(error: Exception) -> Optional[str]:
    """Structured error code of a botocore ClientError, if any."""
    if isinstance(error, ClientError):
        return error.response.get("Error", {}).get("Code")
    return None


def is_not_found(error: Exception) -> bool:
    return error_code(error) in NOT_FOUND_CODES


def backend_error(error: Exception, operation: str, stage: str) -> BackendError:
    """Wrap a botocore exception, keeping its code and cause."""
    code = error_code(error)
    error_class = ObjectNotFoundError if code in NOT_FOUND_CODES else BackendError
    wrapped = error_class(str(error), operation=operation, stage=stage, code=code)
    wrapped.__cause__ = error
    return wrapped
