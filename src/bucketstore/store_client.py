"""Bucket-scoped object store client.

A :class:`StoreClient` is bound to one endpoint, one static credential pair
and one bucket. It exposes a closed set of transfer operations; the boto3
client it holds is never handed out.

Every operation is a synchronous, blocking round trip. Failures are raised
as :class:`~bucketstore.core.exceptions.BucketStoreError` subclasses whose
message starts with ``<operation>.<stage>:``, so callers can tell which
step failed. Nothing is retried here.

Example:
    client = new_client_with_bucket(
        "minio.internal:9000", "AKIAEXAMPLE", "secret", "datasets"
    )
    client.put_file("/data/run1.parquet", "runs/2024/run1.parquet")
    for info in client.list_objects("runs/2024/"):
        if info.error:
            raise info.error
        print(info.key, info.size)
"""

import io
import os
import tempfile
from contextlib import closing
from functools import partial
from typing import IO, Any, Iterator, Optional, Union

from boto3.exceptions import Boto3Error
from boto3.s3.transfer import TransferConfig
from botocore.exceptions import BotoCoreError, ClientError
from pydantic import ValidationError as SchemaValidationError

from bucketstore.clients import BackendSession, backend_error, is_not_found
from bucketstore.core import get_logger, get_tracer, operation_context, settings
from bucketstore.core.exceptions import (
    BackendError,
    BucketStoreError,
    ConfigurationError,
    LocalIOError,
    ValidationError,
    ZeroByteObjectError,
)
from bucketstore.deadline import Deadline, check_deadline
from bucketstore.schemas import (
    ObjectFound,
    ObjectInfo,
    ObjectNotFound,
    ObjectStatError,
    StatResult,
    StoreClientConfig,
    TransferOptions,
)

logger = get_logger(__name__)

BACKEND_ERRORS = (ClientError, BotoCoreError, Boto3Error)
DIRECTORY_MODE = 0o755
TEMPFILE_PREFIX = "object-"

PathLike = Union[str, "os.PathLike[str]"]


def new_client_with_bucket(
    endpoint: str,
    access_key: str,
    secret_key: str,
    bucket: str,
    region_name: Optional[str] = None,
) -> "StoreClient":
    """Create a client bound to ``bucket`` on ``endpoint``.

    No request is sent; bad credentials only show up on first use.

    Args:
        endpoint: Backend address as ``host[:port]``, TLS is always used
        access_key: Static access key
        secret_key: Static secret key
        bucket: Bucket every operation targets
        region_name: Signing region, defaults to ``settings.region_name``

    Returns:
        Initialized StoreClient

    Raises:
        ConfigurationError: If an argument is malformed or the transport
            session cannot be built
    """
    try:
        config = StoreClientConfig(
            endpoint=endpoint,
            access_key=access_key,
            secret_key=secret_key,
            bucket=bucket,
            region_name=region_name,
        )
    except SchemaValidationError as e:
        raise ConfigurationError(
            f"invalid client configuration: {e}",
            operation="new_client_with_bucket",
            stage="validate",
        ) from e
    return StoreClient(config)


class StoreClient:
    """Object transfer operations against a single bucket."""

    def __init__(self, config: StoreClientConfig):
        self.config = config
        self._session = BackendSession(config)
        logger.info(
            "Store client initialized", endpoint=config.endpoint, bucket=config.bucket
        )

    @property
    def bucket(self) -> str:
        return self.config.bucket

    @property
    def endpoint(self) -> str:
        return self.config.endpoint

    @property
    def _s3(self) -> Any:
        return self._session.client

    def close(self) -> None:
        """Release the transport session."""
        self._session.close()

    def __enter__(self) -> "StoreClient":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    def __repr__(self) -> str:
        return f"StoreClient(endpoint={self.endpoint!r}, bucket={self.bucket!r})"

    # Uploads

    def put_file(
        self,
        path: PathLike,
        key: str,
        options: Optional[TransferOptions] = None,
        deadline: Optional[Deadline] = None,
    ) -> None:
        """Upload a local file to ``key``.

        The length sent is the file size at stat time. If the file changes
        size while it is read, the backend rejects the upload and the error
        surfaces from the ``transmit`` stage.

        Raises:
            LocalIOError: If the file cannot be opened or stat'ed
            BackendError: If the upload fails
            TransferCancelledError: If the deadline expires first
        """
        operation = "put_file"
        _require_key(key, operation)
        options = options or TransferOptions()

        with operation_context(operation, self.bucket, key):
            check_deadline(deadline, operation, "open")
            try:
                handle = open(path, "rb")
            except OSError as e:
                raise _failed(
                    LocalIOError(f"cannot open '{path}': {e}", operation, "open")
                ) from e

            with handle:
                try:
                    size = os.fstat(handle.fileno()).st_size
                except OSError as e:
                    raise _failed(
                        LocalIOError(f"cannot stat '{path}': {e}", operation, "stat")
                    ) from e

                check_deadline(deadline, operation, "transmit")
                self._transmit(operation, key, handle, size, options)

            logger.info("File uploaded", path=str(path), size=size)

    def put_object_bytes(
        self,
        key: str,
        data: bytes,
        options: Optional[TransferOptions] = None,
        deadline: Optional[Deadline] = None,
    ) -> None:
        """Upload an in-memory buffer to ``key`` in a single request."""
        operation = "put_object_bytes"
        _require_key(key, operation)
        options = options or TransferOptions()

        with operation_context(operation, self.bucket, key):
            check_deadline(deadline, operation, "transmit")
            self._transmit(operation, key, io.BytesIO(data), len(data), options)
            logger.info("Buffer uploaded", size=len(data))

    def _transmit(
        self,
        operation: str,
        key: str,
        body: IO[bytes],
        size: int,
        options: TransferOptions,
    ) -> None:
        try:
            self._s3.put_object(
                Bucket=self.bucket,
                Key=key,
                Body=body,
                ContentLength=size,
                **options.to_put_kwargs(),
            )
        except BACKEND_ERRORS as e:
            raise _failed(backend_error(e, operation, "transmit")) from e

    # Downloads

    def download(
        self,
        key: str,
        destdir: PathLike,
        filename: str,
        deadline: Optional[Deadline] = None,
    ) -> str:
        """Fetch ``key`` into ``destdir/filename``, creating ``destdir``.

        Missing parent directories are created with mode 0755. The transfer
        writes to a private temporary name and renames it into place, so a
        failed fetch leaves no file at the target path.

        Returns:
            Path of the written file
        """
        operation = "download"
        _require_key(key, operation)

        with operation_context(operation, self.bucket, key):
            try:
                os.makedirs(destdir or os.curdir, mode=DIRECTORY_MODE, exist_ok=True)
            except OSError as e:
                raise _failed(
                    LocalIOError(
                        f"cannot create directory '{destdir}': {e}", operation, "mkdir"
                    )
                ) from e

            target = os.path.join(os.fspath(destdir), filename)
            check_deadline(deadline, operation, "fetch")

            # Progress callbacks are the only hook inside download_file
            callback = None
            if deadline is not None:
                callback = partial(_check_progress, deadline, operation)

            try:
                self._s3.download_file(
                    self.bucket,
                    key,
                    target,
                    Callback=callback,
                    Config=TransferConfig(use_threads=False),
                )
            except BucketStoreError as e:
                # Raised from the progress callback when the deadline trips
                raise _failed(e)
            except BACKEND_ERRORS as e:
                raise _failed(backend_error(e, operation, "fetch")) from e
            except OSError as e:
                raise _failed(
                    LocalIOError(f"cannot write '{target}': {e}", operation, "fetch")
                ) from e

            logger.info("Object downloaded", path=target)
            return target

    def download_obj(
        self,
        key: str,
        out_path: PathLike,
        deadline: Optional[Deadline] = None,
    ) -> int:
        """Stream ``key`` into ``out_path``, truncating any existing file.

        A download that completes but leaves an empty file is reported as
        :class:`ZeroByteObjectError`. On any failure after ``out_path`` was
        created, the file is removed.

        Returns:
            Number of bytes written

        Raises:
            ObjectNotFoundError: If the key does not exist
            BackendError: If the stream cannot be opened or read
            LocalIOError: If the local file cannot be created or written
            ZeroByteObjectError: If the written file is empty
        """
        operation = "download_obj"
        _require_key(key, operation)

        with operation_context(operation, self.bucket, key):
            body = self._open_stream(operation, key, deadline)
            with closing(body):
                try:
                    local = open(out_path, "wb")
                except OSError as e:
                    raise _failed(
                        LocalIOError(
                            f"cannot create '{out_path}': {e}", operation, "create"
                        )
                    ) from e

                try:
                    with local:
                        written = self._copy_stream(operation, body, local, deadline)

                    # Stat only after close so buffered writes are on disk
                    try:
                        size = os.stat(out_path).st_size
                    except OSError as e:
                        raise _failed(
                            LocalIOError(
                                f"cannot stat '{out_path}': {e}", operation, "verify"
                            )
                        ) from e
                    if size != written:
                        raise _failed(
                            LocalIOError(
                                f"'{out_path}' is {size} bytes, wrote {written}",
                                operation,
                                "verify",
                            )
                        )
                    if size == 0:
                        raise _failed(
                            ZeroByteObjectError(
                                f"'{out_path}' is zero bytes", operation, "verify"
                            )
                        )
                except Exception:
                    _discard(out_path)
                    raise

            logger.info("Object downloaded", path=str(out_path), size=size)
            return size

    def get_object_bytes(self, key: str, deadline: Optional[Deadline] = None) -> bytes:
        """Read the whole object into memory.

        No size limit is applied; do not call this on objects that do not
        fit in memory. An empty object returns ``b""``.
        """
        operation = "get_object_bytes"
        _require_key(key, operation)

        with operation_context(operation, self.bucket, key):
            buffer = io.BytesIO()
            body = self._open_stream(operation, key, deadline)
            with closing(body):
                self._copy_stream(operation, body, buffer, deadline)
            logger.debug("Object read into memory", size=buffer.tell())
            return buffer.getvalue()

    def object_to_tempfile(self, key: str, deadline: Optional[Deadline] = None) -> str:
        """Copy ``key`` into a new temporary file and return its path.

        The file is created in ``settings.temp_dir`` and belongs to the
        caller, who must delete it. It is removed here only if the copy
        fails.
        """
        operation = "object_to_tempfile"
        _require_key(key, operation)

        with operation_context(operation, self.bucket, key):
            try:
                fd, path = tempfile.mkstemp(
                    prefix=TEMPFILE_PREFIX, dir=settings.temp_dir
                )
            except OSError as e:
                raise _failed(
                    LocalIOError(
                        f"cannot create temp file in '{settings.temp_dir}': {e}",
                        operation,
                        "create",
                    )
                ) from e

            try:
                with os.fdopen(fd, "wb") as local:
                    body = self._open_stream(operation, key, deadline)
                    with closing(body):
                        written = self._copy_stream(operation, body, local, deadline)
            except Exception:
                _discard(path)
                raise

            logger.info("Object copied to temp file", path=path, size=written)
            return path

    def object_to_filehandle(
        self, key: str, deadline: Optional[Deadline] = None
    ) -> IO[bytes]:
        """Copy ``key`` into an anonymous temporary file.

        The returned file is positioned at offset 0 and is deleted when
        closed.
        """
        operation = "object_to_filehandle"
        _require_key(key, operation)

        with operation_context(operation, self.bucket, key):
            try:
                handle = tempfile.TemporaryFile(dir=settings.temp_dir)
            except OSError as e:
                raise _failed(
                    LocalIOError(
                        f"cannot create temp file in '{settings.temp_dir}': {e}",
                        operation,
                        "create",
                    )
                ) from e

            try:
                body = self._open_stream(operation, key, deadline)
                with closing(body):
                    self._copy_stream(operation, body, handle, deadline)
                handle.seek(0)
            except Exception:
                handle.close()
                raise
            return handle

    def _open_stream(
        self, operation: str, key: str, deadline: Optional[Deadline]
    ) -> Any:
        check_deadline(deadline, operation, "get")
        try:
            response = self._s3.get_object(Bucket=self.bucket, Key=key)
        except BACKEND_ERRORS as e:
            raise _failed(backend_error(e, operation, "get")) from e
        return response["Body"]

    def _copy_stream(
        self,
        operation: str,
        body: Any,
        sink: IO[bytes],
        deadline: Optional[Deadline],
    ) -> int:
        """Copy a response body into ``sink`` chunk by chunk."""
        written = 0
        chunks = body.iter_chunks(settings.chunk_size)
        while True:
            check_deadline(deadline, operation, "copy")
            try:
                chunk = next(chunks, None)
            except BACKEND_ERRORS as e:
                raise _failed(backend_error(e, operation, "copy")) from e
            if chunk is None:
                return written

            try:
                sink.write(chunk)
            except OSError as e:
                raise _failed(
                    LocalIOError(f"local write failed: {e}", operation, "copy")
                ) from e
            written += len(chunk)

    # Metadata

    def stat_object(self, key: str, deadline: Optional[Deadline] = None) -> StatResult:
        """Fetch metadata for ``key`` without transferring its body.

        Returns:
            ObjectFound, ObjectNotFound, or ObjectStatError for any other
            failure (auth, network, backend unavailable)
        """
        operation = "stat_object"
        _require_key(key, operation)
        with operation_context(operation, self.bucket, key):
            return self._stat(operation, key, deadline)

    def object_exists(self, key: str, deadline: Optional[Deadline] = None) -> bool:
        """Return whether ``key`` exists.

        Raises:
            BackendError: For any failure other than the key being absent
        """
        operation = "object_exists"
        _require_key(key, operation)

        with operation_context(operation, self.bucket, key):
            result = self._stat(operation, key, deadline)
            if isinstance(result, ObjectStatError):
                raise result.error
            return isinstance(result, ObjectFound)

    def _stat(
        self, operation: str, key: str, deadline: Optional[Deadline]
    ) -> StatResult:
        check_deadline(deadline, operation, "head")
        try:
            response = self._s3.head_object(Bucket=self.bucket, Key=key)
        except BACKEND_ERRORS as e:
            if is_not_found(e):
                logger.debug("Object not found")
                return ObjectNotFound(key=key)
            return ObjectStatError(
                key=key, error=_failed(backend_error(e, operation, "head"))
            )
        return ObjectFound(info=ObjectInfo.from_head(key, response))

    def remove_object(self, key: str, deadline: Optional[Deadline] = None) -> None:
        """Delete ``key``. Deleting an absent key is not an error."""
        operation = "remove_object"
        _require_key(key, operation)

        with operation_context(operation, self.bucket, key):
            check_deadline(deadline, operation, "delete")
            try:
                self._s3.delete_object(Bucket=self.bucket, Key=key)
            except BACKEND_ERRORS as e:
                raise _failed(backend_error(e, operation, "delete")) from e
            logger.info("Object removed")

    # Listing

    def list_objects(
        self,
        prefix: str = "",
        max_items: Optional[int] = None,
        deadline: Optional[Deadline] = None,
    ) -> Iterator[ObjectInfo]:
        """Lazily list every object whose key starts with ``prefix``.

        Listing is recursive: ``"logs/"`` yields ``logs/a`` and
        ``logs/2024/b`` alike. The iterator is single-pass.

        Records are not raised on failure; each one carries either metadata
        or an ``error``. A malformed entry yields an error record and the
        listing continues. A failed page request (or an expired deadline)
        yields one error record and ends the listing, since no later page
        can be reached without it.

        Args:
            prefix: Key prefix, empty for the whole bucket
            max_items: Stop after this many objects
            deadline: Checked before each page request

        Raises:
            ValidationError: If ``max_items`` is not positive
        """
        if max_items is not None and max_items < 1:
            raise ValidationError(
                f"max_items must be positive, got: {max_items}",
                "list_objects",
                "validate",
            )
        return self._iter_objects(prefix, max_items, deadline)

    def _iter_objects(
        self, prefix: str, max_items: Optional[int], deadline: Optional[Deadline]
    ) -> Iterator[ObjectInfo]:
        operation = "list_objects"
        # Not a current span: the generator may be resumed from other contexts
        span = get_tracer().start_span(
            f"bucketstore.{operation}",
            attributes={"bucketstore.bucket": self.bucket, "bucketstore.prefix": prefix},
        )
        count = 0
        try:
            params: dict = {"Bucket": self.bucket, "Prefix": prefix}
            if max_items is not None:
                params["PaginationConfig"] = {"MaxItems": max_items}
            pages = iter(self._s3.get_paginator("list_objects_v2").paginate(**params))

            while True:
                try:
                    check_deadline(deadline, operation, "page")
                    page = next(pages, None)
                except BucketStoreError as e:
                    yield ObjectInfo(key=prefix, error=e)
                    return
                except BACKEND_ERRORS as e:
                    error = _failed(backend_error(e, operation, "page"), prefix=prefix)
                    yield ObjectInfo(key=prefix, error=error)
                    return
                if page is None:
                    return

                for entry in page.get("Contents", []):
                    try:
                        info = ObjectInfo.from_listing(entry)
                    except (KeyError, TypeError) as e:
                        error = _failed(
                            BackendError(
                                f"malformed listing entry: {e!r}", operation, "decode"
                            ),
                            prefix=prefix,
                        )
                        yield ObjectInfo(key=prefix, error=error)
                        continue
                    count += 1
                    yield info
        finally:
            span.set_attribute("bucketstore.object_count", count)
            span.end()
            logger.info(
                "Objects listed", bucket=self.bucket, prefix=prefix, object_count=count
            )


def _require_key(key: str, operation: str) -> None:
    if not isinstance(key, str) or not key:
        raise ValidationError("object key must be a non-empty string", operation, "validate")


def _failed(error: BucketStoreError, **fields: Any) -> BucketStoreError:
    """Log a classified failure and hand it back for raising."""
    logger.error(
        "Operation failed",
        error=str(error),
        error_type=type(error).__name__,
        stage=error.stage,
        **fields,
    )
    return error


def _discard(path: PathLike) -> None:
    """Remove a partially written local file."""
    try:
        os.remove(path)
    except FileNotFoundError:
        return
    except OSError as e:
        logger.warning("Could not remove partial file", path=str(path), error=str(e))
    else:
        logger.debug("Removed partial file", path=str(path))


def _check_progress(deadline: Deadline, operation: str, _bytes_transferred: int) -> None:
    deadline.check(operation, "fetch")
