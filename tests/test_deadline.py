"""Tests for deadlines and cancellation."""

import threading
from unittest.mock import patch

import boto3
import pytest
from moto import mock_aws

from bucketstore import Deadline, TransferCancelledError, new_client_with_bucket
from bucketstore.core import settings

ENDPOINT = "s3.amazonaws.com"
BUCKET = "test-bucket"


class CancelAfter(Deadline):
    """Deadline that cancels itself after a number of checks."""

    def __init__(self, checks):
        super().__init__()
        self.remaining_checks = checks

    def check(self, operation, stage):
        self.remaining_checks -= 1
        if self.remaining_checks < 0:
            self.cancel()
        super().check(operation, stage)


class TestDeadline:
    """Test the Deadline token itself."""

    def test_no_timeout(self):
        """Test a deadline without timeout never expires."""
        deadline = Deadline()

        assert deadline.remaining() is None
        assert not deadline.expired
        deadline.check("op", "stage")

    def test_expired(self):
        """Test an elapsed timeout raises with operation and stage."""
        deadline = Deadline.after(0)

        assert deadline.expired
        assert deadline.remaining() == 0.0
        with pytest.raises(TransferCancelledError, match="op.stage: deadline exceeded"):
            deadline.check("op", "stage")

    def test_remaining(self):
        """Test remaining time counts down from the timeout."""
        deadline = Deadline.after(60)

        assert 0 < deadline.remaining() <= 60
        assert not deadline.expired

    def test_cancel_from_other_thread(self):
        """Test cancellation is visible across threads."""
        deadline = Deadline.after(60)
        worker = threading.Thread(target=deadline.cancel)
        worker.start()
        worker.join()

        assert deadline.cancelled
        with pytest.raises(TransferCancelledError, match="cancelled"):
            deadline.check("op", "stage")


@mock_aws
class TestOperationsHonourDeadline:
    """Test operations stop at transfer boundaries."""

    def setup_method(self, method):
        """Set up test environment."""
        self.s3_client = boto3.client(
            "s3",
            aws_access_key_id="test_key",
            aws_secret_access_key="test_secret",
            region_name="us-east-1",
        )
        self.s3_client.create_bucket(Bucket=BUCKET)
        self.s3_client.put_object(Bucket=BUCKET, Key="data/file1.txt", Body=b"x" * 64)
        self.s3_client.put_object(Bucket=BUCKET, Key="data/file2.txt", Body=b"y")
        self.store = new_client_with_bucket(
            ENDPOINT, "test_key", "test_secret", BUCKET
        )

    def test_cancelled_upload_sends_nothing(self):
        """Test a cancelled upload never reaches the backend."""
        deadline = Deadline()
        deadline.cancel()

        with pytest.raises(TransferCancelledError, match="put_object_bytes.transmit"):
            self.store.put_object_bytes("data/new", b"data", deadline=deadline)

        assert self.store.object_exists("data/new") is False

    def test_expired_stat(self):
        """Test metadata requests check the deadline."""
        with pytest.raises(TransferCancelledError, match="object_exists.head"):
            self.store.object_exists("data/file1.txt", deadline=Deadline.after(0))

    def test_download_obj_cancelled_mid_copy(self, temp_dir, monkeypatch):
        """Test cancellation between chunks removes the partial file."""
        monkeypatch.setattr(settings, "chunk_size", 8)
        out_path = temp_dir / "partial.txt"

        # get, then two chunks, then cancelled
        with pytest.raises(TransferCancelledError, match="download_obj.copy"):
            self.store.download_obj(
                "data/file1.txt", out_path, deadline=CancelAfter(3)
            )

        assert not out_path.exists()

    def test_tempfile_cancelled_mid_copy(self, isolated_temp_dir, monkeypatch):
        """Test a cancelled temp file copy leaves nothing behind."""
        monkeypatch.setattr(settings, "chunk_size", 8)

        with pytest.raises(TransferCancelledError):
            self.store.object_to_tempfile("data/file1.txt", deadline=CancelAfter(2))

        assert list(isolated_temp_dir.iterdir()) == []

    def test_download_cancelled(self, temp_dir):
        """Test the direct fetch stops on a cancelled deadline."""
        deadline = Deadline()
        deadline.cancel()

        with pytest.raises(TransferCancelledError, match="download.fetch"):
            self.store.download("data/file1.txt", temp_dir, "file1.txt", deadline=deadline)

        assert not (temp_dir / "file1.txt").exists()

    def test_download_cancelled_mid_fetch_is_logged(self, temp_dir):
        """Test cancellation from the progress callback is logged as a failure."""
        # The pre-fetch check passes, the first progress check cancels
        with patch("bucketstore.store_client.logger") as logger:
            with pytest.raises(TransferCancelledError, match="download.fetch"):
                self.store.download(
                    "data/file1.txt", temp_dir, "file1.txt", deadline=CancelAfter(1)
                )

        logger.error.assert_called_once()
        assert logger.error.call_args.kwargs["error_type"] == "TransferCancelledError"
        assert logger.error.call_args.kwargs["stage"] == "fetch"
        assert not (temp_dir / "file1.txt").exists()

    def test_download_with_live_deadline(self, temp_dir):
        """Test a deadline that does not expire lets the fetch complete."""
        target = self.store.download(
            "data/file1.txt", temp_dir, "file1.txt", deadline=Deadline.after(60)
        )

        with open(target, "rb") as handle:
            assert handle.read() == b"x" * 64

    def test_list_cancelled_yields_error_record(self):
        """Test an expired deadline ends a listing with an error record."""
        infos = list(self.store.list_objects("data/", deadline=Deadline.after(0)))

        assert len(infos) == 1
        assert isinstance(infos[0].error, TransferCancelledError)

    def test_list_cancelled_between_pages(self):
        """Test records fetched before cancellation are still yielded."""
        with_first_page = CancelAfter(1)

        infos = list(self.store.list_objects("data/", deadline=with_first_page))

        assert [info.key for info in infos if info.ok] == [
            "data/file1.txt",
            "data/file2.txt",
        ]
        assert isinstance(infos[-1].error, TransferCancelledError)
