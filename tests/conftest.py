"""Test configuration and fixtures for bucketstore."""

import pytest

from bucketstore.core import settings


@pytest.fixture(autouse=True)
def isolated_temp_dir(tmp_path, monkeypatch):
    """Point temp-file downloads at a per-test directory."""
    temp_dir = tmp_path / "tempfiles"
    temp_dir.mkdir()
    monkeypatch.setattr(settings, "temp_dir", str(temp_dir))
    return temp_dir


@pytest.fixture
def temp_dir(tmp_path):
    """Create a temporary directory for testing."""
    return tmp_path


@pytest.fixture
def sample_file(temp_dir):
    """Create a small local file to upload."""
    path = temp_dir / "sample.txt"
    path.write_bytes(b"sample content\n" * 10)
    return path


@pytest.fixture
def empty_file(temp_dir):
    """Create a zero-length local file."""
    path = temp_dir / "empty.bin"
    path.write_bytes(b"")
    return path
