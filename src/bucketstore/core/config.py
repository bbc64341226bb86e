"""Configuration management for bucketstore."""

import tempfile

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings with environment variable support.

    Every field can be overridden with a ``BUCKETSTORE_`` prefixed
    environment variable, e.g. ``BUCKETSTORE_READ_TIMEOUT=120``.
    """

    log_level: str = "INFO"
    log_format: str = "json"
    otel_enabled: bool = False
    otel_service_name: str = "bucketstore"

    # Transport session
    region_name: str = "us-east-1"
    connect_timeout: float = 10.0
    read_timeout: float = 60.0
    max_pool_connections: int = 10

    # Local transfers
    chunk_size: int = 1024 * 1024
    temp_dir: str = tempfile.gettempdir()

    model_config = {
        "env_prefix": "BUCKETSTORE_",
        "case_sensitive": False,
    }


settings = Settings()
