"""Configuration schemas and result records for bucketstore."""

from dataclasses import dataclass, field
from datetime import datetime
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional, Union
from urllib.parse import urlsplit

from pydantic import BaseModel, ConfigDict, Field, field_validator

from bucketstore.core.exceptions import BucketStoreError

DEFAULT_CONTENT_TYPE = "application/octet-stream"


class StoreClientConfig(BaseModel):
    """Connection settings for a client bound to a single bucket.

    The endpoint is a bare ``host[:port]``; the scheme is always ``https``
    and is added when the transport session is built.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    endpoint: str = Field(..., min_length=1, description="Backend host[:port]")
    access_key: str = Field(..., min_length=1, description="Static access key")
    secret_key: str = Field(
        ..., min_length=1, repr=False, description="Static secret key"
    )
    bucket: str = Field(..., min_length=1, description="Bucket every call targets")
    region_name: Optional[str] = Field(
        None, description="Signing region; defaults to settings.region_name"
    )

    @field_validator("endpoint")
    @classmethod
    def _check_endpoint(cls, value: str) -> str:
        if "://" in value:
            raise ValueError(
                f"endpoint must be host[:port] without a scheme, got: {value}"
            )
        parts = urlsplit(f"//{value}")
        if not parts.hostname or parts.path or parts.query or parts.fragment:
            raise ValueError(f"endpoint must be host[:port], got: {value}")
        # Raises ValueError for a non-numeric or out-of-range port
        parts.port
        return value

    @property
    def endpoint_url(self) -> str:
        return f"https://{self.endpoint}"


class TransferOptions(BaseModel):
    """Options attached to an uploaded object.

    Unset optional fields are not sent. ``content_type`` defaults to
    ``application/octet-stream``.
    """

    model_config = ConfigDict(extra="forbid")

    content_type: str = Field(DEFAULT_CONTENT_TYPE, min_length=1)
    user_metadata: Dict[str, str] = Field(default_factory=dict)
    cache_control: Optional[str] = None
    content_disposition: Optional[str] = None
    content_encoding: Optional[str] = None
    content_language: Optional[str] = None
    storage_class: Optional[str] = None

    def to_put_kwargs(self) -> Dict[str, Any]:
        """Translate to ``put_object`` keyword arguments."""
        kwargs: Dict[str, Any] = {"ContentType": self.content_type}
        if self.user_metadata:
            kwargs["Metadata"] = dict(self.user_metadata)

        optional = {
            "CacheControl": self.cache_control,
            "ContentDisposition": self.content_disposition,
            "ContentEncoding": self.content_encoding,
            "ContentLanguage": self.content_language,
            "StorageClass": self.storage_class,
        }
        kwargs.update({name: value for name, value in optional.items() if value})
        return kwargs


@dataclass(frozen=True)
class ObjectInfo:
    """Metadata about one object, or the error met while reading it.

    Records are immutable but not hashable: ``user_metadata`` is a
    read-only view over a plain dict.
    """

    key: str
    size: int = 0
    last_modified: Optional[datetime] = None
    etag: Optional[str] = None
    content_type: Optional[str] = None
    user_metadata: Mapping[str, str] = field(default_factory=dict)
    error: Optional[BucketStoreError] = None

    __hash__ = None  # type: ignore[assignment]

    def __post_init__(self) -> None:
        object.__setattr__(
            self, "user_metadata", MappingProxyType(dict(self.user_metadata))
        )

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def from_listing(cls, entry: Dict[str, Any]) -> "ObjectInfo":
        """Build from one ``Contents`` entry of a ``list_objects_v2`` page."""
        return cls(
            key=entry["Key"],
            size=entry.get("Size", 0),
            last_modified=entry.get("LastModified"),
            etag=_strip_etag(entry.get("ETag")),
        )

    @classmethod
    def from_head(cls, key: str, response: Dict[str, Any]) -> "ObjectInfo":
        """Build from a ``head_object`` response."""
        return cls(
            key=key,
            size=response.get("ContentLength", 0),
            last_modified=response.get("LastModified"),
            etag=_strip_etag(response.get("ETag")),
            content_type=response.get("ContentType"),
            user_metadata=dict(response.get("Metadata") or {}),
        )


def _strip_etag(etag: Optional[str]) -> Optional[str]:
    return etag.strip('"') if etag else etag


# Outcome of a metadata-only request
@dataclass(frozen=True)
class ObjectFound:
    info: ObjectInfo


@dataclass(frozen=True)
class ObjectNotFound:
    key: str


@dataclass(frozen=True)
class ObjectStatError:
    key: str
    error: BucketStoreError


StatResult = Union[ObjectFound, ObjectNotFound, ObjectStatError]
