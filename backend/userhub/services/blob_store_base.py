"""
Userhub Backend — Abstract Blob Store Interface
=================================================

What:  Abstract base class defining the contract for binary object storage.
Why:   The upload pipeline must not care whether images end up on local disk
       or in a remote bucket. Both backends implement this one interface and
       the app factory picks one from configuration.
How:   Concrete implementations inherit from BlobStore and implement every
       abstract method. All backend-specific failures are translated to
       StoreUnavailableError; nothing is retried here.
Who:   Used by UploadService (raw bytes) and ImageService (resized bytes),
       and by the health check.

Implementations:
    - LocalBlobStore: files under a media root, public objects served by the
      /media static mount, private objects by HMAC-signed URLs
    - S3BlobStore: boto3 bucket client with object ACLs and presigned URLs

Key namespace used by the upload pipeline:
    images/<objectKey>          original bytes as uploaded
    images/resized/<objectKey>  bounded-size re-encoded copy
"""

from abc import ABC, abstractmethod
from enum import Enum
from typing import Optional

from userhub.exceptions import InvalidInputError


class Visibility(str, Enum):
    """Who can read an object without a signed URL."""

    PRIVATE = "private"
    PUBLIC_READ = "public-read"


DEFAULT_URL_TTL = 60


class BlobStore(ABC):
    """
    Abstract interface for named binary objects.

    Contract:
        - Keys are '/'-separated relative paths; they never start with '/'
          and never contain '..' segments (InvalidInputError otherwise)
        - put() overwrites an existing object with the same key
        - delete() of a missing key is a no-op
        - get_url() of a public object is stable; of a private object it is
          signed and expires after ttl_seconds, or after the store's
          `default_url_ttl` when no ttl is passed
    """

    backend_name: str = "abstract"
    default_url_ttl: int = DEFAULT_URL_TTL

    @abstractmethod
    async def put(
        self,
        key: str,
        data: bytes,
        visibility: Visibility = Visibility.PUBLIC_READ,
        content_type: Optional[str] = None,
    ) -> None:
        """
        Store `data` under `key`.

        Raises:
            StoreUnavailableError: the backend could not write the object.
        """
        ...

    @abstractmethod
    async def get(self, key: str) -> bytes:
        """
        Read an object's bytes.

        Raises:
            NotFoundError: no object with this key.
            StoreUnavailableError: the backend could not be read.
        """
        ...

    @abstractmethod
    async def exists(self, key: str) -> bool:
        ...

    @abstractmethod
    async def get_url(self, key: str, ttl_seconds: Optional[int] = None) -> str:
        """
        Return a URL from which the object can be retrieved.

        Public objects: a stable, directly servable path.
        Private objects: a signed URL valid for `ttl_seconds`.
        `ttl_seconds` defaults to `default_url_ttl`.
        """
        ...

    @abstractmethod
    async def delete(self, key: str) -> None:
        ...

    @abstractmethod
    async def health_check(self) -> bool:
        """Lightweight reachability test for the health endpoint."""
        ...


def normalize_key(key: str) -> str:
    """
    Validate and normalize an object key.

    Rejects absolute keys, empty segments and '..' so a key can never
    address anything outside the store's namespace.
    """
    cleaned = key.strip().replace("\\", "/")
    parts = cleaned.split("/")
    if not cleaned or cleaned.startswith("/") or any(p in ("", ".", "..") for p in parts):
        raise InvalidInputError(message="Invalid object key", field="key", context={"key": key})
    return cleaned
