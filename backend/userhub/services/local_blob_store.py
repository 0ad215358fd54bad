"""
Userhub Backend — Local Filesystem Blob Store
===============================================

What:  BlobStore backed by a directory on local disk.
Why:   Development and single-host deployments need no bucket credentials.
How:   Public objects are written under `media_root` (served by the /media
       StaticFiles mount). Private objects are written under a sibling
       `private_root` that no static mount exposes; they are downloaded
       through GET /api/blobs/{key} with an HMAC-SHA256 signature and an
       expiry timestamp in the query string.

Directory Structure:
    public/
    ├── media/                    ← media_root, mounted at /media
    │   └── images/
    │       ├── 1718000000000-123456789.gif
    │       └── resized/
    │           └── 1718000000000-123456789.gif
    └── private/                  ← private_root, never mounted
"""

import hashlib
import hmac
import logging
import time
from pathlib import Path
from typing import Callable, Optional
from urllib.parse import quote, urlencode

import aiofiles
import aiofiles.os

from userhub.exceptions import NotFoundError, StoreUnavailableError
from userhub.services.blob_store_base import (
    DEFAULT_URL_TTL,
    BlobStore,
    Visibility,
    normalize_key,
)

logger = logging.getLogger(__name__)


class LocalBlobStore(BlobStore):
    """
    Stores objects as files.

    Args:
        media_root:      Directory for public objects (created if missing)
        signing_secret:  HMAC key for private-object URLs
        url_prefix:      URL path under which media_root is mounted
        private_root:    Directory for private objects; defaults to
                         `<media_root>/../private`
        signed_url_path: Route that serves private objects
        clock:           Time source, replaced in tests
        default_url_ttl: Lifetime of signed URLs when get_url() gets no ttl
    """

    backend_name = "local"

    def __init__(
        self,
        media_root: str,
        signing_secret: str,
        url_prefix: str = "/media",
        private_root: Optional[str] = None,
        signed_url_path: str = "/api/blobs",
        clock: Callable[[], float] = time.time,
        default_url_ttl: int = DEFAULT_URL_TTL,
    ):
        self.media_root = Path(media_root).resolve()
        self.private_root = (
            Path(private_root).resolve() if private_root else self.media_root.parent / "private"
        )
        self.url_prefix = "/" + url_prefix.strip("/")
        self.signed_url_path = "/" + signed_url_path.strip("/")
        self._secret = signing_secret.encode("utf-8")
        self._clock = clock
        self.default_url_ttl = default_url_ttl

        self.media_root.mkdir(parents=True, exist_ok=True)
        self.private_root.mkdir(parents=True, exist_ok=True)
        logger.info(
            "LocalBlobStore initialized with media_root=%s private_root=%s",
            self.media_root,
            self.private_root,
        )

    def _root_for(self, visibility: Visibility) -> Path:
        return self.media_root if visibility == Visibility.PUBLIC_READ else self.private_root

    async def _locate(self, key: str) -> Optional[Path]:
        """Return the file holding `key`, checking the public root first."""
        for root in (self.media_root, self.private_root):
            path = root / key
            if await aiofiles.os.path.isfile(path):
                return path
        return None

    async def put(
        self,
        key: str,
        data: bytes,
        visibility: Visibility = Visibility.PUBLIC_READ,
        content_type: Optional[str] = None,
    ) -> None:
        key = normalize_key(key)
        path = self._root_for(Visibility(visibility)) / key
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            async with aiofiles.open(path, "wb") as f:
                await f.write(data)

            # A key lives under exactly one root
            other = (
                self.private_root if path.is_relative_to(self.media_root) else self.media_root
            ) / key
            if await aiofiles.os.path.isfile(other):
                await aiofiles.os.remove(other)
        except OSError as e:
            logger.error("Failed to store blob %s: %s", key, str(e))
            raise StoreUnavailableError(
                message="Failed to save file. Please try again.",
                context={"key": key, "os_error": str(e)},
            )
        logger.info("Blob stored: %s (%d bytes, %s)", key, len(data), Visibility(visibility).value)

    async def get(self, key: str) -> bytes:
        key = normalize_key(key)
        path = await self._locate(key)
        if path is None:
            raise NotFoundError(resource="file", resource_id=key)
        try:
            async with aiofiles.open(path, "rb") as f:
                return await f.read()
        except OSError as e:
            logger.error("Failed to read blob %s: %s", key, str(e))
            raise StoreUnavailableError(context={"key": key, "os_error": str(e)})

    async def exists(self, key: str) -> bool:
        return await self._locate(normalize_key(key)) is not None

    async def get_url(self, key: str, ttl_seconds: Optional[int] = None) -> str:
        key = normalize_key(key)
        path = await self._locate(key)
        if path is None:
            raise NotFoundError(resource="file", resource_id=key)

        quoted = quote(key)
        if path.is_relative_to(self.media_root):
            return f"{self.url_prefix}/{quoted}"

        if ttl_seconds is None:
            ttl_seconds = self.default_url_ttl
        expires = int(self._clock()) + ttl_seconds
        query = urlencode({"expires": expires, "signature": self.sign(key, expires)})
        return f"{self.signed_url_path}/{quoted}?{query}"

    async def delete(self, key: str) -> None:
        key = normalize_key(key)
        try:
            for root in (self.media_root, self.private_root):
                path = root / key
                if await aiofiles.os.path.isfile(path):
                    await aiofiles.os.remove(path)
                    logger.info("Blob deleted: %s", key)
        except OSError as e:
            logger.error("Failed to delete blob %s: %s", key, str(e))
            raise StoreUnavailableError(context={"key": key, "os_error": str(e)})

    async def health_check(self) -> bool:
        return await aiofiles.os.path.isdir(self.media_root) and await aiofiles.os.path.isdir(
            self.private_root
        )

    # ── URL Signing ───────────────────────────────────────────────────────

    def sign(self, key: str, expires: int) -> str:
        message = f"{key}:{expires}".encode("utf-8")
        return hmac.new(self._secret, message, hashlib.sha256).hexdigest()

    def verify_signature(self, key: str, expires: int, signature: str) -> bool:
        """True when the signature matches and the expiry is still in the future."""
        if expires < int(self._clock()):
            return False
        return hmac.compare_digest(self.sign(key, expires), signature)
