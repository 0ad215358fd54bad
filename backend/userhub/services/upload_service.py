"""
Userhub Backend — Upload Intake Service
=========================================

What:  Validates a profile-image upload, generates its object key and stores
       the raw bytes in the blob store.
Why:   Centralizes the upload policy (who, what type, how big) in one place
       in front of the image pipeline.
How:   Checks run cheapest first; the raw bytes are written only after every
       check has passed. The resize stage runs afterwards (ImageService).
Who:   Called by POST /api/upload and POST /api/updateProfile.

Security Model:
    Defense-in-depth for file uploads:
    1. Extension check:   the filename must end in .jpg, .jpeg, .png or .gif
    2. MIME type check:   the declared content type must be an allowed image type
    3. Size check:        more than 5MB is rejected (exactly 5MB is accepted)
    4. Generated key:     no user input ends up in the object key except the
                          lowercased, whitelisted extension
    5. Decode check:      ImageService refuses bytes Pillow cannot decode

    Extension AND MIME type must both pass. A `.png` declared as
    `application/pdf` is rejected just like `.pdf` declared as `image/png`.

Object keys:
    <millisecond-timestamp>-<random integer 0..1e9><.ext>
    e.g. 1718000000000-482915337.gif
    Uniqueness is probabilistic; a key that already exists in the store is
    redrawn, up to MAX_KEY_ATTEMPTS times.
"""

import logging
import random
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional

from userhub.exceptions import (
    InvalidInputError,
    PayloadTooLargeError,
    StoreUnavailableError,
    UnsupportedMediaTypeError,
)
from userhub.services.blob_store_base import BlobStore, Visibility

logger = logging.getLogger(__name__)

ALLOWED_EXTENSIONS = {".jpg", ".jpeg", ".png", ".gif"}
ALLOWED_MIME_TYPES = {"image/jpeg", "image/jpg", "image/png", "image/gif"}

ORIGINALS_PREFIX = "images"
MAX_KEY_ATTEMPTS = 5


@dataclass(frozen=True)
class UploadRequest:
    """One uploaded file and its owner. Lives for a single request.

    `declared_size` is the size reported by the multipart parser. When the
    file is larger than the ceiling the route stops reading early, so
    `raw_bytes` may be a truncated prefix; the size check uses the larger
    of the two.
    """

    owner_id: Optional[str]
    raw_bytes: bytes
    declared_mime_type: Optional[str]
    declared_filename: Optional[str]
    declared_size: Optional[int] = None

    @property
    def size(self) -> int:
        return max(len(self.raw_bytes), self.declared_size or 0)


@dataclass(frozen=True)
class StoredImageReference:
    """
    Where an accepted upload lives.

    Immutable: a later upload for the same owner creates a new reference and
    the old objects are left in place.
    """

    object_key: str
    public_path: str


@dataclass(frozen=True)
class AcceptedUpload:
    object_key: str
    blob_key: str
    raw_bytes: bytes


class UploadService:
    """
    Upload policy and raw-bytes storage.

    Args:
        blob_store:       Where raw uploads are written
        max_upload_size:  Byte ceiling (inclusive)
        clock:            Millisecond time source, replaced in tests
        rng:              Random source, replaced in tests
    """

    def __init__(
        self,
        blob_store: BlobStore,
        max_upload_size: int = 5 * 1024 * 1024,
        clock: Callable[[], float] = time.time,
        rng: Optional[random.Random] = None,
    ):
        self.blob_store = blob_store
        self.max_upload_size = max_upload_size
        self._clock = clock
        self._rng = rng or random.SystemRandom()

    @staticmethod
    def validate_owner(owner_id: Optional[str]) -> str:
        if owner_id is None or not owner_id.strip():
            raise InvalidInputError(
                message="User ID is required to upload the image.",
                field="userId",
            )
        return owner_id.strip()

    def validate_media_type(self, filename: Optional[str], mime_type: Optional[str]) -> str:
        """
        Check extension and declared MIME type; returns the lowercased extension.

        Raises:
            UnsupportedMediaTypeError if either check fails.
        """
        ext = Path(filename or "").suffix.lower()
        mime = (mime_type or "").split(";")[0].strip().lower()

        if ext not in ALLOWED_EXTENSIONS or mime not in ALLOWED_MIME_TYPES:
            raise UnsupportedMediaTypeError(
                context={
                    "extension": ext,
                    "mime_type": mime,
                    "allowed_extensions": sorted(ALLOWED_EXTENSIONS),
                    "allowed_mime_types": sorted(ALLOWED_MIME_TYPES),
                },
            )
        return ext

    def validate_size(self, size: int) -> None:
        if size > self.max_upload_size:
            raise PayloadTooLargeError(max_size=self.max_upload_size, actual_size=size)

    def generate_object_key(self, extension: str) -> str:
        millis = int(self._clock() * 1000)
        suffix = self._rng.randint(0, 1_000_000_000)
        return f"{millis}-{suffix}{extension}"

    async def _unused_key(self, extension: str) -> str:
        for attempt in range(1, MAX_KEY_ATTEMPTS + 1):
            object_key = self.generate_object_key(extension)
            if not await self.blob_store.exists(f"{ORIGINALS_PREFIX}/{object_key}"):
                return object_key
            logger.warning("Object key collision on %s (attempt %d)", object_key, attempt)
        raise StoreUnavailableError(
            message="Could not allocate a storage key. Please try again.",
            context={"attempts": MAX_KEY_ATTEMPTS},
        )

    async def accept(self, upload: UploadRequest) -> AcceptedUpload:
        """
        Validate `upload` and write its raw bytes to `images/<object_key>`.

        Validation order:
            1. Owner id present
            2. Extension and declared MIME type allowed
            3. Size within ceiling

        Raises:
            InvalidInputError, UnsupportedMediaTypeError, PayloadTooLargeError
            StoreUnavailableError if the blob store cannot be written
        """
        owner_id = self.validate_owner(upload.owner_id)
        ext = self.validate_media_type(upload.declared_filename, upload.declared_mime_type)
        self.validate_size(upload.size)

        object_key = await self._unused_key(ext)
        blob_key = f"{ORIGINALS_PREFIX}/{object_key}"
        await self.blob_store.put(
            blob_key,
            upload.raw_bytes,
            visibility=Visibility.PUBLIC_READ,
            content_type=(upload.declared_mime_type or "").split(";")[0].strip() or None,
        )
        logger.info(
            "Upload accepted for user %s: %s (%d bytes)",
            owner_id,
            object_key,
            len(upload.raw_bytes),
        )
        return AcceptedUpload(object_key=object_key, blob_key=blob_key, raw_bytes=upload.raw_bytes)
