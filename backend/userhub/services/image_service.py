"""
Userhub Backend — Image Transform Stage
=========================================

What:  Decodes an uploaded image, fits it into a bounded canvas, re-encodes it
       in its own format and writes the result under the `resized` namespace.
Why:   Profile pictures are displayed small; serving multi-megabyte originals
       wastes bandwidth and leaks camera metadata.
How:   Pillow does the decoding and resizing in a worker thread. The original
       object is never modified.
Who:   Called by the upload routes after UploadService has stored the raw bytes.

Resize policy (deterministic for identical input):
    - EXIF orientation is applied first
    - Image.thumbnail((max, max), LANCZOS): aspect ratio preserved, downscale
      only, images already inside the box keep their size
    - Output format equals input format (JPEG → JPEG, PNG → PNG, GIF → GIF);
      multi-picture JPEGs (Pillow reports "MPO") are written as plain JPEG
    - The decoded format must match the object key's extension, so the
      served Content-Type always agrees with the key
    - Animated GIFs keep only their first frame
"""

import asyncio
import io
import logging
from dataclasses import dataclass
from pathlib import PurePosixPath
from typing import Optional, Tuple

from PIL import Image, ImageOps, UnidentifiedImageError

from userhub.exceptions import (
    ImageDecodeError,
    StoreUnavailableError,
    TransformIOError,
    UnsupportedMediaTypeError,
)
from userhub.services.blob_store_base import BlobStore, Visibility

logger = logging.getLogger(__name__)

# Pillow format name → (content type, save options)
SUPPORTED_FORMATS = {
    "JPEG": ("image/jpeg", {"quality": 85, "optimize": True}),
    "PNG": ("image/png", {"optimize": True}),
    "GIF": ("image/gif", {}),
}

# Camera JPEGs with an MPF extension open as "MPO"; the first frame is the JPEG
FORMAT_ALIASES = {"MPO": "JPEG"}

# Key extension → Pillow format the bytes must decode as
EXTENSION_FORMATS = {
    ".jpg": "JPEG",
    ".jpeg": "JPEG",
    ".png": "PNG",
    ".gif": "GIF",
}

RESIZED_PREFIX = "images/resized"


@dataclass(frozen=True)
class TransformedImage:
    data: bytes
    format: str
    content_type: str
    size: Tuple[int, int]


class ImageService:
    """
    Resizes stored uploads into the `resized` namespace of a BlobStore.

    Args:
        blob_store:     Destination store
        max_dimension:  Side of the square bounding box (default 800)
    """

    def __init__(self, blob_store: BlobStore, max_dimension: int = 800):
        self.blob_store = blob_store
        self.max_dimension = max_dimension

    def transform(self, raw: bytes, expected_format: Optional[str] = None) -> TransformedImage:
        """
        Decode, resize and re-encode `raw`. Pure CPU work, no I/O.

        `expected_format` is the Pillow format implied by the upload's
        extension; when given, the decoded format must equal it.

        Raises:
            ImageDecodeError: bytes are not a decodable JPEG, PNG or GIF.
            UnsupportedMediaTypeError: bytes decode as a different format
                than `expected_format`.
            TransformIOError: the resized image could not be encoded.
        """
        try:
            img = Image.open(io.BytesIO(raw))
            fmt = FORMAT_ALIASES.get(img.format, img.format)
            # load() forces a full decode; open() only reads the header
            img.load()
        except (UnidentifiedImageError, Image.DecompressionBombError, OSError, SyntaxError, ValueError) as e:
            raise ImageDecodeError(context={"decoder_error": str(e)})

        if fmt not in SUPPORTED_FORMATS:
            raise ImageDecodeError(context={"detected_format": fmt})

        if expected_format is not None and fmt != expected_format:
            raise UnsupportedMediaTypeError(
                message="File content does not match its extension",
                context={"detected_format": fmt, "expected_format": expected_format},
            )

        content_type, save_options = SUPPORTED_FORMATS[fmt]

        if fmt == "JPEG":
            img = ImageOps.exif_transpose(img)
            if img.mode not in ("RGB", "L"):
                img = img.convert("RGB")

        img.thumbnail((self.max_dimension, self.max_dimension), Image.Resampling.LANCZOS)

        buf = io.BytesIO()
        try:
            img.save(buf, format=fmt, **save_options)
        except (OSError, ValueError) as e:
            raise TransformIOError(
                message="Failed to encode the processed image.",
                context={"format": fmt, "encoder_error": str(e)},
            )
        return TransformedImage(
            data=buf.getvalue(),
            format=fmt,
            content_type=content_type,
            size=img.size,
        )

    async def resize_and_store(self, object_key: str, raw: Optional[bytes]) -> Optional[str]:
        """
        Transform `raw` and write it to `images/resized/<object_key>`.

        Returns the resized blob key, or None when no file was provided
        (the stage is optional and passes through).

        Raises:
            ImageDecodeError: not a supported image.
            UnsupportedMediaTypeError: content and key extension disagree.
            TransformIOError: the destination could not be written.
        """
        if raw is None:
            return None

        expected_format = EXTENSION_FORMATS.get(PurePosixPath(object_key).suffix.lower())
        transformed = await asyncio.to_thread(self.transform, raw, expected_format)
        resized_key = f"{RESIZED_PREFIX}/{object_key}"

        try:
            await self.blob_store.put(
                resized_key,
                transformed.data,
                visibility=Visibility.PUBLIC_READ,
                content_type=transformed.content_type,
            )
        except StoreUnavailableError as e:
            logger.error("Failed to write resized image %s: %s", resized_key, e.message)
            raise TransformIOError(context={"key": resized_key, **e.context})

        logger.info(
            "Resized %s to %dx%d (%d bytes)",
            object_key,
            transformed.size[0],
            transformed.size[1],
            len(transformed.data),
        )
        return resized_key
