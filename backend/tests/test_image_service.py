"""
Userhub Backend — Image Transform Unit Tests
==============================================

What:  Tests for ImageService (decode, bounded resize, re-encode, store).
How:   Real images generated with Pillow; a LocalBlobStore in tmp_path or a
       mock store for failure paths.

What we test:
    ✅ Output fits in 800x800 with aspect ratio preserved
    ✅ Images already inside the box are not upscaled
    ✅ Output format equals input format
    ✅ Multi-picture camera JPEGs (MPO) are written as plain JPEG
    ✅ Content that disagrees with the key extension is rejected
    ✅ EXIF orientation applied to JPEGs
    ✅ Undecodable or unsupported bytes raise ImageDecodeError
    ✅ Destination write failure raises TransformIOError
"""

import io
from unittest.mock import AsyncMock, MagicMock

import pytest
from PIL import Image

from userhub.exceptions import (
    ImageDecodeError,
    StoreUnavailableError,
    TransformIOError,
    UnsupportedMediaTypeError,
)
from userhub.services.image_service import ImageService


def _open(data: bytes) -> Image.Image:
    return Image.open(io.BytesIO(data))


class TestTransform:

    def setup_method(self):
        self.service = ImageService(MagicMock(), max_dimension=800)

    def test_landscape_downscaled_to_box(self, make_image):
        result = self.service.transform(make_image(1600, 1200, "JPEG"))

        assert result.size == (800, 600)
        assert _open(result.data).size == (800, 600)

    def test_portrait_downscaled_to_box(self, make_image):
        result = self.service.transform(make_image(400, 1000, "PNG"))
        assert result.size == (320, 800)

    def test_small_image_not_upscaled(self, make_image):
        result = self.service.transform(make_image(100, 50, "GIF"))
        assert result.size == (100, 50)

    @pytest.mark.parametrize(
        "fmt,content_type",
        [("JPEG", "image/jpeg"), ("PNG", "image/png"), ("GIF", "image/gif")],
    )
    def test_format_preserved(self, make_image, fmt, content_type):
        result = self.service.transform(make_image(1000, 1000, fmt))

        assert result.format == fmt
        assert result.content_type == content_type
        assert _open(result.data).format == fmt

    def test_transparent_png_stays_png(self):
        buf = io.BytesIO()
        Image.new("RGBA", (900, 900), (0, 0, 0, 0)).save(buf, format="PNG")

        result = self.service.transform(buf.getvalue())

        out = _open(result.data)
        assert out.format == "PNG"
        assert out.mode == "RGBA"

    def test_animated_gif_keeps_first_frame(self):
        frames = [Image.new("P", (50, 50), color) for color in (1, 2, 3)]
        buf = io.BytesIO()
        frames[0].save(buf, format="GIF", save_all=True, append_images=frames[1:])

        result = self.service.transform(buf.getvalue())

        assert getattr(_open(result.data), "n_frames", 1) == 1

    def test_exif_orientation_applied(self):
        exif = Image.Exif()
        exif[0x0112] = 6  # Rotated 90° clockwise
        buf = io.BytesIO()
        Image.new("RGB", (200, 100), (10, 20, 30)).save(buf, format="JPEG", exif=exif)

        result = self.service.transform(buf.getvalue())

        assert result.size == (100, 200)

    def test_deterministic(self, make_image):
        raw = make_image(1200, 900, "PNG", noise=True)
        assert self.service.transform(raw).data == self.service.transform(raw).data

    def test_garbage_bytes_raise_decode_error(self):
        with pytest.raises(ImageDecodeError):
            self.service.transform(b"definitely not an image")

    def test_truncated_image_raises_decode_error(self, make_image):
        raw = make_image(300, 300, "PNG", noise=True)
        with pytest.raises(ImageDecodeError):
            self.service.transform(raw[: len(raw) // 2])

    def test_unsupported_format_raises_decode_error(self, make_image):
        """BMP decodes fine in Pillow but is not an accepted profile format."""
        with pytest.raises(ImageDecodeError):
            self.service.transform(make_image(20, 20, "BMP"))

    def test_multi_picture_jpeg_written_as_jpeg(self, make_image):
        second_frame = Image.new("RGB", (1200, 900), (0, 0, 255))
        raw = make_image(1200, 900, "MPO", save_all=True, append_images=[second_frame])
        assert _open(raw).format == "MPO"

        result = self.service.transform(raw, expected_format="JPEG")

        assert result.format == "JPEG"
        assert result.content_type == "image/jpeg"
        assert result.size == (800, 600)
        out = _open(result.data)
        assert out.format == "JPEG"
        assert getattr(out, "n_frames", 1) == 1

    def test_content_must_match_expected_format(self, make_image):
        with pytest.raises(UnsupportedMediaTypeError) as exc_info:
            self.service.transform(make_image(20, 20, "PNG"), expected_format="GIF")

        assert exc_info.value.context["detected_format"] == "PNG"
        assert exc_info.value.context["expected_format"] == "GIF"

    def test_custom_bounding_box(self, make_image):
        service = ImageService(MagicMock(), max_dimension=100)
        assert service.transform(make_image(400, 200, "PNG")).size == (100, 50)


class TestResizeAndStore:

    @pytest.mark.asyncio
    async def test_no_file_passes_through(self, local_store):
        service = ImageService(local_store)
        assert await service.resize_and_store("123-456.png", None) is None

    @pytest.mark.asyncio
    async def test_writes_resized_copy(self, local_store, make_image):
        service = ImageService(local_store)
        raw = make_image(1600, 1600, "PNG")
        await local_store.put("images/123-456.png", raw)

        resized_key = await service.resize_and_store("123-456.png", raw)

        assert resized_key == "images/resized/123-456.png"
        stored = _open(await local_store.get(resized_key))
        assert stored.size == (800, 800)
        # Original untouched
        assert await local_store.get("images/123-456.png") == raw

    @pytest.mark.asyncio
    async def test_store_failure_raises_transform_io_error(self, make_image):
        store = MagicMock()
        store.put = AsyncMock(side_effect=StoreUnavailableError(context={"os_error": "disk full"}))
        service = ImageService(store)

        with pytest.raises(TransformIOError):
            await service.resize_and_store("123-456.png", make_image(10, 10, "PNG"))

    @pytest.mark.asyncio
    async def test_key_extension_must_match_content(self, make_image):
        store = MagicMock()
        store.put = AsyncMock()
        service = ImageService(store)

        with pytest.raises(UnsupportedMediaTypeError):
            await service.resize_and_store("123-456.gif", make_image(10, 10, "PNG"))

        store.put.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_jpeg_key_accepts_either_jpeg_extension(self, local_store, make_image):
        service = ImageService(local_store)

        key = await service.resize_and_store("123-456.JPEG", make_image(10, 10, "JPEG"))

        assert key == "images/resized/123-456.JPEG"

    @pytest.mark.asyncio
    async def test_decode_error_writes_nothing(self):
        store = MagicMock()
        store.put = AsyncMock()
        service = ImageService(store)

        with pytest.raises(ImageDecodeError):
            await service.resize_and_store("123-456.png", b"nope")

        store.put.assert_not_awaited()
