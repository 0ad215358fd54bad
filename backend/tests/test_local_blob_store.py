"""
Userhub Backend — Local Blob Store Unit Tests
===============================================

What:  Tests for LocalBlobStore: visibility roots, URLs, signing, errors.
How:   Real files in pytest's tmp_path; a FakeClock drives signed-URL expiry.
"""

import time
from unittest.mock import patch
from urllib.parse import parse_qs, urlsplit

import pytest

from userhub.config import Settings
from userhub.dependencies import build_blob_store
from userhub.exceptions import InvalidInputError, NotFoundError, StoreUnavailableError
from userhub.services.blob_store_base import Visibility, normalize_key
from userhub.services.local_blob_store import LocalBlobStore


def _signed_params(url: str):
    parts = urlsplit(url)
    query = parse_qs(parts.query)
    return parts.path, int(query["expires"][0]), query["signature"][0]


class TestPublicObjects:

    @pytest.mark.asyncio
    async def test_put_then_get(self, local_store):
        await local_store.put("images/a.png", b"png-bytes")

        assert await local_store.get("images/a.png") == b"png-bytes"
        assert (local_store.media_root / "images" / "a.png").read_bytes() == b"png-bytes"

    @pytest.mark.asyncio
    async def test_put_overwrites(self, local_store):
        await local_store.put("images/a.png", b"old")
        await local_store.put("images/a.png", b"new")
        assert await local_store.get("images/a.png") == b"new"

    @pytest.mark.asyncio
    async def test_public_url_is_stable_media_path(self, local_store):
        await local_store.put("images/resized/1-2.gif", b"gif")

        url = await local_store.get_url("images/resized/1-2.gif")

        assert url == "/media/images/resized/1-2.gif"
        assert await local_store.get_url("images/resized/1-2.gif", ttl_seconds=1) == url


class TestPrivateObjects:

    @pytest.mark.asyncio
    async def test_private_object_outside_media_root(self, local_store):
        await local_store.put("docs/id.png", b"secret", visibility=Visibility.PRIVATE)

        assert not (local_store.media_root / "docs" / "id.png").exists()
        assert (local_store.private_root / "docs" / "id.png").read_bytes() == b"secret"
        assert await local_store.get("docs/id.png") == b"secret"

    @pytest.mark.asyncio
    async def test_private_url_is_signed(self, local_store, clock):
        await local_store.put("docs/id.png", b"secret", visibility=Visibility.PRIVATE)

        url = await local_store.get_url("docs/id.png", ttl_seconds=60)
        path, expires, signature = _signed_params(url)

        assert path == "/api/blobs/docs/id.png"
        assert expires == int(clock.now) + 60
        assert local_store.verify_signature("docs/id.png", expires, signature)

    @pytest.mark.asyncio
    async def test_signed_url_expires(self, local_store, clock):
        await local_store.put("docs/id.png", b"secret", visibility=Visibility.PRIVATE)
        _, expires, signature = _signed_params(await local_store.get_url("docs/id.png", ttl_seconds=60))

        clock.advance(61)

        assert not local_store.verify_signature("docs/id.png", expires, signature)

    @pytest.mark.asyncio
    async def test_tampered_signature_rejected(self, local_store):
        await local_store.put("docs/id.png", b"secret", visibility=Visibility.PRIVATE)
        _, expires, signature = _signed_params(await local_store.get_url("docs/id.png"))

        assert not local_store.verify_signature("docs/other.png", expires, signature)
        assert not local_store.verify_signature("docs/id.png", expires + 3600, signature)
        assert not local_store.verify_signature("docs/id.png", expires, "0" * 64)

    @pytest.mark.asyncio
    async def test_changing_visibility_moves_object(self, local_store):
        await local_store.put("images/a.png", b"v1")
        await local_store.put("images/a.png", b"v2", visibility=Visibility.PRIVATE)

        assert not (local_store.media_root / "images" / "a.png").exists()
        assert (await local_store.get_url("images/a.png")).startswith("/api/blobs/")


    @pytest.mark.asyncio
    async def test_default_ttl_from_constructor(self, tmp_path, clock):
        store = LocalBlobStore(
            media_root=str(tmp_path / "media"),
            signing_secret="k",
            clock=clock,
            default_url_ttl=300,
        )
        await store.put("docs/id.png", b"secret", visibility=Visibility.PRIVATE)

        _, expires, _ = _signed_params(await store.get_url("docs/id.png"))
        assert expires == int(clock.now) + 300

        _, expires, _ = _signed_params(await store.get_url("docs/id.png", ttl_seconds=5))
        assert expires == int(clock.now) + 5

    @pytest.mark.asyncio
    async def test_configured_ttl_reaches_signed_urls(self, tmp_path):
        settings = Settings(
            storage_backend="local",
            media_root=str(tmp_path / "media"),
            signing_secret="k",
            signed_url_ttl=120,
        )
        store = build_blob_store(settings)
        await store.put("docs/id.png", b"secret", visibility=Visibility.PRIVATE)

        before = int(time.time())
        _, expires, _ = _signed_params(await store.get_url("docs/id.png"))
        after = int(time.time())

        assert before + 120 <= expires <= after + 120

class TestMissingAndDelete:

    @pytest.mark.asyncio
    async def test_get_missing_raises_not_found(self, local_store):
        with pytest.raises(NotFoundError):
            await local_store.get("images/missing.png")

    @pytest.mark.asyncio
    async def test_url_of_missing_raises_not_found(self, local_store):
        with pytest.raises(NotFoundError):
            await local_store.get_url("images/missing.png")

    @pytest.mark.asyncio
    async def test_exists_and_delete(self, local_store):
        await local_store.put("images/a.png", b"x")
        assert await local_store.exists("images/a.png")

        await local_store.delete("images/a.png")

        assert not await local_store.exists("images/a.png")

    @pytest.mark.asyncio
    async def test_delete_missing_is_noop(self, local_store):
        await local_store.delete("images/never-written.png")

    @pytest.mark.asyncio
    async def test_write_failure_raises_store_unavailable(self, local_store):
        with patch("userhub.services.local_blob_store.aiofiles.open", side_effect=OSError("disk full")):
            with pytest.raises(StoreUnavailableError):
                await local_store.put("images/a.png", b"x")

    @pytest.mark.asyncio
    async def test_health_check(self, local_store):
        assert await local_store.health_check() is True


class TestKeyNormalization:

    @pytest.mark.parametrize(
        "key",
        ["", "/etc/passwd", "../outside.png", "images/../../x", "images//a.png", "images/./a.png"],
    )
    def test_invalid_keys_rejected(self, key):
        with pytest.raises(InvalidInputError):
            normalize_key(key)

    def test_backslashes_normalized(self):
        assert normalize_key("images\\resized\\a.png") == "images/resized/a.png"

    @pytest.mark.asyncio
    async def test_store_refuses_traversal(self, local_store):
        with pytest.raises(InvalidInputError):
            await local_store.put("../escape.png", b"x")
