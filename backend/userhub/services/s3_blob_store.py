"""
Userhub Backend — S3 Blob Store
=================================

What:  BlobStore backed by an S3 (or S3-compatible) bucket through boto3.
Why:   Multi-host deployments need storage shared by every instance.
How:   boto3 is synchronous, so each call runs in a worker thread via
       asyncio.to_thread() and the event loop stays free. Object visibility
       is recorded in the object's user metadata (`x-amz-meta-visibility`),
       which works on buckets with ACLs disabled (BucketOwnerEnforced).
       Canned ACLs `private` / `public-read` are sent too only when
       `object_acls` is enabled; otherwise public reads rely on a bucket
       policy covering the public prefix.

URLs:
    public-read → <public_base_url>/<key>
                  (visibility read with one HeadObject call)
                  (default https://<bucket>.s3.<region>.amazonaws.com)
    private     → presigned GetObject URL, ExpiresIn=ttl_seconds

Error handling:
    botocore.exceptions.ClientError / BotoCoreError → StoreUnavailableError,
    except a 404/NoSuchKey on reads, which becomes NotFoundError.
    No retries are configured beyond what botocore itself does per call.
"""

import asyncio
import logging
from typing import Any, Optional
from urllib.parse import quote

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from userhub.exceptions import NotFoundError, StoreUnavailableError
from userhub.services.blob_store_base import (
    DEFAULT_URL_TTL,
    BlobStore,
    Visibility,
    normalize_key,
)

logger = logging.getLogger(__name__)

_MISSING_CODES = {"404", "NoSuchKey", "NotFound"}

# User metadata key; S3 returns metadata keys lower-cased
VISIBILITY_METADATA_KEY = "visibility"


class S3BlobStore(BlobStore):
    """
    Stores objects in one bucket.

    Args:
        bucket:            Bucket name
        region:            AWS region (used for the default public URL)
        access_key_id / secret_access_key: credentials; empty → boto3 default chain
        endpoint_url:      Custom endpoint for S3-compatible stores
        public_base_url:   Base URL for public-read objects
        object_acls:       Also send canned ACLs on put (buckets with ACLs enabled)
        default_url_ttl:   Presigned URL lifetime when get_url() gets no ttl
        client:            Pre-built boto3 client (tests)
    """

    backend_name = "s3"

    def __init__(
        self,
        bucket: str,
        region: str = "",
        access_key_id: str = "",
        secret_access_key: str = "",
        endpoint_url: str = "",
        public_base_url: str = "",
        object_acls: bool = False,
        default_url_ttl: int = DEFAULT_URL_TTL,
        client: Any = None,
    ):
        self.bucket = bucket
        self.region = region
        self.object_acls = object_acls
        self.default_url_ttl = default_url_ttl
        self.public_base_url = (
            public_base_url or f"https://{bucket}.s3.{region or 'us-east-1'}.amazonaws.com"
        ).rstrip("/")
        self._client = client or boto3.client(
            "s3",
            region_name=region or None,
            endpoint_url=endpoint_url or None,
            aws_access_key_id=access_key_id or None,
            aws_secret_access_key=secret_access_key or None,
            config=Config(signature_version="s3v4"),
        )
        logger.info("S3BlobStore initialized for bucket=%s region=%s", bucket, region)

    async def _call(self, operation: str, key: str, **params: Any) -> Any:
        method = getattr(self._client, operation)
        try:
            return await asyncio.to_thread(method, Bucket=self.bucket, Key=key, **params)
        except ClientError as e:
            code = str(e.response.get("Error", {}).get("Code", ""))
            if code in _MISSING_CODES:
                raise NotFoundError(resource="file", resource_id=key)
            logger.error("S3 %s failed for %s: %s", operation, key, code or str(e))
            raise StoreUnavailableError(context={"key": key, "operation": operation, "code": code})
        except BotoCoreError as e:
            logger.error("S3 %s failed for %s: %s", operation, key, str(e))
            raise StoreUnavailableError(context={"key": key, "operation": operation, "error": str(e)})

    async def put(
        self,
        key: str,
        data: bytes,
        visibility: Visibility = Visibility.PUBLIC_READ,
        content_type: Optional[str] = None,
    ) -> None:
        key = normalize_key(key)
        visibility = Visibility(visibility)
        params = {"Body": data, "Metadata": {VISIBILITY_METADATA_KEY: visibility.value}}
        if self.object_acls:
            params["ACL"] = visibility.value
        if content_type:
            params["ContentType"] = content_type
        await self._call("put_object", key, **params)
        logger.info("Blob stored in s3://%s/%s (%d bytes)", self.bucket, key, len(data))

    async def get(self, key: str) -> bytes:
        key = normalize_key(key)
        response = await self._call("get_object", key)
        return await asyncio.to_thread(response["Body"].read)

    async def exists(self, key: str) -> bool:
        try:
            await self._call("head_object", normalize_key(key))
        except NotFoundError:
            return False
        return True

    async def _is_public(self, key: str) -> bool:
        """Objects without visibility metadata are treated as private."""
        response = await self._call("head_object", key)
        metadata = response.get("Metadata") or {}
        return metadata.get(VISIBILITY_METADATA_KEY) == Visibility.PUBLIC_READ.value

    async def get_url(self, key: str, ttl_seconds: Optional[int] = None) -> str:
        key = normalize_key(key)
        if ttl_seconds is None:
            ttl_seconds = self.default_url_ttl
        if await self._is_public(key):
            return f"{self.public_base_url}/{quote(key)}"
        try:
            return await asyncio.to_thread(
                self._client.generate_presigned_url,
                ClientMethod="get_object",
                Params={"Bucket": self.bucket, "Key": key},
                ExpiresIn=ttl_seconds,
            )
        except (BotoCoreError, ClientError) as e:
            logger.error("Failed to presign %s: %s", key, str(e))
            raise StoreUnavailableError(context={"key": key, "operation": "presign"})

    async def delete(self, key: str) -> None:
        await self._call("delete_object", normalize_key(key))
        logger.info("Blob deleted from s3://%s/%s", self.bucket, key)

    async def health_check(self) -> bool:
        try:
            await asyncio.to_thread(self._client.head_bucket, Bucket=self.bucket)
        except (BotoCoreError, ClientError) as e:
            logger.warning("S3 health check failed: %s", str(e))
            return False
        return True
