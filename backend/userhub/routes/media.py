"""
Userhub Backend — Signed Media Route
======================================

What:  GET /api/blobs/{key} — serves private objects of the local blob store.
Why:   Public objects are served by the /media static mount; private ones live
       outside it and are only reachable with a valid signed URL produced by
       LocalBlobStore.get_url().

Security:
    - HMAC-SHA256 signature over "<key>:<expires>" with SIGNING_SECRET
    - Expired or tampered URLs answer 403
    - Keys are normalized by the store (no absolute paths, no '..')
    - With the S3 backend this route always answers 404; S3 serves its own
      presigned URLs
"""

import logging
import mimetypes

from fastapi import APIRouter, Depends, Query, Response

from userhub.dependencies import get_blob_store
from userhub.exceptions import AuthorizationError, NotFoundError
from userhub.services.blob_store_base import BlobStore
from userhub.services.local_blob_store import LocalBlobStore

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Media"])


@router.get(
    "/blobs/{key:path}",
    summary="Download a private object through a signed URL",
    responses={
        200: {"description": "Object bytes"},
        403: {"description": "Signature invalid or expired"},
        404: {"description": "Object not found"},
    },
)
async def get_signed_blob(
    key: str,
    expires: int = Query(...),
    signature: str = Query(...),
    blob_store: BlobStore = Depends(get_blob_store),
) -> Response:
    if not isinstance(blob_store, LocalBlobStore):
        raise NotFoundError(resource="file", resource_id=key)

    if not blob_store.verify_signature(key, expires, signature):
        logger.warning("Rejected signed URL for %s", key)
        raise AuthorizationError(capability="signed_url")

    data = await blob_store.get(key)
    media_type = mimetypes.guess_type(key)[0] or "application/octet-stream"
    return Response(
        content=data,
        media_type=media_type,
        headers={"Cache-Control": "private, no-store"},
    )
